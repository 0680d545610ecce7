"""
Application Configuration
"""
import os

# ============================
# Quiz Scoring Settings
# ============================
QUIZ_FAUCET_CONFIG = {
    # Score composition (objective weight; subjective weight is 1 - this)
    'OBJECTIVE_WEIGHT': float(os.getenv('QUIZ_OBJECTIVE_WEIGHT', '0.8')),
    'PASS_THRESHOLD': int(os.getenv('QUIZ_PASS_THRESHOLD', '50')),

    # Course material
    'COURSE_MATERIALS_DIR': os.getenv(
        'COURSE_MATERIALS_DIR',
        os.path.join(os.path.dirname(os.path.abspath(__file__)), 'course-materials')
    ),
    'CURRENT_WEEK': int(os.getenv('CURRENT_WEEK', '1')),
    'MAX_QUESTIONS': 10,

    # Settlement
    'LEDGER_READ_TIMEOUT': float(os.getenv('FAUCET_READ_TIMEOUT', '15')),
    'LEDGER_WRITE_TIMEOUT': float(os.getenv('FAUCET_TX_TIMEOUT', '120')),
    # Separate worker pools: a timed-out write keeps its thread until the receipt wait ends
    'LEDGER_READ_WORKERS': int(os.getenv('FAUCET_READ_WORKERS', '8')),
    'LEDGER_WRITE_WORKERS': int(os.getenv('FAUCET_WRITE_WORKERS', '8')),
}

# ============================
# Grading Oracle (LLM) Settings
# ============================
ORACLE_CONFIG = {
    'API_KEY': os.getenv('DEEPSEEK_API_KEY', ''),
    'BASE_URL': os.getenv('ORACLE_BASE_URL', 'https://api.deepseek.com'),
    'MODEL': os.getenv('ORACLE_MODEL', 'deepseek-chat'),
    'TIMEOUT': float(os.getenv('ORACLE_TIMEOUT', '60')),
    'GRADING_TEMPERATURE': 0.3,  # Lower temperature for consistent grading
    'GENERATION_TEMPERATURE': 0.7,
}

# ============================
# Faucet Contract Settings
# ============================
FAUCET_CONTRACT_CONFIG = {
    'RPC_URL': os.getenv('SEPOLIA_RPC_URL', 'https://rpc.sepolia.org'),
    'CHAIN_ID': int(os.getenv('CHAIN_ID', '11155111')),
    'CONTRACT_ADDRESS': os.getenv('QUIZ_FAUCET_ADDRESS'),
    'ADMIN_PRIVATE_KEY': os.getenv('ADMIN_PRIVATE_KEY'),
    'GAS_LIMIT': int(os.getenv('FAUCET_GAS_LIMIT', '200000')),
    'EXPLORER_TX_URL': os.getenv('EXPLORER_TX_URL', 'https://sepolia.etherscan.io/tx/'),
}

# ============================
# Claim Log (Supabase) Settings
# ============================
CLAIM_LOG_CONFIG = {
    'SUPABASE_URL': os.getenv('SUPABASE_URL'),
    'SUPABASE_KEY': os.getenv('SUPABASE_ANON_KEY'),
    'TABLE': os.getenv('CLAIM_LOG_TABLE', 'faucet_claim_log'),
    'HISTORY_LIMIT': int(os.getenv('CLAIM_HISTORY_LIMIT', '50')),
}
