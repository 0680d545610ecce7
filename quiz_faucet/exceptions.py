"""
Quiz Faucet exceptions

Grading errors abort a submission as a whole. Ledger errors are raised by the
contract client and turned into settlement outcomes by the coordinator.
"""


class QuizFaucetError(Exception):
    """Base class for all quiz faucet errors"""

    # Human-readable reason shown to the learner; str(exc) is the detail
    user_message = 'Something went wrong'


class InvalidInput(QuizFaucetError):
    """Malformed or misaligned submission (client error, never retried)"""

    user_message = 'Invalid submission'


class OracleError(QuizFaucetError):
    """The grading oracle could not produce a trustworthy answer"""

    user_message = 'Grading is temporarily unavailable'


class OracleResponseInvalid(OracleError):
    """The oracle answered, but the payload failed validation"""


class OracleUnavailable(OracleError):
    """The oracle could not be reached (network error, HTTP error or timeout)"""


class LedgerUnreachable(QuizFaucetError):
    """Eligibility could not be read; treat as unknown, never as eligible"""

    user_message = 'Failed to get claim status'


class LedgerError(QuizFaucetError):
    """A ledger write was attempted and did not confirm"""

    user_message = 'Failed to process claim'


class LedgerRejectedError(LedgerError):
    """The ledger refused the claim (reverted transaction or validation error)"""


class LedgerTimeoutError(LedgerError):
    """No receipt arrived before the bounded wait elapsed; outcome unknown"""

    user_message = 'Claim not confirmed yet'
