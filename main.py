from flask import Flask, jsonify
from flask_compress import Compress
from quiz_faucet import init_quiz_faucet
import os
import logging

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Reduce werkzeug logging for health checks
logging.getLogger('werkzeug').setLevel(logging.ERROR)
logging.getLogger('web3').setLevel(logging.WARNING)
logging.getLogger('urllib3').setLevel(logging.WARNING)


def create_app(services=None):
    """Create the Flask app; services can be injected for tests"""
    app = Flask(__name__)

    # Enable gzip compression
    compress = Compress()
    compress.init_app(app)

    app.config['MAX_CONTENT_LENGTH'] = 1 * 1024 * 1024  # Quiz submissions are small JSON bodies
    app.config['JSON_SORT_KEYS'] = False

    logger.info("🎓 Initializing Quiz Faucet system...")
    if init_quiz_faucet(app, services):
        logger.info("✅ Quiz Faucet system initialized")
    else:
        logger.error("❌ Quiz Faucet initialization failed")

    @app.route("/health")
    def health_check():
        """Health check endpoint for deployment"""
        return jsonify({
            "status": "healthy",
            "service": "Quiz Faucet API",
            "version": "1.0.0"
        }), 200

    return app


# Created at module level (required for gunicorn)
app = create_app()


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 3000))
    logger.info(f"🌐 Starting Flask server on http://0.0.0.0:{port}")

    # Threaded mode: each settlement attempt runs in its own request thread
    app.run(host="0.0.0.0", port=port, debug=False, threaded=True, use_reloader=False)
