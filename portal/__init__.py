from flask import Flask
from flask_cors import CORS
import os
import logging
from config.settings import CORS_ORIGIN, UPLOAD_DIR

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

def create_app():
    app = Flask(__name__)

    # Set secret key - use environment variable or fallback to a random key
    app.config['SECRET_KEY'] = os.environ.get('FLASK_SECRET_KEY', os.urandom(24))

    # Largest upload accepted for one request (two spreadsheets)
    app.config['MAX_CONTENT_LENGTH'] = int(os.environ.get('MAX_UPLOAD_MB', 50)) * 1024 * 1024

    # Ensure the upload directory exists
    try:
        os.makedirs(UPLOAD_DIR, exist_ok=True)
        logger.info(f"Upload directory: {UPLOAD_DIR}")
    except OSError as e:
        logger.error(f"Error creating upload directory {UPLOAD_DIR}: {str(e)}")

    # Browser front end on another origin
    if CORS_ORIGIN:
        CORS(app, resources={r"/api/*": {"origins": CORS_ORIGIN}})

    # Register blueprints
    from .views.compare import compare_bp

    app.register_blueprint(compare_bp, url_prefix='/api')

    return app
