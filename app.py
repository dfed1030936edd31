"""
=============================================================================
AFFECT COACH ENGINE - APPLICATION ENTRY POINT (app.py)
=============================================================================

WHAT THIS FILE DOES (in plain language):
----------------------------------------
This is the "front door" of the engine. When you run "python app.py", it
starts a small web server that the capture side (browser or app) talks to:

  1. It starts and stops coaching sessions.
  2. It accepts audio blocks, face blendshape scores and transcript turns.
  3. It answers "what is the current VAD / bucket / tip?" and returns the
     session record when a session ends.

The handlers themselves live in routes.py; the fusion loop lives in
affect_session.py.

HOW TO RUN:
-----------
  - From project root:  python app.py
  - By default the API is at:  http://localhost:5000

CONFIGURATION:
--------------
  - Settings come from the .env file and config.py.
  - See config.py for every variable and its default.
=============================================================================
"""

# ---------------------------------------------------------------------------
# Step 1: Load environment variables from .env (before anything else)
# ---------------------------------------------------------------------------
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent / ".env")

# ---------------------------------------------------------------------------
# Step 2: Import the web framework and our own modules
# ---------------------------------------------------------------------------
import logging

from flask import Flask
from flask_cors import CORS
from flask_compress import Compress

import config
from routes import register_routes
from utils import fusion_weights

# ---------------------------------------------------------------------------
# Step 3: Logging and config warnings
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
config.warn_invalid_config()


def create_app() -> Flask:
    """
    Create and configure the Flask application.

    What it does:
      - Creates the Flask app object.
      - Enables CORS so the capture page can call the API from another origin.
      - Enables compression for the larger responses (session export, summary).
      - Loads the default fusion weights (URL, then file, then config).
      - Registers the URL routes from routes.py.

    Returns:
        The configured Flask application.
    """
    app = Flask(__name__)

    # In production you would restrict this to specific domains.
    CORS(app, resources={r"/*": {"origins": "*"}})

    Compress(app)

    fusion_weights.load_weights()

    register_routes(app)

    return app


# ---------------------------------------------------------------------------
# Create the one global Flask application
# ---------------------------------------------------------------------------
app = create_app()


# ---------------------------------------------------------------------------
# Run the server when this file is executed directly (e.g. "python app.py")
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    # FLASK_DEBUG: Flask's development server with reloader.
    # Otherwise: Waitress with a few worker threads (capture inputs arrive
    # concurrently with state polling).
    if config.FLASK_DEBUG:
        app.run(
            host=config.FLASK_HOST,
            port=config.FLASK_PORT,
            debug=True
        )
    else:
        import waitress
        waitress.serve(app, host=config.FLASK_HOST, port=config.FLASK_PORT, threads=6)
