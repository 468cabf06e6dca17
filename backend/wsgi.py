import atexit
import logging
import os

from dotenv import load_dotenv

load_dotenv()
logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())

try:
    from backend.memorybreakout.server import create_app
except ImportError:  # pragma: no cover
    from memorybreakout.server import create_app

app, socketio = create_app()
# Cancel pending room timers when the worker exits.
atexit.register(app.extensions["memorybreakout"].shutdown)
