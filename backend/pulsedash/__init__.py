"""PulseDash: weather, air quality, crypto prices and news behind one API.

Public API:
    create_app     - FastAPI application factory
    Settings       - Environment-driven configuration
    load_settings  - Build Settings from os.environ
"""

from .config import Settings, load_settings
from .main import create_app

__all__ = ["Settings", "create_app", "load_settings"]
