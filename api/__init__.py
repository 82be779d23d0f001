"""API Package.

FastAPI server for the tea factory back-office.
"""

from api.server import create_app, app

__all__ = [
    "create_app",
    "app",
]
