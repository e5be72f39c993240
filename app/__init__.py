"""
app package
-----------

FastAPI application for the import cost allocation ("neteo de
costos") service and its supporting modules. Importing ``app`` loads
:mod:`app.main` and exposes the ``app`` instance for ASGI servers.
"""

from .main import app  # noqa: F401
