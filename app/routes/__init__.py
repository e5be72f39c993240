"""
Route aggregation package for the cost allocation API.

``dispatch`` exposes the dispatch list (search, create, delete) and
``neteo`` the allocation wizard. Each module defines an ``APIRouter``
that :mod:`app.main` includes in the application.
"""

__all__ = [
    "dispatch",
    "neteo",
]

from . import dispatch, neteo  # noqa: E402,F401
