"""
Root application entry point for the cost allocation API
========================================================

This module exposes the FastAPI application instance defined in
``app/main.py`` so that Uvicorn can import ``main:app`` directly from
the repository root.

.. code-block:: bash

    uvicorn main:app --host 0.0.0.0 --port 8000 --workers 1

Wizard sessions and dispatch leases live in process memory, so run a
single worker.
"""

from app.main import app  # noqa: F401 re-export for Uvicorn

__all__ = ["app"]
