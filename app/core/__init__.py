"""
Core helpers package for the cost allocation service.

Configuration, error types, collaborator credentials and the per-user
company context live here.
"""

__all__ = []
