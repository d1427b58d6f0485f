"""
HTTP host for the change notifier.

This package provides:
- The explicit startup sequence (bootstrap.py)
- A FastAPI application exposing data writes and function invocations
"""

from api.main import app

__all__ = ["app"]
