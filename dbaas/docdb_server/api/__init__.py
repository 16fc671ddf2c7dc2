"""
HTTP API for DocDB server.

This module provides:
- create_app: FastAPI application factory
- Settings: pydantic-settings configuration (DOCDB_* env vars)
- decode_query: bracket-notation query string decoding
"""

from .app import create_app
from .config import Settings
from .querystring import decode_query

__all__ = ["create_app", "Settings", "decode_query"]
