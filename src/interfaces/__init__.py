"""
Interfaces Layer
================

FastAPI application factory and host-level routes.

This is the outermost layer - handles HTTP requests/responses and
reads components from the application context.
"""

from src.interfaces.app import create_app

__all__ = ["create_app"]
