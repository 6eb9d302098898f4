"""
Database connection and session management for TeamPilot.
"""

from .connection import get_database_url, create_engine, create_session_factory, init_database

__all__ = ["get_database_url", "create_engine", "create_session_factory", "init_database"]
