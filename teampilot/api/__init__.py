"""
API endpoints for TeamPilot.
"""

from .main import create_app
from .slack import slack_router
from .admin import admin_router

__all__ = ["create_app", "slack_router", "admin_router"]
