"""
Services for TeamPilot.
"""

from .im import IMService, IMServiceFactory, ThreadRef
from .llm import CompletionClient
from .context import ContextAssembler
from .router import IntentRouter
from .actions import ActionExecutor
from .pipeline import TurnPipeline

__all__ = ["IMService", "IMServiceFactory", "ThreadRef", "CompletionClient", "ContextAssembler", "IntentRouter", "ActionExecutor", "TurnPipeline"]
