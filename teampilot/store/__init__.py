"""
Key-value persistence for TeamPilot.
"""

from .base import KeyValueStore, StoreFactory
from .records import RecordStore, record_key

__all__ = ["KeyValueStore", "StoreFactory", "RecordStore", "record_key"]
