"""Mapping store and click event log backends."""

from .base import BaseEventLog, BaseMappingStore
from .storage import Storage
from .storage_factory import get_storage

__all__ = ["BaseEventLog", "BaseMappingStore", "Storage", "get_storage"]
