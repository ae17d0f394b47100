"""Creation, allocation and resolution of short links."""

from .code_allocator import CodeAllocator
from .link_manager import LinkManager
from .resolver import RedirectResolver

__all__ = ["CodeAllocator", "LinkManager", "RedirectResolver"]
