"""
LinkManager module for the short-link engine.

Responsibilities:
    - Validate creation requests (target URL, title, description, expiry)
    - Delegate code reservation to the CodeAllocator
    - Read-side helpers used by the API (lookup by code, listing by owner)
    - Administrative lifecycle writes (status toggle, delete); these belong to
      the admin surface and go straight to the store

Design notes:
    - Only http/https targets with a host are accepted.
    - A past `expires_at` is accepted at creation; the resolver turns it into
      ExpiredError on first use.
    - An empty custom code means "generate one".
"""

import logging
import re
from datetime import datetime
from typing import List, Optional
from urllib.parse import urlparse

from ..errors import NotFoundError, ValidationError
from ..models import LinkMapping, LinkStatus, MappingDraft, as_utc, utcnow
from ..storage.base import BaseMappingStore
from .code_allocator import CodeAllocator

log = logging.getLogger("shortlink.manager")

TARGET_URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)
MAX_TARGET_URL_LENGTH = 2048
MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1000


class LinkManager:
    """
    Coordinates creation and administration of mappings.
    """

    def __init__(self, store: BaseMappingStore, allocator: Optional[CodeAllocator] = None):
        self.store = store
        self.allocator = allocator or CodeAllocator(store)

    # ---------------------------------------------------------------------
    # Validation Helpers
    # ---------------------------------------------------------------------
    def _validate_url(self, url: str) -> None:
        """
        Validate that a URL has an http/https scheme and a host.

        Raises:
            ValidationError: If the URL is malformed.
        """
        if not url or not TARGET_URL_PATTERN.match(url):
            raise ValidationError("Target URL must start with http:// or https://")
        if len(url) > MAX_TARGET_URL_LENGTH:
            raise ValidationError("Target URL too long")
        if not urlparse(url).netloc:
            raise ValidationError("Target URL must include a host")

    def _validate_text(self, value: Optional[str], name: str, limit: int) -> None:
        if value is not None and len(value) > limit:
            raise ValidationError(f"{name} must be at most {limit} characters")

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    def create_mapping(
        self,
        target_url: str,
        custom_code: Optional[str] = None,
        title: Optional[str] = None,
        description: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        owner: Optional[str] = None,
    ) -> LinkMapping:
        """
        Create a mapping for `target_url`, optionally under a vanity code.

        Raises:
            ValidationError, DuplicateCodeError, AllocationExhaustedError
        """
        target_url = (target_url or "").strip()
        self._validate_url(target_url)
        self._validate_text(title, "Title", MAX_TITLE_LENGTH)
        self._validate_text(description, "Description", MAX_DESCRIPTION_LENGTH)

        draft = MappingDraft(
            target_url=target_url,
            title=title,
            description=description,
            expires_at=as_utc(expires_at) if expires_at is not None else None,
            owner=owner,
        )
        code = custom_code.strip() if custom_code else None
        mapping = self.allocator.allocate(draft, custom_code=code or None)
        log.info("Created mapping %s (owner=%s)", mapping.short_code, owner)
        return mapping

    def get_mapping(self, short_code: str) -> LinkMapping:
        mapping = self.store.get_mapping(short_code)
        if mapping is None:
            raise NotFoundError(short_code)
        return mapping

    def list_mappings(self, owner: Optional[str] = None) -> List[LinkMapping]:
        return self.store.list_mappings(owner)

    def set_status(self, short_code: str, status: LinkStatus) -> LinkMapping:
        updated = self.store.set_status(short_code, status, utcnow())
        if updated is None:
            raise NotFoundError(short_code)
        log.info("Mapping %s set to %s", short_code, status.value)
        return updated

    def delete_mapping(self, short_code: str) -> None:
        if not self.store.delete_mapping(short_code):
            raise NotFoundError(short_code)
        log.info("Mapping %s deleted", short_code)
