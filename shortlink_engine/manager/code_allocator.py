"""
CodeAllocator – short code generation and reservation.

Responsibilities:
    - Validate vanity (custom) codes: 3–20 chars from [A-Za-z0-9_-]
    - Generate random Base62 codes from a cryptographically strong source
    - Reserve a code by handing the complete record to the store's atomic
      `insert_if_absent`; never a separate exists-check followed by a save

Design notes:
    - A generated code can collide; the retry loop is unconditional and bounded
      by `max_attempts`. Hitting the bound raises AllocationExhaustedError, which
      signals an under-provisioned code space rather than a transient fault.
    - At the default length of 6 the code space is 62^6 (~56.8 billion).
    - The code source is injectable for tests (force collisions) and for
      alternative alphabets.
"""

import logging
import random
import re
from typing import Callable, Optional

from ..errors import AllocationExhaustedError, DuplicateCodeError, ValidationError
from ..models import MAX_CODE_LENGTH, MIN_CODE_LENGTH, LinkMapping, MappingDraft, utcnow
from ..storage.base import BaseMappingStore

log = logging.getLogger("shortlink.allocator")

BASE62_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
CUSTOM_CODE_PATTERN = re.compile(r"[A-Za-z0-9_-]+")

CodeSource = Callable[[int], str]  # length -> candidate code

_rng = random.SystemRandom()


def random_code(length: int) -> str:
    """Uniform draw of `length` symbols from the Base62 alphabet (OS entropy)."""
    return "".join(_rng.choice(BASE62_ALPHABET) for _ in range(length))


def validate_custom_code(code: str) -> None:
    """
    Raises:
        ValidationError: If the code has the wrong length or a character
            outside [A-Za-z0-9_-].
    """
    if not MIN_CODE_LENGTH <= len(code) <= MAX_CODE_LENGTH:
        raise ValidationError(
            f"Custom code must be between {MIN_CODE_LENGTH} and {MAX_CODE_LENGTH} characters"
        )
    if not CUSTOM_CODE_PATTERN.fullmatch(code):
        raise ValidationError("Custom code may only contain letters, digits, '-' and '_'")


class CodeAllocator:
    """
    Proposes short codes and reserves them in the mapping store.

    The allocator never mutates an existing record; a successful reservation
    is the insert of a brand-new one.
    """

    def __init__(
        self,
        store: BaseMappingStore,
        length: int = 6,
        max_attempts: int = 10,
        code_source: Optional[CodeSource] = None,
    ):
        if not MIN_CODE_LENGTH <= length <= MAX_CODE_LENGTH:
            raise ValueError(f"length must be within [{MIN_CODE_LENGTH}, {MAX_CODE_LENGTH}]")
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.store = store
        self.length = length
        self.max_attempts = max_attempts
        self.code_source = code_source or random_code

    def allocate(self, draft: MappingDraft, custom_code: Optional[str] = None) -> LinkMapping:
        """
        Reserve a short code for `draft` and return the stored mapping.

        Raises:
            ValidationError: Custom code is malformed.
            DuplicateCodeError: Custom code is already bound.
            AllocationExhaustedError: Every generated candidate collided.
        """
        if custom_code is not None:
            validate_custom_code(custom_code)
            stored = self._try_insert(custom_code, draft)
            if stored is None:
                raise DuplicateCodeError(custom_code)
            return stored

        for attempt in range(1, self.max_attempts + 1):
            candidate = self.code_source(self.length)
            stored = self._try_insert(candidate, draft)
            if stored is not None:
                return stored
            log.info("Generated code collision on attempt %d/%d", attempt, self.max_attempts)

        log.error("Short code allocation exhausted after %d attempts (length=%d)", self.max_attempts, self.length)
        raise AllocationExhaustedError(self.max_attempts)

    def _try_insert(self, code: str, draft: MappingDraft) -> Optional[LinkMapping]:
        return self.store.insert_if_absent(LinkMapping.from_draft(code, draft, utcnow()))
