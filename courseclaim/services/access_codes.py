"""
Access code generation for course claiming.
"""

import secrets
import string
import time
from typing import Callable, Optional

from ..core.exceptions import ConfigurationError

ACCESS_CODE_ALPHABET = string.digits + string.ascii_uppercase


class AccessCodeGenerator:
    """Produces human-typable codes of the form ``PREFIX-<millis>-<SUFFIX>``.

    Codes are unique with high probability only. Storage owns the uniqueness
    guarantee and callers retry on a collision.
    """

    def __init__(self, prefix: str = "AC", suffix_length: int = 4,
                 clock: Optional[Callable[[], float]] = None,
                 choice: Optional[Callable[[str], str]] = None):
        if not prefix or "-" in prefix:
            raise ConfigurationError("Access code prefix must be non-empty and contain no '-'")
        if suffix_length < 1:
            raise ConfigurationError("Access code suffix length must be at least 1")
        self._prefix = prefix.upper()
        self._suffix_length = suffix_length
        self._clock = clock or time.time
        self._choice = choice or secrets.choice

    def generate(self) -> str:
        """Generate a new access code."""
        timestamp = int(self._clock() * 1000)
        suffix = "".join(self._choice(ACCESS_CODE_ALPHABET) for _ in range(self._suffix_length))
        return f"{self._prefix}-{timestamp}-{suffix}"

