"""
Short code generation strategies for the short link service.
Uses Strategy Pattern to allow different generation algorithms.

Uniqueness is NOT checked here: the store's unique index is the arbiter, and
LinkService regenerates on a uniqueness violation at insert time.
"""

import re
from abc import ABC, abstractmethod
from typing import Optional

from nanoid import generate as nanoid_generate

from shortlink_app.exceptions import AliasInvalidError

# URL-safe alphabet (same one nanoid uses by default)
URL_SAFE_ALPHABET = "_-0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"

# Always applied with fullmatch(), never match()
ALIAS_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
ALIAS_MIN_LENGTH = 3
ALIAS_MAX_LENGTH = 20

# Paths served by the application itself; an alias here would be unreachable
RESERVED_ALIASES = frozenset({"api", "health", "docs", "redoc", "metrics"})


class ShortCodeStrategy(ABC):
    """Abstract base class for short code generation strategies"""

    @abstractmethod
    def generate(self) -> str:
        """
        Generate a candidate short code.

        Returns:
            A short code string (not yet known to be unique)
        """


class RandomShortCodeStrategy(ShortCodeStrategy):
    """
    Random fixed-length codes from a URL-safe alphabet (nanoid).

    Pros: Unpredictable, no coordination needed
    Cons: Rare collisions, resolved by retrying at insert time
    """

    def __init__(self, length: int = 7, alphabet: str = URL_SAFE_ALPHABET):
        self.length = length
        self.alphabet = alphabet

    def generate(self) -> str:
        return nanoid_generate(self.alphabet, self.length)


def validate_alias(alias: str) -> str:
    """
    Check a caller-supplied alias.

    Raises:
        AliasInvalidError: wrong charset, length outside [3, 20], or reserved
    """
    if not isinstance(alias, str) or not alias:
        raise AliasInvalidError("Custom alias is required")
    if len(alias) < ALIAS_MIN_LENGTH:
        raise AliasInvalidError(
            f"Custom alias must be at least {ALIAS_MIN_LENGTH} characters long"
        )
    if len(alias) > ALIAS_MAX_LENGTH:
        raise AliasInvalidError(
            f"Custom alias cannot exceed {ALIAS_MAX_LENGTH} characters"
        )
    if not ALIAS_PATTERN.fullmatch(alias):
        raise AliasInvalidError(
            "Custom alias can only contain letters, numbers, hyphens, and underscores"
        )
    if alias.lower() in RESERVED_ALIASES:
        raise AliasInvalidError(f"'{alias}' is reserved and cannot be used")
    return alias


class ShortCodeGenerator:
    """
    generate(custom_alias?) -> code

    A valid alias becomes the code as-is; otherwise the configured strategy
    produces a fresh candidate.
    """

    def __init__(self, strategy: Optional[ShortCodeStrategy] = None):
        self.strategy = strategy or RandomShortCodeStrategy()

    def generate(self, custom_alias: Optional[str] = None) -> str:
        if custom_alias is not None:
            return validate_alias(custom_alias)
        return self.strategy.generate()
