"""Random identifiers for enrichment requests and merchant cache entries"""

import random
import threading
import uuid

from enrichment.utils.errors import InvalidIdentifierError


class IdentifierGenerator:
    """
    Generates canonical version-4 UUID strings.

    Each thread draws from its own ``random.Random`` (seeded from the OS
    entropy pool on first use), so concurrent callers never share a lock.
    Uniqueness is probabilistic: 122 random bits per identifier.
    """

    def __init__(self):
        self._local = threading.local()

    def _random(self) -> random.Random:
        rng = getattr(self._local, "rng", None)
        if rng is None:
            rng = random.Random()
            self._local.rng = rng
        return rng

    def generate(self) -> str:
        """
        Generate a new identifier.

        Returns:
            Lowercase hyphenated UUID string with version 4 / IETF variant bits set
        """
        return str(uuid.UUID(int=self._random().getrandbits(128), version=4))

    def validate(self, value) -> bool:
        """
        Check whether a value parses as a UUID.

        Args:
            value: Candidate identifier

        Returns:
            True if valid, False otherwise (including None and blank strings)
        """
        if not isinstance(value, str) or not value.strip():
            return False
        try:
            uuid.UUID(value)
            return True
        except ValueError:
            return False

    def normalize(self, value: str) -> str:
        """
        Normalize an identifier to canonical lowercase hyphenated form.

        Raises:
            InvalidIdentifierError: If value is not a valid identifier
        """
        if not self.validate(value):
            raise InvalidIdentifierError(f"Invalid identifier format: {value!r}")
        return str(uuid.UUID(value))
