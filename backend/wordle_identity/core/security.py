"""Security utilities - password hashing and random secrets"""

import logging
import secrets

import bcrypt

logger = logging.getLogger(__name__)

# bcrypt only consumes the first 72 bytes of a secret.
_BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    """Adaptive, salted one-way password hashing (bcrypt)."""

    def __init__(self, rounds: int = 12) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError(f"bcrypt rounds must be between 4 and 31, got {rounds}")
        self.rounds = rounds

    @staticmethod
    def _encode(plaintext: str) -> bytes:
        return plaintext.encode("utf-8")[:_BCRYPT_MAX_BYTES]

    def hash(self, plaintext: str) -> str:
        """
        Hash a password using bcrypt

        Args:
            plaintext: Plain text password

        Returns:
            str: Hashed password
        """
        return bcrypt.hashpw(
            self._encode(plaintext),
            bcrypt.gensalt(rounds=self.rounds)
        ).decode("utf-8")

    def verify(self, plaintext: str, hashed: str) -> bool:
        """
        Verify a password against its hash

        Args:
            plaintext: Plain text password
            hashed: Stored bcrypt hash

        Returns:
            bool: True if password matches
        """
        if not hashed:
            return False
        try:
            return bcrypt.checkpw(self._encode(plaintext), hashed.encode("utf-8"))
        except ValueError:
            logger.warning("Stored password hash is malformed")
            return False


def generate_state_token() -> str:
    """
    Generate an unguessable OAuth state value

    Returns:
        str: Random URL-safe token
    """
    return secrets.token_urlsafe(32)


def generate_token_id() -> str:
    """Unique JWT id, keeps every issued token string distinct."""
    return secrets.token_urlsafe(16)
