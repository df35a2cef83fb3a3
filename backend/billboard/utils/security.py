"""
Security helpers: bcrypt password hashing and random code generation.

JWT encoding/decoding lives in ``billboard.core.auth`` next to the FastAPI
dependencies that use it.
"""

import logging
import secrets
import string

from passlib.context import CryptContext


logger = logging.getLogger(__name__)

# ==============================================================================
# PASSWORD HASHING
# ==============================================================================

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)

MIN_PASSWORD_LENGTH = 8


def hash_password(password: str) -> str:
    """
    Hash a plaintext password with bcrypt (12 rounds).

    Raises:
        ValueError: If the password is empty.
    """
    if not password:
        raise ValueError("Password cannot be empty")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Constant-time check of a plaintext password against a stored hash.

    Malformed hashes count as a mismatch rather than an error.
    """
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.warning("Password verification error: %s", e)
        return False


# ==============================================================================
# RANDOM STRINGS
# ==============================================================================

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_secure_code(length: int = 8, alphabet: str = CODE_ALPHABET) -> str:
    """
    Generate a random code from ``alphabet`` using the ``secrets`` module.

    The default alphabet (A-Z, 0-9) is the one used for referral codes.
    """
    if length <= 0:
        raise ValueError("Length must be a positive integer")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_hex_token(length: int = 8) -> str:
    """Random lowercase hex string of exactly ``length`` characters."""
    return secrets.token_hex((length + 1) // 2)[:length]
