"""Password hashing and policy.

Learn: Uses bcrypt for secure password hashing. bcrypt automatically
handles salting and is resistant to rainbow table attacks.
The work factor (rounds=12) takes ~100ms per hash on modern hardware,
which is why AccountService calls these through asyncio.to_thread().

Passwords are truncated to 72 bytes (bcrypt's limit) before hashing.
"""

import re
from functools import lru_cache
from typing import Optional

import bcrypt

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128

_SPECIAL = re.compile(r"""[!@#$%^&*()_+\-=\[\]{};':"\\|,.<>/?`~]""")


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with bcrypt. The salt is embedded in the result."""
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its bcrypt hash. Malformed hashes never match."""
    try:
        pw_bytes = password.encode("utf-8")[:72]
        hash_bytes = password_hash.encode("utf-8")
        return bcrypt.checkpw(pw_bytes, hash_bytes)
    except (ValueError, TypeError):
        return False


@lru_cache(maxsize=None)
def dummy_hash(rounds: int = 12) -> str:
    """A throwaway hash at the given cost, computed once per cost.

    Login verifies against this when the email is unknown, so a miss costs
    the same bcrypt work as a wrong password.
    """
    return hash_password("inkwell-no-such-account", rounds)


def password_policy_error(password: str) -> Optional[str]:
    """Return a human-readable reason the password is too weak, or None."""
    if not password:
        return "Password is required"
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    if len(password) > MAX_PASSWORD_LENGTH:
        return f"Password must be at most {MAX_PASSWORD_LENGTH} characters long"
    if not re.search(r"[A-Z]", password):
        return "Password must contain at least one uppercase letter"
    if not re.search(r"[a-z]", password):
        return "Password must contain at least one lowercase letter"
    if not re.search(r"\d", password):
        return "Password must contain at least one number"
    if not _SPECIAL.search(password):
        return "Password must contain at least one special character"
    return None
