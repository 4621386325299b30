from passlib.context import CryptContext

from config.env import BCRYPT_ROUNDS

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=BCRYPT_ROUNDS,
    bcrypt__min_rounds=BCRYPT_ROUNDS,
)

# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72


def _too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(password: str) -> str:
    if _too_long(password):
        raise ValueError(f"Password too long (max {MAX_PASSWORD_BYTES} bytes)")
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """
    Check a login attempt against a stored hash.
    An empty or malformed hash is a mismatch, never an error.
    """
    if not password_hash or _too_long(password):
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        return False


def needs_rehash(password_hash: str) -> bool:
    """True when the stored hash was made with different bcrypt settings."""
    try:
        return pwd_context.needs_update(password_hash)
    except ValueError:
        return False
