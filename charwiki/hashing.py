"""bcrypt hashing for passwords and email addresses."""

import hmac

import bcrypt

# bcrypt only looks at the first 72 bytes and newer releases refuse longer input.
_MAX_BYTES = 72


def _encode(value: str) -> bytes:
    return value.encode("utf-8")[:_MAX_BYTES]


def gen_salt(rounds: int = 10) -> str:
    return bcrypt.gensalt(rounds).decode("utf-8")


def hash_password(password: str, salt: str) -> str:
    hashed = bcrypt.hashpw(_encode(password), salt.encode("utf-8"))
    return hashed.decode("utf-8")


def compare_password(password: str, hashed_password: str) -> bool:
    # The salt is embedded in the stored hash.
    return bcrypt.checkpw(_encode(password), hashed_password.encode("utf-8"))


def hash_email(email: str, salt: str) -> str:
    return hash_password(email, salt)


def compare_email(email: str, hashed_email: str, salt: str) -> bool:
    """Re-hash the email with the stored salt and compare in constant time."""
    candidate = hash_email(email, salt)
    return hmac.compare_digest(candidate.encode("utf-8"), hashed_email.encode("utf-8"))
