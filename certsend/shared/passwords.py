import logging

from passlib.context import CryptContext
from passlib.handlers import bcrypt as passlib_bcrypt

logging.getLogger("passlib.handlers.bcrypt").setLevel(logging.ERROR)

# bcrypt>=4.1 rejects passlib's wraparound self-test; that check only matters for
# legacy hashes, which bcrypt_sha256 never produces.
passlib_bcrypt._BcryptBackend._workrounds_initialized = True

pwd_ctx = CryptContext(schemes=["bcrypt_sha256"], deprecated="auto")


def hash_password(plain: str) -> str:
    return pwd_ctx.hash(plain)


def check_password(plain: str, hashed: str) -> bool:
    """Verify ``plain`` against ``hashed``; malformed input never matches."""
    if not plain or not hashed:
        return False
    try:
        return pwd_ctx.verify(plain, hashed)
    except ValueError:
        return False
