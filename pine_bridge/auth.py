import time
from typing import Optional

import jwt
from passlib.context import CryptContext

from .config import get_settings

# Use pbkdf2_sha256 as default to avoid bcrypt 72-byte limitation in some envs
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

ALGORITHM = "HS256"


def create_session_token(session_id: str, user_id: int, expires_delta: Optional[int] = None) -> str:
    """Sign a token that points at a server-side session row.

    The signature only proves the token was issued here; the session row decides
    whether it is still valid (logout deletes it).
    """
    settings = get_settings()
    now = int(time.time())
    exp = now + (expires_delta or settings.session_ttl_seconds)
    payload = {"sid": session_id, "sub": str(user_id), "iat": now, "exp": exp}
    return jwt.encode(payload, settings.session_secret, algorithm=ALGORITHM)


def decode_session_token(token: str) -> dict:
    # Raises jwt.PyJWTError on bad signature, expiry or garbage
    return jwt.decode(token, get_settings().session_secret, algorithms=[ALGORITHM])


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)
