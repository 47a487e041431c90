from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt

from vision.core.config import settings

SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES


def create_access_token(data: dict, token_version: int, expires_delta: Optional[timedelta] = None) -> str:
    """
    Issue a bearer token for a user.

    The auth provider issues tokens in production; this helper mirrors its
    claims (`sub` user id, `tv` token version) so local tooling and tests can
    produce tokens the API accepts.
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "iat": now, "tv": token_version})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Decode and verify a token. Raises jose.JWTError when invalid or expired."""
    return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
