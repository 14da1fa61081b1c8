"""JWT utilities for caller authentication.

The registry does not manage accounts.  A token's ``sub`` claim is the
caller principal, as issued by whatever authority signs the tokens.
"""

from datetime import datetime, timedelta, timezone

from jose import jwt

from idreg.settings import settings


def create_access_token(data: dict) -> str:
    """Create a signed JWT that expires after ``JWT_EXPIRE_MINUTES``.

    Parameters
    ----------
    data:
        Claims to embed in the token (typically ``{"sub": principal}``).

    Returns
    -------
    str
        Encoded JWT string.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Decode and validate a JWT.

    Raises
    ------
    jose.JWTError
        If the token is expired, malformed, or the signature is invalid.
    """
    return jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
    )
