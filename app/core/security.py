from jose import jwt, JWTError

from app.core.config import settings

ALGO = "HS256"


class InvalidTokenError(Exception):
    pass


def decode_token(token: str) -> dict:
    options = {"verify_aud": bool(settings.AUTH_JWT_AUDIENCE)}
    return jwt.decode(
        token,
        settings.AUTH_JWT_SECRET,
        algorithms=[ALGO],
        audience=settings.AUTH_JWT_AUDIENCE or None,
        options=options,
    )


def verify_subject(token: str) -> str:
    """Verify a bearer token issued by the identity provider and return its subject."""
    try:
        payload = decode_token(token)
    except JWTError as e:
        raise InvalidTokenError(str(e)) from e
    sub = payload.get("sub")
    if not sub:
        raise InvalidTokenError("token has no subject")
    return str(sub)
