from typing import Any, Dict

import jwt

from rr_messaging.config import get_settings


def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify a token issued by the auth service and return its claims.

    Raises jwt.InvalidTokenError (or a subclass) when the signature, expiry
    or format is wrong.
    """
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def subject_of(payload: Dict[str, Any]) -> str:
    # the auth service signs {"id": ...}; "sub" is the registered claim
    subject = payload.get("sub") or payload.get("id")
    if not subject:
        raise jwt.InvalidTokenError("token carries no subject")
    return str(subject)
