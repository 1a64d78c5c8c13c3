"""Bearer token inspection."""

import logging
import time
from typing import Any

import jwt

logger = logging.getLogger(__name__)


def decode_token_claims(token: str | None) -> dict[str, Any] | None:
    """Decode a token's payload without verifying its signature.

    Returns ``None`` for anything that is not a three-part token with a JSON
    object payload.
    """
    if not token or token.count(".") != 2:
        return None
    try:
        claims = jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
    except jwt.PyJWTError as exc:
        logger.error("Error parsing token for expiration check: %s", exc)
        return None
    return claims if isinstance(claims, dict) else None


def token_expiry(token: str | None) -> float | None:
    claims = decode_token_claims(token)
    if claims is None:
        return None
    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    return float(exp)


def is_token_expired(token: str | None, now: float | None = None) -> bool:
    """True when ``exp`` is in the past, and for any token without a readable ``exp``."""
    exp = token_expiry(token)
    if exp is None:
        return True
    current = time.time() if now is None else now
    return exp < current


def token_subject(token: str | None) -> str | None:
    claims = decode_token_claims(token)
    return claims.get("sub") if claims else None
