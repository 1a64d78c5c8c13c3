"""Random tokens and passwords."""

import re
import secrets
import string
import time
import uuid

_SAFE_CHARS = string.ascii_letters + string.digits + "-_"
_DEFAULT_CHARS = string.ascii_letters + string.digits + "!@#$%^&*"

# 36 random bytes encode to exactly 48 base64url characters
LOGIN_TOKEN_BYTES = 36
LOGIN_TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]{48}$")
LEGACY_PREFIX = "login_"


def generate_secure_password(length: int = 32, url_safe: bool = False) -> str:
    charset = _SAFE_CHARS if url_safe else _DEFAULT_CHARS
    return "".join(secrets.choice(charset) for _ in range(length))


def generate_login_token() -> str:
    """Login token short enough for a Telegram ``/start`` parameter."""
    return secrets.token_urlsafe(LOGIN_TOKEN_BYTES)


def is_valid_login_token(token: str | None) -> bool:
    if not token:
        return False
    if LOGIN_TOKEN_RE.match(token):
        return True
    return token.startswith(LEGACY_PREFIX) and len(token) >= 20


def generate_session_token() -> str:
    return f"session_{uuid.uuid4()}_{int(time.time() * 1000)}_{generate_secure_password(20)}"


def validate_entropy(value: str, min_length: int = 20) -> bool:
    """At least ``min_length`` characters drawn from three or more character classes."""
    if len(value) < min_length:
        return False
    classes = [
        any(c.islower() for c in value),
        any(c.isupper() for c in value),
        any(c.isdigit() for c in value),
        any(not c.isalnum() for c in value),
    ]
    return sum(classes) >= 3
