"""CSRF token kept alongside the session for state-changing calls to the internal endpoints."""

import hmac
import logging
import time
from collections.abc import Callable

from startupsareeasy.session.storage import TokenStore
from startupsareeasy.utils.crypto import generate_secure_password

logger = logging.getLogger(__name__)

TOKEN_KEY = "csrf-token"
EXPIRY_KEY = "csrf-token-expiry"
TOKEN_LIFETIME_SECONDS = 60 * 60

STATE_CHANGING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


class CsrfManager:
    def __init__(self, store: TokenStore, lifetime: float = TOKEN_LIFETIME_SECONDS, clock: Callable[[], float] = time.time):
        self.store = store
        self.lifetime = lifetime
        self._clock = clock

    def _expired(self) -> bool:
        expiry = self.store.get_item(EXPIRY_KEY)
        try:
            return expiry is None or self._clock() >= float(expiry)
        except ValueError:
            return True

    def refresh(self) -> str:
        """Issue a new token; call after a successful login."""
        token = generate_secure_password(32)
        self.store.set_item(TOKEN_KEY, token)
        self.store.set_item(EXPIRY_KEY, str(self._clock() + self.lifetime))
        logger.debug("CSRF: generated new token")
        return token

    def get_token(self) -> str:
        token = self.store.get_item(TOKEN_KEY)
        if not token or self._expired():
            return self.refresh()
        return token

    def validate(self, received: str) -> bool:
        return hmac.compare_digest(received.encode(), self.get_token().encode())

    def clear(self) -> None:
        self.store.remove_item(TOKEN_KEY)
        self.store.remove_item(EXPIRY_KEY)

    def headers(self, method: str = "POST") -> dict[str, str]:
        if method.upper() not in STATE_CHANGING_METHODS:
            return {}
        return {"X-CSRF-Token": self.get_token(), "X-Requested-With": "XMLHttpRequest"}
