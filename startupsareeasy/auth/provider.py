"""Client for the hosted auth provider's REST endpoints (``/auth/v1``)."""

import logging
from typing import Any

import httpx

from startupsareeasy.auth.schemas import SessionTokens
from startupsareeasy.rest.errors import InvalidLoginError, NetworkError, error_from_response

logger = logging.getLogger(__name__)


class AuthProviderClient:
    def __init__(self, auth_url: str, anon_key: str, http: httpx.AsyncClient):
        self.auth_url = auth_url.rstrip("/")
        self.anon_key = anon_key
        self.http = http

    def _headers(self, token: str | None = None) -> dict[str, str]:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token or self.anon_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, body: dict[str, Any], *, params: dict[str, str] | None = None, token: str | None = None) -> httpx.Response:
        try:
            response = await self.http.post(
                f"{self.auth_url}/{path}", params=params, json=body, headers=self._headers(token)
            )
        except httpx.HTTPError as exc:
            raise NetworkError(f"auth {path}: {exc}") from exc
        return response

    async def sign_in_with_password(self, email: str, password: str) -> SessionTokens:
        response = await self._post("token", {"email": email, "password": password}, params={"grant_type": "password"})
        if response.status_code in (400, 401):
            logger.warning("Password sign-in rejected for %s", email)
            raise InvalidLoginError("Invalid login credentials", response.status_code, response.text)
        if response.is_error:
            raise error_from_response(response.status_code, response.text, "sign in")
        return SessionTokens.model_validate(response.json())

    async def refresh_session(self, refresh_token: str) -> SessionTokens:
        response = await self._post("token", {"refresh_token": refresh_token}, params={"grant_type": "refresh_token"})
        if response.status_code in (400, 401):
            raise InvalidLoginError("Refresh token rejected", response.status_code, response.text)
        if response.is_error:
            raise error_from_response(response.status_code, response.text, "refresh session")
        return SessionTokens.model_validate(response.json())

    async def get_user(self, access_token: str) -> dict[str, Any]:
        try:
            response = await self.http.get(f"{self.auth_url}/user", headers=self._headers(access_token))
        except httpx.HTTPError as exc:
            raise NetworkError(f"auth user: {exc}") from exc
        if response.is_error:
            raise error_from_response(response.status_code, response.text, "get user")
        return response.json()

    async def sign_out(self, access_token: str) -> None:
        response = await self._post("logout", {}, token=access_token)
        if response.is_error and response.status_code != 401:
            raise error_from_response(response.status_code, response.text, "sign out")
