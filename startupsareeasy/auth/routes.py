"""Bot login endpoints: register a login token, poll its status, fetch the issued password."""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Request
from postgrest.exceptions import APIError as PostgrestAPIError
from pydantic import BaseModel
from starlette.responses import JSONResponse
from supabase import Client

from startupsareeasy.config.settings import Settings, get_settings
from startupsareeasy.db.client import get_supabase
from startupsareeasy.db.models import PENDING_TOKENS, TOKEN_STATUS_COMPLETE, UNIQUE_VIOLATION
from startupsareeasy.utils.crypto import is_valid_login_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Auth"])

PENDING_TOKEN_COLUMNS = (
    "user_id, email, status, used, expires_at, created_at, "
    "telegram_chat_id, telegram_username, telegram_first_name, secure_password"
)


# --- Request / Response schemas ---

class CreateLoginTokenRequest(BaseModel):
    token: str | None = None

class UserPasswordRequest(BaseModel):
    user_id: str | None = None


# --- Helpers ---

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _token_error(token: str | None) -> JSONResponse | None:
    if not token:
        return _error(400, "Token parameter required")
    if not is_valid_login_token(token):
        return _error(400, "Invalid token format")
    return None


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _is_expired(row: dict, now: datetime, max_age: timedelta) -> bool:
    expires_at = _parse_timestamp(row["expires_at"])
    created_at = _parse_timestamp(row["created_at"])
    return now > expires_at or now - created_at > max_age


def _login_status(db: Client, token: str, max_age: timedelta):
    result = db.table(PENDING_TOKENS).select(PENDING_TOKEN_COLUMNS).eq("token", token).execute()
    if not result.data:
        return {"status": "pending", "message": "Waiting for authentication"}

    row = result.data[0]
    now = datetime.now(timezone.utc)
    if _is_expired(row, now, max_age):
        logger.info("Login token expired, deleting")
        db.table(PENDING_TOKENS).delete().eq("token", token).execute()
        return JSONResponse(status_code=400, content={"error": "Token expired", "status": "expired"})

    if row.get("used"):
        return JSONResponse(status_code=400, content={"error": "Token already used", "status": "used"})

    if row.get("status") == TOKEN_STATUS_COMPLETE:
        db.table(PENDING_TOKENS).update({"used": True}).eq("token", token).execute()
        logger.info("Login complete for user=%s", row.get("user_id"))
        return {
            "status": "complete",
            "email": row.get("email"),
            "user_id": row.get("user_id"),
            "secure_password": row.get("secure_password") or None,
            "telegram_data": {
                "chat_id": row.get("telegram_chat_id"),
                "username": row.get("telegram_username"),
                "first_name": row.get("telegram_first_name"),
            },
        }

    return {"status": "pending", "message": "Waiting for authentication"}


# --- Endpoints ---

@router.post("/create-login-token", summary="Register a login token", description="Store a one-time login token for the Telegram bot to confirm.")
async def create_login_token(
    body: CreateLoginTokenRequest,
    db: Client = Depends(get_supabase),
    settings: Settings = Depends(get_settings),
):
    token = body.token
    error = _token_error(token)
    if error is not None:
        return error
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(minutes=settings.LOGIN_TOKEN_TTL_MINUTES)

    try:
        result = db.table(PENDING_TOKENS).insert({
            "token": token,
            "expires_at": expires_at.isoformat(),
            "created_at": now.isoformat(),
            "used": False,
        }).execute()
    except PostgrestAPIError as exc:
        if exc.code == UNIQUE_VIOLATION:
            return {"message": "Token already exists", "status": "exists"}
        logger.error("Failed to create login token: %s", exc.message)
        return _error(500, "Failed to create token")

    if not result.data:
        return _error(500, "Failed to create token")

    row = result.data[0]
    logger.info("Login token created, expires_at=%s", row.get("expires_at"))
    return {"status": "created", "token": row["token"], "expires_at": row["expires_at"]}


@router.api_route("/check-login", methods=["GET", "POST"], summary="Check login status", description="Polled by clients until the bot marks the token complete.")
async def check_login(
    request: Request,
    db: Client = Depends(get_supabase),
    settings: Settings = Depends(get_settings),
):
    token = request.query_params.get("token")
    error = _token_error(token)
    if error is not None:
        return error

    try:
        return _login_status(db, token, timedelta(minutes=settings.LOGIN_TOKEN_TTL_MINUTES))
    except PostgrestAPIError as exc:
        logger.error("Failed to check login status: %s", exc.message)
        return _error(500, "Failed to check login status")


@router.post("/get-user-password", summary="Fetch issued password", description="Read the secure password the bot stored in the user's metadata.")
async def get_user_password(body: UserPasswordRequest, db: Client = Depends(get_supabase)):
    if not body.user_id:
        return _error(400, "user_id parameter required")

    try:
        response = db.auth.admin.get_user_by_id(body.user_id)
    except Exception as exc:
        logger.error("Failed to get user metadata: %s", exc)
        return _error(500, "Failed to fetch user data")

    user = response.user if response else None
    metadata = (user.user_metadata if user else None) or {}
    secure_password = metadata.get("secure_password")
    return {"secure_password": secure_password or None, "found": bool(secure_password)}
