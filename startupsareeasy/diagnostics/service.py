"""Backend health checks run by the diagnostics endpoint.

Each check records a result instead of raising, so one broken table or
missing key never hides the outcome of the other checks.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Literal

import httpx
from pydantic import BaseModel
from supabase import Client

from startupsareeasy.config.settings import Settings
from startupsareeasy.db.models import POSTS, PROFILES, PUBLIC_TABLES, RPC_POSTS_WITH_DETAILS

logger = logging.getLogger(__name__)

Status = Literal["success", "warning", "error"]

# Widget payload with a bogus hash; the login function must refuse it
FORGED_TELEGRAM_PAYLOAD = {"id": 999999999, "first_name": "Debug", "auth_date": 0, "hash": "invalid"}

REQUIRED_ENV = ("SUPABASE_URL", "SUPABASE_ANON_KEY")
OPTIONAL_ENV = ("SUPABASE_SERVICE_ROLE_KEY", "TELEGRAM_BOT_TOKEN")


class DiagnosticResult(BaseModel):
    name: str
    status: Status
    message: str
    details: Any = None
    count: int | None = None


class DiagnosticSummary(BaseModel):
    total: int
    success: int
    warning: int
    error: int


class DiagnosticsReport(BaseModel):
    success: bool = True
    summary: DiagnosticSummary
    results: list[DiagnosticResult]
    timestamp: str


def _error(name: str, prefix: str, exc: Exception) -> DiagnosticResult:
    logger.warning("Diagnostic '%s' failed: %s", name, exc)
    return DiagnosticResult(name=name, status="error", message=f"{prefix}: {exc}")


def check_connection(db: Client) -> DiagnosticResult:
    name = "Database Connection"
    try:
        db.table(PROFILES).select("id", count="exact", head=True).execute()
    except Exception as exc:
        return _error(name, "Database connection failed", exc)
    return DiagnosticResult(name=name, status="success", message="Successfully connected to database")


def check_tables(db: Client) -> list[DiagnosticResult]:
    results = []
    for table in PUBLIC_TABLES:
        name = f"{table.capitalize()} Table"
        try:
            response = db.table(table).select("*", count="exact", head=True).execute()
        except Exception as exc:
            results.append(_error(name, "Table error", exc))
            continue
        results.append(DiagnosticResult(
            name=name, status="success", message="Table exists and is accessible", count=response.count or 0
        ))
    return results


def check_foreign_keys(db: Client) -> DiagnosticResult:
    name = "Foreign Key Relationships"
    try:
        response = db.table(POSTS).select("id, startup:startups!posts_startup_id_fkey(id, name)").limit(1).execute()
    except Exception as exc:
        return _error(name, "Foreign key error", exc)
    return DiagnosticResult(
        name=name, status="success", message="Foreign key relationships are working", details=response.data
    )


def check_auth_users(db: Client, settings: Settings) -> DiagnosticResult:
    name = "Auth Users Table"
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        return DiagnosticResult(
            name=name,
            status="warning",
            message="Service role key not available - cannot check auth.users",
            details={"note": "Set SUPABASE_SERVICE_ROLE_KEY for full auth diagnostics"},
        )
    try:
        users = db.auth.admin.list_users()
    except Exception as exc:
        return _error(name, "Auth users error", exc)
    return DiagnosticResult(name=name, status="success", message="Auth users table is accessible", count=len(users))


def check_public_read(db: Client) -> DiagnosticResult:
    name = "RLS Policies"
    try:
        db.table(PROFILES).select("username").limit(1).execute()
    except Exception as exc:
        logger.warning("Public read check failed: %s", exc)
        return DiagnosticResult(
            name=name,
            status="warning",
            message="RLS policies may be too restrictive for read access",
            details={"read_working": False, "profile_error": str(exc)},
        )
    return DiagnosticResult(
        name=name,
        status="success",
        message="RLS policies allow public read access",
        details={"read_working": True},
    )


def check_environment(settings: Settings) -> DiagnosticResult:
    required = [{"key": key, "exists": bool(getattr(settings, key, ""))} for key in REQUIRED_ENV]
    optional = [{"key": key, "exists": bool(getattr(settings, key, ""))} for key in OPTIONAL_ENV]
    missing = [env["key"] for env in required if not env["exists"]]
    return DiagnosticResult(
        name="Environment Variables",
        status="error" if missing else "success",
        message=f"Missing required variables: {', '.join(missing)}" if missing else "All required environment variables are set",
        details={"required": required, "optional": optional},
    )


def check_functions(db: Client) -> DiagnosticResult:
    name = "Database Functions"
    try:
        response = db.rpc(RPC_POSTS_WITH_DETAILS, {"user_id_param": None}).execute()
    except Exception as exc:
        return _error(name, "Database function error", exc)
    return DiagnosticResult(
        name=name,
        status="success",
        message="Database functions are working",
        details={"function_result": len(response.data or [])},
    )


async def check_telegram_login(http: httpx.AsyncClient, settings: Settings) -> DiagnosticResult:
    """A forged widget payload must be rejected with 401."""
    name = "Telegram Login Function"
    try:
        response = await http.post(settings.TELEGRAM_FUNCTION_URL, json=FORGED_TELEGRAM_PAYLOAD)
    except httpx.HTTPError as exc:
        return _error(name, "Telegram login function unreachable", exc)

    if response.status_code == 401:
        return DiagnosticResult(
            name=name, status="success", message="Login function rejects invalid signatures", details={"status": 401}
        )
    if response.is_success:
        return DiagnosticResult(
            name=name,
            status="error",
            message="Login function accepted a forged payload",
            details={"status": response.status_code},
        )
    return DiagnosticResult(
        name=name,
        status="warning",
        message=f"Unexpected status from login function: {response.status_code}",
        details={"status": response.status_code, "body": response.text[:200]},
    )


def summarize(results: list[DiagnosticResult]) -> DiagnosticSummary:
    return DiagnosticSummary(
        total=len(results),
        success=sum(1 for r in results if r.status == "success"),
        warning=sum(1 for r in results if r.status == "warning"),
        error=sum(1 for r in results if r.status == "error"),
    )


async def run_diagnostics(db: Client, settings: Settings, http: httpx.AsyncClient) -> DiagnosticsReport:
    results = [check_connection(db), *check_tables(db), check_foreign_keys(db)]
    results.append(check_auth_users(db, settings))
    results.append(check_public_read(db))
    results.append(check_environment(settings))
    results.append(check_functions(db))
    results.append(await check_telegram_login(http, settings))

    summary = summarize(results)
    logger.info("Diagnostics: %d ok, %d warnings, %d errors", summary.success, summary.warning, summary.error)
    return DiagnosticsReport(
        summary=summary, results=results, timestamp=datetime.now(timezone.utc).isoformat()
    )
