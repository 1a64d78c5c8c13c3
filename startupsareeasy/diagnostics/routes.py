"""Diagnostics endpoint."""

import httpx
from fastapi import APIRouter, Depends
from supabase import Client

from startupsareeasy.config.settings import Settings, get_settings
from startupsareeasy.db.client import get_supabase
from startupsareeasy.diagnostics.service import DiagnosticsReport, run_diagnostics

router = APIRouter(prefix="/api", tags=["Diagnostics"])


async def get_http_client(settings: Settings = Depends(get_settings)):
    async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as http:
        yield http


@router.get("/diagnostics", response_model=DiagnosticsReport, summary="Backend diagnostics", description="Check database tables, auth access, stored procedures and the Telegram login function.")
async def diagnostics(
    db: Client = Depends(get_supabase),
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    return await run_diagnostics(db, settings, http)
