"""StartupsAreEasy internal API: FastAPI application entry point."""

import logging

from fastapi import FastAPI

from startupsareeasy.auth.routes import router as auth_router
from startupsareeasy.config.cors import SecurityHeadersMiddleware, configure_cors
from startupsareeasy.config.settings import get_settings
from startupsareeasy.diagnostics.routes import router as diagnostics_router
from startupsareeasy.middleware.error_handler import register_error_handlers
from startupsareeasy.middleware.rate_limiter import RateLimiterMiddleware
from startupsareeasy.middleware.request_id import RequestIDMiddleware

logging.basicConfig(
    level=get_settings().LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(
    title="StartupsAreEasy API",
    description=(
        "Internal endpoints backing the StartupsAreEasy client.\n\n"
        "## Features\n"
        "- Telegram bot login: one-time login tokens, status polling, credential hand-off\n"
        "- Backend diagnostics covering tables, auth, stored procedures and the login function\n"
        "- Per-client rate limiting on the login endpoints\n\n"
        "Post, startup, like and comment data is read and written by clients directly "
        "against the hosted REST API."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints"},
        {"name": "Auth", "description": "Bot login: create token, check login, fetch password"},
        {"name": "Diagnostics", "description": "Backend configuration checks"},
    ],
)

# --- Middleware (order matters: outermost first) ---
app.add_middleware(RequestIDMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
configure_cors(app)
app.add_middleware(RateLimiterMiddleware)

# --- Error handlers ---
register_error_handlers(app)

# --- Routes ---
app.include_router(auth_router)
app.include_router(diagnostics_router)


@app.get("/health", tags=["Health"], summary="Health check", description="Returns OK if the service is running.")
async def health_check():
    return {"status": "ok"}
