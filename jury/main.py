"""
TheJury API
===========

FastAPI backend for TheJury polls.

Endpoints:
- GET /: Build info
- GET /health: Liveness check
- /api/...: see jury.api
- /ws/polls/{poll_id}: live poll feed
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jury import __version__
from jury.config import BUILD_ID, CORS_ORIGINS, GITHUB_COMMIT, print_config_summary
from jury.models.responses import HealthResponse
from jury.utils.rate_limiter import rate_limiter_cleanup_task

from jury.api import (
    api_keys,
    billing,
    demo,
    domains,
    embeds,
    experiments,
    polls,
    presenter,
    profiles,
    teams,
    templates,
    v1,
    votes,
    webhooks,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


# ============================================================
# Lifespan
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    print("\n" + "=" * 80)
    print("🚀 STARTING THEJURY API")
    print("=" * 80)
    print_config_summary()

    rate_limiter_task = asyncio.create_task(rate_limiter_cleanup_task())
    print("✅ Rate limiter cleanup task started")
    print("=" * 80 + "\n")

    yield

    print("\n" + "=" * 80)
    print("🛑 SHUTTING DOWN THEJURY API")
    print("=" * 80)
    rate_limiter_task.cancel()
    results = await asyncio.gather(rate_limiter_task, return_exceptions=True)
    for result in results:
        if isinstance(result, Exception) and not isinstance(result, asyncio.CancelledError):
            print(f"   ⚠️  Task error during shutdown: {result}")
    print("✅ SHUTDOWN COMPLETE")
    print("=" * 80 + "\n")


# ============================================================
# App
# ============================================================

app = FastAPI(
    title="TheJury API",
    description="Polls, surveys and live presentations",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials="*" not in CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Invalid input is a 400 with the first problem as ``detail``."""
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return JSONResponse(status_code=400, content={"detail": message, "errors": jsonable_encoder(errors)})


# ============================================================
# Routers
# ============================================================

app.include_router(polls.router)
app.include_router(votes.router)
app.include_router(demo.router, prefix="/api/live-polls")
app.include_router(demo.router, prefix="/api/demo-polls")
app.include_router(presenter.router)
app.include_router(embeds.router)
app.include_router(v1.router)
app.include_router(api_keys.router)
app.include_router(webhooks.router)
app.include_router(domains.router)
app.include_router(billing.router)
app.include_router(teams.router)
app.include_router(experiments.router)
app.include_router(templates.router)
app.include_router(profiles.router)


# ============================================================
# Health
# ============================================================

@app.get("/", response_model=HealthResponse)
async def root():
    """Build info for the running deployment."""
    return HealthResponse(
        service="thejury-api",
        status="ok",
        build_id=BUILD_ID,
        github_commit=GITHUB_COMMIT,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@app.get("/health")
async def health():
    return {"status": "healthy"}


def main():
    import uvicorn

    print("=" * 60)
    print("🚀 Starting TheJury API")
    print("=" * 60)
    print(f"Build ID: {BUILD_ID}")
    print(f"GitHub Commit: {GITHUB_COMMIT}")
    print("=" * 60)

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")


if __name__ == "__main__":
    main()
