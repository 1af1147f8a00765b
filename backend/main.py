"""
Chat Train FastAPI application entrypoint.

Run with: uvicorn backend.main:app --reload
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from backend import auth
from backend.database import Base, engine, migrate_if_needed
from backend.models_db import TrainerFlowModel, TrainerModel  # noqa: F401  (register tables)
from backend.routes import api_router
from backend.utils.logging import configure_logging

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CHATTRAIN_CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if o.strip()
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and create DB tables on startup."""
    configure_logging()
    Base.metadata.create_all(bind=engine)
    migrate_if_needed()
    yield


app = FastAPI(
    title="Chat Train API",
    description="""Build, validate and publish conversational training flows.

## Authentication
When `CHATTRAIN_API_KEY` is set, include it in requests:
- **Header:** `X-API-Key: your-key`
- **Query:** `?api_key=your-key`
- **Bearer:** `Authorization: Bearer your-key`

Endpoints `/api/health` and `/api/metrics` do not require a key (for load balancers).

## Rate limiting
Configurable via `CHATTRAIN_RATE_LIMIT_REQUESTS` (default 120) per `CHATTRAIN_RATE_LIMIT_WINDOW_SEC` (default 60). 429 when exceeded.
""",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS for local React dev (Vite default port 5173)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class AuthAndRateLimitMiddleware(BaseHTTPMiddleware):
    """Optional API key auth and rate limiting for /api/*."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not path.startswith("/api/"):
            return await call_next(request)
        key = auth.extract_api_key(request)
        try:
            auth.check_rate_limit(auth.get_client_id(request, key))
        except HTTPException as e:
            return JSONResponse(status_code=e.status_code, content={"detail": e.detail})
        if auth.API_KEY_ENV and not auth.skip_auth_path(path):
            if not key:
                return JSONResponse(status_code=401, content={"detail": "Missing API key. Provide X-API-Key or api_key."})
            if key != auth.API_KEY_ENV:
                return JSONResponse(status_code=403, content={"detail": "Invalid API key."})
        return await call_next(request)


app.add_middleware(AuthAndRateLimitMiddleware)
app.include_router(api_router)


@app.get("/")
def root():
    return {"service": "Chat Train", "docs": "/docs", "api": "/api"}
