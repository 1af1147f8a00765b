"""API routes for the Chat Train backend."""

from fastapi import APIRouter

from backend.routes import flows, monitoring, trainers

api_router = APIRouter(prefix="/api", tags=["api"])

api_router.include_router(monitoring.router)
api_router.include_router(trainers.router, prefix="/trainers", tags=["trainers"])
api_router.include_router(flows.router, prefix="/flows", tags=["flows"])
