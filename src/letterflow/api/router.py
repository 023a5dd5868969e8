"""Master API router mounted at /api/v1."""

from fastapi import APIRouter

from letterflow.api.routes import health, letters, notifications, public

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(letters.router)
api_router.include_router(public.router)
api_router.include_router(notifications.router)
