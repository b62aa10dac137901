"""API routes package."""

from fastapi import APIRouter

from app.api import usage

api_router = APIRouter()

api_router.include_router(usage.router, tags=["usage"])
