"""Route aggregation -- combines all API sub-routers into a single router."""

from fastapi import APIRouter

from codeeval.api.eval import router as eval_router
from codeeval.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(eval_router)
