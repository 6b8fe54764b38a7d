from fastapi import APIRouter
from clawfix.api.v1.endpoints import diagnose, feedback, stats, patterns, health

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(diagnose.router)
api_router.include_router(feedback.router)
api_router.include_router(stats.router)
api_router.include_router(patterns.router)
