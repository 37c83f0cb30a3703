from fastapi import APIRouter

from app.api.v1.proposals import router as proposals_router

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(proposals_router)
