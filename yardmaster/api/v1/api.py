from fastapi import APIRouter

from yardmaster.api.v1.endpoints import approval, branding, eligibility, movements, planning, stats

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(planning.router)
api_router.include_router(approval.router)
api_router.include_router(movements.router)
api_router.include_router(eligibility.router)
api_router.include_router(branding.router)
api_router.include_router(stats.router)
