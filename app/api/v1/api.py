from fastapi import APIRouter
from app.api.v1.routes.public import router as public_router
from app.api.v1.routes.dashboard import router as dashboard_router
from app.api.v1.routes.webhooks import router as webhooks_router
from app.api.v1.routes.me import router as me_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(public_router)
api_router.include_router(dashboard_router)
api_router.include_router(webhooks_router)
api_router.include_router(me_router)
