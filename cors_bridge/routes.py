from fastapi import APIRouter

from cors_bridge.proxy.route import router as proxy_router

router = APIRouter()

router.include_router(proxy_router)
