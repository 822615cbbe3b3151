import logging

from fastapi import APIRouter

from rewrite_proxy.app_proxy import router as proxy_router
from rewrite_proxy.models import HealthResponse
from rewrite_proxy.vars import PROXY_ROUTE

router = APIRouter()
logger = logging.getLogger("uvicorn.error")

logger.info(f"Serving proxy at {PROXY_ROUTE}")


@router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse()


router.include_router(proxy_router)
