"""v1 API router."""

from fastapi import APIRouter, Depends

from relay.api.v1.chat import router as chat_router
from relay.api.v1.config import router as config_router
from relay.api.v1.models import router as models_router
from relay.dependencies import require_api_key

v1_router = APIRouter(prefix="/v1", dependencies=[Depends(require_api_key)])
v1_router.include_router(models_router)
v1_router.include_router(config_router)
v1_router.include_router(chat_router)

__all__ = ["v1_router"]
