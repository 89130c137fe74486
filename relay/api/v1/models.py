"""Models listing endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from relay.dependencies import get_resolver
from relay.schemas.openai import ModelInfo, ModelListResponse, TierListResponse
from relay.services.resolver import ModelResolver

router = APIRouter(tags=["models"])


@router.get("/models", response_model=ModelListResponse, operation_id="listModels")
async def list_models(
    resolver: Annotated[ModelResolver, Depends(get_resolver)],
) -> ModelListResponse:
    """List available models (OpenAI-compatible format).

    Returns the distinct backend models referenced by the tier table.
    """
    models = [ModelInfo(id=model.id) for model in resolver.tiers.models()]
    return ModelListResponse(data=models)


@router.get("/models/tiers", response_model=TierListResponse, operation_id="listModelTiers")
async def list_model_tiers(
    resolver: Annotated[ModelResolver, Depends(get_resolver)],
) -> TierListResponse:
    """List tier-to-model mappings."""
    return TierListResponse(tiers=resolver.tiers.as_dict())
