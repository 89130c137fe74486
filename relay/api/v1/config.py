"""Gateway configuration endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends

from relay.config import RelaySettings
from relay.dependencies import get_app_settings, get_resolver
from relay.schemas.openai import AuthInfo, ConfigResponse, ProviderInfo
from relay.services.resolver import ModelResolver

router = APIRouter(tags=["config"])


@router.get("/config", response_model=ConfigResponse, operation_id="getConfig")
async def get_config(
    resolver: Annotated[ModelResolver, Depends(get_resolver)],
    settings: Annotated[RelaySettings, Depends(get_app_settings)],
) -> ConfigResponse:
    """Get the relay configuration (provider, tiers, auth policy).

    Never exposes the API key itself.
    """
    return ConfigResponse(
        provider=ProviderInfo(name="ollama", base_url=settings.ollama_base_url),
        tiers=resolver.tiers.as_dict(),
        auth=AuthInfo(
            local_bypass=settings.local_bypass,
            key_required=bool(settings.api_key),
        ),
    )
