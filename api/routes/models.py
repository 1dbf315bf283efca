"""
Model Routes - Model Catalog
"""

from fastapi import APIRouter

from api.models import ModelsRequest, ModelsResponse, ModelInfo
from api.dependencies import get_app_config, get_completion_service
from core.ai.credentials import ClientKeys
from utils.logger import get_logger

logger = get_logger('api.routes.models')

router = APIRouter(prefix="/api", tags=["models"])


@router.post("/models", response_model=ModelsResponse)
async def list_models(request: ModelsRequest):
    """Models usable with the supplied keys (or the server keys)"""
    config = get_app_config()
    service = get_completion_service()

    keys = ClientKeys.from_raw(request.as_family_map(), config.placeholder_policy)
    models = service.router.available_models(keys)

    logger.debug(f"Listing {len(models)} models")
    return ModelsResponse(models=[ModelInfo(**m) for m in models])
