"""Config Router - console bootstrap configuration."""

from fastapi import APIRouter, Depends

from shared.auth import require_auth

from ..dependencies import get_config_service
from ..schemas import ConfigResponse
from ..services.config_service import ConfigService

router = APIRouter(prefix="/api/config", tags=["config"], dependencies=[Depends(require_auth)])


@router.get("", response_model=ConfigResponse, response_model_exclude_none=True)
def get_config(service: ConfigService = Depends(get_config_service)):
    return service.get_config()
