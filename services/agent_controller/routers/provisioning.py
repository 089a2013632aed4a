"""
Provisioning Router - create cloud servers running an agent-manager.
"""

import uuid

from fastapi import APIRouter, Depends, status

from shared.auth import require_auth
from shared.errors import BadRequestError

from ..dependencies import get_provisioning_factory, get_provisioning_service
from ..provisioning import ProvisioningProviderFactory
from ..schemas import ProvisionedServerResponse, ProvisionServerRequest, ProviderInfo, ServerType
from ..services.provisioning_service import ProvisioningService

router = APIRouter(prefix="/api/clients", tags=["provisioning"], dependencies=[Depends(require_auth)])


@router.get("/provisioning/providers", response_model=list[ProviderInfo])
def list_providers(factory: ProvisioningProviderFactory = Depends(get_provisioning_factory)):
    return [
        ProviderInfo(type=provider.get_type(), display_name=provider.get_display_name())
        for provider in factory.get_all_providers()
    ]


@router.get(
    "/provisioning/providers/{provider_type}/server-types",
    response_model=list[ServerType],
    response_model_exclude_none=True,
)
async def list_server_types(
    provider_type: str,
    factory: ProvisioningProviderFactory = Depends(get_provisioning_factory),
):
    if not factory.has_provider(provider_type):
        available = ", ".join(factory.get_registered_types())
        raise BadRequestError(f"Provider type '{provider_type}' is not available. Available types: {available}")
    return await factory.get_provider(provider_type).get_server_types()


@router.post(
    "/provisioning/provision",
    response_model=ProvisionedServerResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def provision_server(
    body: ProvisionServerRequest,
    service: ProvisioningService = Depends(get_provisioning_service),
):
    return await service.provision_server(body)


@router.get("/{client_id}/provisioning/info")
async def get_server_info(client_id: uuid.UUID, service: ProvisioningService = Depends(get_provisioning_service)):
    return await service.get_server_info(client_id)


@router.delete("/{client_id}/provisioning", status_code=status.HTTP_204_NO_CONTENT)
async def delete_provisioned_server(
    client_id: uuid.UUID,
    service: ProvisioningService = Depends(get_provisioning_service),
) -> None:
    await service.delete_provisioned_server(client_id)
