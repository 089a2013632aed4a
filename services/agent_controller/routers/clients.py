"""
Clients Router - registry of remote agent-managers.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status

from shared.auth import require_auth

from ..dependencies import get_clients_service
from ..schemas import ClientResponse, CreateClientRequest, CreateClientResponse, UpdateClientRequest
from ..services.clients_service import ClientsService

router = APIRouter(prefix="/api/clients", tags=["clients"], dependencies=[Depends(require_auth)])


@router.get("", response_model=list[ClientResponse], response_model_exclude_none=True)
async def list_clients(
    limit: int = Query(10, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: ClientsService = Depends(get_clients_service),
):
    return await service.find_all(limit=limit, offset=offset)


@router.post(
    "",
    response_model=CreateClientResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def create_client(body: CreateClientRequest, service: ClientsService = Depends(get_clients_service)):
    return service.create(body)


@router.get("/{client_id}", response_model=ClientResponse, response_model_exclude_none=True)
async def get_client(client_id: uuid.UUID, service: ClientsService = Depends(get_clients_service)):
    return await service.find_one(client_id)


@router.post("/{client_id}", response_model=ClientResponse, response_model_exclude_none=True)
async def update_client(
    client_id: uuid.UUID,
    body: UpdateClientRequest,
    service: ClientsService = Depends(get_clients_service),
):
    return await service.update(client_id, body)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(client_id: uuid.UUID, service: ClientsService = Depends(get_clients_service)) -> None:
    service.remove(client_id)
