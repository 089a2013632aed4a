"""Hetzner Cloud provider (``https://api.hetzner.cloud/v1``)."""

import logging
import time

import httpx

from shared.errors import BadRequestError

from ..schemas import ServerInfo, ServerType
from .base import (
    CloudApiProvider,
    ProvisionedServer,
    ProvisionServerOptions,
    api_error_detail,
    is_not_found,
    manager_endpoint,
)
from .user_data import render_bootstrap_script

logger = logging.getLogger(__name__)

MAX_USER_DATA_SIZE = 32 * 1024
PRICE_LOCATION = "fsn1"


class HetznerProvider(CloudApiProvider):
    api_base_url = "https://api.hetzner.cloud/v1"
    token_env_var = "HETZNER_API_TOKEN"
    ready_status = "running"

    def get_type(self) -> str:
        return "hetzner"

    def get_display_name(self) -> str:
        return "Hetzner Cloud"

    async def get_server_types(self) -> list[ServerType]:
        try:
            response = await self._call("GET", "/server_types")
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch server types from Hetzner: {e}")
            raise BadRequestError(f"Failed to fetch server types: {api_error_detail(e)}") from e

        server_types = []
        for item in response.json().get("server_types", []):
            if item.get("deprecated"):
                continue
            price = next((p for p in item.get("prices", []) if p.get("location") == PRICE_LOCATION), {})
            monthly = (price.get("price_monthly") or {}).get("gross")
            server_types.append(
                ServerType(
                    id=item["name"],
                    name=item.get("description") or item["name"],
                    cores=item["cores"],
                    memory=item["memory"],
                    disk=item["disk"],
                    price_per_month=float(monthly) if monthly is not None else None,
                    description=item.get("description"),
                )
            )
        return server_types

    def _user_data(self, manager_config: str | None) -> str:
        script = render_bootstrap_script(manager_config or "")
        size = len(script.encode("utf-8"))
        if size > MAX_USER_DATA_SIZE:
            raise BadRequestError(
                f"User data script size ({size / 1024:.2f}KB) exceeds Hetzner Cloud limit of "
                f"{MAX_USER_DATA_SIZE / 1024:.2f}KB. Please reduce the configuration size."
            )
        return script

    async def provision_server(self, options: ProvisionServerOptions) -> ProvisionedServer:
        self._require_token()
        user_data = self._user_data(options.user_data)
        try:
            response = await self._call(
                "POST",
                "/servers",
                json={
                    "name": options.name,
                    "server_type": options.server_type,
                    "image": options.image or "ubuntu-22.04",
                    "location": options.location or PRICE_LOCATION,
                    "ssh_keys": [options.ssh_key] if options.ssh_key else None,
                    "user_data": user_data,
                    "labels": {"managed-by": "agent-controller", "provisioned-at": str(int(time.time()))},
                },
            )
        except httpx.HTTPError as e:
            logger.error(f"Failed to provision Hetzner server: {e}")
            raise BadRequestError(f"Failed to provision server: {api_error_detail(e)}") from e

        server = response.json()["server"]
        server_id = str(server["id"])
        logger.info(f"Created Hetzner server {server_id} ({server['name']})")

        await self.wait_for_server_ready(server_id)
        info = await self.get_server_info(server_id)
        return ProvisionedServer(
            server_id=server_id,
            name=server["name"],
            public_ip=info.public_ip or "",
            private_ip=info.private_ip,
            endpoint=manager_endpoint(info.public_ip or ""),
            status=info.status,
            metadata=info.metadata or {},
        )

    async def delete_server(self, server_id: str) -> None:
        try:
            await self._call("DELETE", f"/servers/{server_id}")
        except httpx.HTTPError as e:
            if is_not_found(e):
                logger.warning(f"Server {server_id} not found, assuming already deleted")
                return
            logger.error(f"Failed to delete Hetzner server {server_id}: {e}")
            raise BadRequestError(f"Failed to delete server: {api_error_detail(e)}") from e
        logger.info(f"Deleted Hetzner server {server_id}")

    async def get_server_info(self, server_id: str) -> ServerInfo:
        try:
            response = await self._call("GET", f"/servers/{server_id}")
        except httpx.HTTPError as e:
            logger.error(f"Failed to get Hetzner server info {server_id}: {e}")
            if is_not_found(e):
                raise BadRequestError(f"Server {server_id} not found") from e
            raise BadRequestError(f"Failed to get server info: {api_error_detail(e)}") from e

        server = response.json()["server"]
        public_net = server.get("public_net") or {}
        private_net = server.get("private_net") or []
        datacenter = server.get("datacenter") or {}
        return ServerInfo(
            server_id=str(server["id"]),
            name=server["name"],
            public_ip=(public_net.get("ipv4") or {}).get("ip") or "",
            private_ip=private_net[0].get("ip") if private_net else None,
            status=server["status"],
            metadata={
                "location": (datacenter.get("location") or {}).get("name"),
                "datacenter": datacenter.get("name"),
            },
        )
