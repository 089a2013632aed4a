"""DigitalOcean provider (``https://api.digitalocean.com/v2``)."""

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


class DigitalOceanProvider(CloudApiProvider):
    api_base_url = "https://api.digitalocean.com/v2"
    token_env_var = "DIGITALOCEAN_API_TOKEN"
    ready_status = "active"

    def get_type(self) -> str:
        return "digital-ocean"

    def get_display_name(self) -> str:
        return "DigitalOcean"

    async def get_server_types(self) -> list[ServerType]:
        try:
            response = await self._call("GET", "/sizes")
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch server types from DigitalOcean: {e}")
            raise BadRequestError(f"Failed to fetch server types: {api_error_detail(e)}") from e

        return [
            ServerType(
                id=size["slug"],
                name=size["slug"].upper(),
                cores=size["vcpus"],
                memory=size["memory"] / 1024,
                disk=size["disk"],
                price_per_month=size.get("price_monthly"),
                description=size.get("description") or size["slug"],
            )
            for size in response.json().get("sizes", [])
            if size.get("available") and not size.get("deprecated")
        ]

    async def _ssh_key_ids(self, ssh_key: str) -> list[int]:
        """Resolve an id, fingerprint or public key to account key ids."""
        try:
            keys = (await self._call("GET", "/account/keys")).json().get("ssh_keys", [])
        except httpx.HTTPError as e:
            logger.warning(f"Failed to lookup SSH keys: {e}")
            return []

        if ssh_key.isdigit() and any(key["id"] == int(ssh_key) for key in keys):
            return [int(ssh_key)]
        for key in keys:
            if ssh_key in (key.get("fingerprint"), key.get("public_key")):
                return [key["id"]]
        logger.warning(f"SSH key not found in DigitalOcean account: {ssh_key}")
        return []

    async def provision_server(self, options: ProvisionServerOptions) -> ProvisionedServer:
        self._require_token()
        user_data = render_bootstrap_script(options.user_data or "")
        ssh_keys = await self._ssh_key_ids(options.ssh_key) if options.ssh_key else None
        try:
            response = await self._call(
                "POST",
                "/droplets",
                json={
                    "name": options.name,
                    "region": options.location or "fra1",
                    "size": options.server_type,
                    "image": options.image or "ubuntu-22-04-x64",
                    "ssh_keys": ssh_keys,
                    "user_data": user_data,
                    "tags": ["managed-by-agent-controller", f"provisioned-at-{int(time.time())}"],
                },
            )
        except httpx.HTTPError as e:
            logger.error(f"Failed to provision DigitalOcean droplet: {e}")
            raise BadRequestError(f"Failed to provision server: {api_error_detail(e)}") from e

        droplet = response.json()["droplet"]
        server_id = str(droplet["id"])
        logger.info(f"Created DigitalOcean droplet {server_id} ({droplet['name']})")

        await self.wait_for_server_ready(server_id)
        info = await self.get_server_info(server_id)
        return ProvisionedServer(
            server_id=server_id,
            name=droplet["name"],
            public_ip=info.public_ip or "",
            private_ip=info.private_ip,
            endpoint=manager_endpoint(info.public_ip or ""),
            status=info.status,
            metadata=info.metadata or {},
        )

    async def delete_server(self, server_id: str) -> None:
        try:
            await self._call("DELETE", f"/droplets/{server_id}")
        except httpx.HTTPError as e:
            if is_not_found(e):
                logger.warning(f"Droplet {server_id} not found, assuming already deleted")
                return
            logger.error(f"Failed to delete DigitalOcean droplet {server_id}: {e}")
            raise BadRequestError(f"Failed to delete server: {api_error_detail(e)}") from e
        logger.info(f"Deleted DigitalOcean droplet {server_id}")

    async def get_server_info(self, server_id: str) -> ServerInfo:
        try:
            response = await self._call("GET", f"/droplets/{server_id}")
        except httpx.HTTPError as e:
            logger.error(f"Failed to get DigitalOcean droplet info {server_id}: {e}")
            if is_not_found(e):
                raise BadRequestError(f"Server {server_id} not found") from e
            raise BadRequestError(f"Failed to get server info: {api_error_detail(e)}") from e

        droplet = response.json()["droplet"]
        networks = (droplet.get("networks") or {}).get("v4") or []

        def address(kind: str) -> str | None:
            return next((net["ip_address"] for net in networks if net.get("type") == kind), None)

        region = droplet.get("region") or {}
        return ServerInfo(
            server_id=str(droplet["id"]),
            name=droplet["name"],
            public_ip=address("public") or "",
            private_ip=address("private"),
            status=droplet["status"],
            metadata={"region": region.get("slug"), "regionName": region.get("name")},
        )
