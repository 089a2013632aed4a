from .base import (
    CloudApiProvider,
    ProvisionedServer,
    ProvisioningProvider,
    ProvisioningProviderFactory,
    ProvisionServerOptions,
)
from .digitalocean import DigitalOceanProvider
from .hetzner import HetznerProvider

__all__ = [
    "CloudApiProvider",
    "DigitalOceanProvider",
    "HetznerProvider",
    "ProvisionedServer",
    "ProvisioningProvider",
    "ProvisioningProviderFactory",
    "ProvisionServerOptions",
]
