from .settings import ManagerSettings, get_settings

__all__ = ["ManagerSettings", "get_settings"]
