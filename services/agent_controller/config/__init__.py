from .settings import ControllerSettings, get_settings

__all__ = ["ControllerSettings", "get_settings"]
