from .engine import EngineConfig
from .loader import ConfigLoader, get_config, load_config, reset_config

__all__ = ["ConfigLoader", "EngineConfig", "get_config", "load_config", "reset_config"]
