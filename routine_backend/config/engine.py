"""
Engine configuration
Built once at startup from the loaded configuration and passed to constructors
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from routine_backend.core.errors import ConfigError

from .loader import ConfigLoader, get_config_dir

DEFAULT_DEBOUNCE_MS = 500
DEFAULT_NAMESPACE = "default"


@dataclass(frozen=True)
class EngineConfig:
    """Settings the sync engine needs, threaded through constructor arguments"""

    store_path: str
    auth_token: Optional[str] = None
    namespace: str = DEFAULT_NAMESPACE
    debounce_seconds: float = DEFAULT_DEBOUNCE_MS / 1000
    template_file: Optional[str] = None

    @classmethod
    def from_loader(cls, loader: ConfigLoader) -> "EngineConfig":
        """Build engine configuration from a ConfigLoader

        Raises:
            ConfigError: if a value has the wrong type or range
        """
        store_path = loader.get("store.path", "") or str(get_config_dir() / "routine.db")

        auth_token = loader.get("identity.auth_token", "") or None
        if auth_token is not None and not isinstance(auth_token, str):
            raise ConfigError("identity.auth_token must be a string")

        namespace = loader.get("identity.namespace", DEFAULT_NAMESPACE) or DEFAULT_NAMESPACE
        if not isinstance(namespace, str):
            raise ConfigError("identity.namespace must be a string")

        debounce_ms = loader.get("sync.debounce_ms", DEFAULT_DEBOUNCE_MS)
        try:
            debounce_ms = float(debounce_ms)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"sync.debounce_ms must be a number: {debounce_ms!r}") from e
        if debounce_ms < 0:
            raise ConfigError("sync.debounce_ms must not be negative")

        template_file = loader.get("template.file", "") or None
        if template_file is not None:
            template_file = str(Path(template_file).expanduser())

        return cls(
            store_path=str(Path(store_path).expanduser()),
            auth_token=auth_token.strip() if auth_token else None,
            namespace=namespace,
            debounce_seconds=debounce_ms / 1000,
            template_file=template_file,
        )
