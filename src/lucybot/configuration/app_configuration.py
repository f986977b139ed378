from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from lucybot.handlers.router import RouterMessages
from lucybot.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()
PACKAGE_DIR = Path(__file__).resolve().parents[1]

DEFAULT_CLEANUP_INTERVAL_SECONDS = 3600.0
DEFAULT_CACHE_DB_PATH = "./data/shortterm.db"


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The class caches the contents of ``./config/app_config.yml`` and exposes
    typed shortcuts with built-in defaults, so a missing file or a missing key
    never stops the bot from starting. Reads take a shared fcntl lock.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                return data if isinstance(data, dict) else {}
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    def _section(self, key: str) -> Dict[str, Any]:
        value = self._data.get(key, {})
        return value if isinstance(value, dict) else {}

    def _resolve_path(self, value: Any, default: Path) -> Path:
        if not value:
            return default
        path = Path(str(value)).expanduser()
        if not path.is_absolute():
            path = self.config_path.parent.parent / path
        return path.resolve()

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns an empty dict when the file is missing or unreadable.
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """The cached configuration mapping (shallow reference, do not mutate)."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def commands_dir(self) -> Path:
        """Directory scanned for command handler files."""
        return self._resolve_path(self._section("handlers").get("commands_dir"), PACKAGE_DIR / "commands")

    @property
    def events_dir(self) -> Path:
        """Directory scanned for event handler files."""
        return self._resolve_path(self._section("handlers").get("events_dir"), PACKAGE_DIR / "events")

    @property
    def plugins_dir(self) -> Path | None:
        """Directory scanned for plugin files; ``None`` disables plugins."""
        value = self._section("handlers").get("plugins_dir")
        return self._resolve_path(value, PACKAGE_DIR / "plugins") if value else None

    @property
    def router_messages(self) -> RouterMessages:
        """User-facing texts for unknown commands, cooldowns, denials and failures."""
        return RouterMessages.from_mapping(self._section("messages"))

    @property
    def cache_db_path(self) -> Path:
        """Location of the local SQLite cache/session database."""
        default = self._resolve_path(DEFAULT_CACHE_DB_PATH, Path(DEFAULT_CACHE_DB_PATH).resolve())
        return self._resolve_path(self._section("database").get("cache_path"), default)

    @property
    def cleanup_interval(self) -> float:
        """Seconds between two purges of expired cache rows. Default is one hour."""
        value = self._section("database").get("cleanup_interval_seconds", DEFAULT_CLEANUP_INTERVAL_SECONDS)
        try:
            interval = float(value)
        except (TypeError, ValueError):
            logger.warning("[APP CONFIGURATION] Invalid cleanup interval %r, using default", value)
            return DEFAULT_CLEANUP_INTERVAL_SECONDS
        return interval if interval > 0 else DEFAULT_CLEANUP_INTERVAL_SECONDS

    @property
    def cache_migrations_dir(self) -> Path | None:
        value = self._section("database").get("cache_migrations_dir")
        return self._resolve_path(value, Path(".")) if value else None

    @property
    def persistent_migrations_dir(self) -> Path | None:
        value = self._section("database").get("persistent_migrations_dir")
        return self._resolve_path(value, Path(".")) if value else None

    @property
    def presence_text(self) -> str:
        """Activity text shown once the bot is ready."""
        return str(self._section("presence").get("text") or "over the server")


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
