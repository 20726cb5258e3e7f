from __future__ import annotations
from pathlib import Path
import fcntl
import math
from typing import Any, Dict
import yaml

from modwarden.configuration.moderation_settings import ModerationSettings
from modwarden.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()
DEFAULT_DB_PATH = Path("./data/modwarden.db")
DEFAULT_POLL_INTERVAL_SECONDS = 60.0


class AppConfig:
    """File-lock based accessor around the YAML-based application configuration.

    The class caches contents of ``./config/app_config.yml``, exposes dictionary-like
    access helpers, and resolves the moderation section through
    :class:`ModerationSettings`. Uses fcntl file locks for safe concurrent access
    across processes.
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
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
            return {}
        except (OSError, yaml.YAMLError) as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if data is None:
            return {}
        if not isinstance(data, dict):
            logger.error("[APP CONFIGURATION] Config %s must contain a mapping at the top level.", self.config_path)
            return {}
        return data

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns the raw mapping that was loaded (which will be an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping.

        The returned dict is the internal cache (shallow reference). Callers
        should not mutate it; use get(...) or the provided convenience
        properties instead.
        """
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def moderation(self) -> ModerationSettings:
        """Return a fresh read-only snapshot of the ``moderation`` section.

        Each access re-parses the cached mapping, so a :meth:`reload` is picked
        up by the next command without restarting the bot.
        """
        return ModerationSettings.from_mapping(self._data.get("moderation"))

    @property
    def database_path(self) -> Path:
        """Return the SQLite database path (``database.path``), default ``./data/modwarden.db``."""
        db_config = self._data.get("database", {})
        if isinstance(db_config, dict) and db_config.get("path"):
            return Path(str(db_config["path"])).resolve()
        return DEFAULT_DB_PATH.resolve()

    @property
    def tempban_poll_interval(self) -> float:
        """Return the tempban scheduler poll interval in seconds. Default is 60; must be positive and finite."""
        scheduler_config = self._data.get("tempban_scheduler", {})
        if isinstance(scheduler_config, dict):
            try:
                interval = float(scheduler_config.get("poll_interval_seconds", DEFAULT_POLL_INTERVAL_SECONDS))
            except (TypeError, ValueError):
                logger.warning("[APP CONFIGURATION] Invalid tempban_scheduler.poll_interval_seconds; using default")
                return DEFAULT_POLL_INTERVAL_SECONDS
            if not math.isfinite(interval) or interval <= 0:
                logger.warning(
                    "[APP CONFIGURATION] tempban_scheduler.poll_interval_seconds must be positive, got %s; using default",
                    interval,
                )
                return DEFAULT_POLL_INTERVAL_SECONDS
            return interval
        return DEFAULT_POLL_INTERVAL_SECONDS


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
