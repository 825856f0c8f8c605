from __future__ import annotations
import fcntl
from pathlib import Path
from typing import Any, Dict, List
import yaml

from modcase.util.logger import get_logger

logger = get_logger("app_configuration")

DEFAULT_DATABASE_PATH = "data/modcase.db"


def _read_yaml_locked(path: Path) -> Any:
    """Parse ``path`` while holding a shared lock, so writers never hand us half a file."""
    with path.open("r", encoding="utf-8") as handle:
        fcntl.flock(handle.fileno(), fcntl.LOCK_SH)
        try:
            return yaml.safe_load(handle)
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The class caches the contents of ``config/app_config.yml`` and exposes
    typed shortcuts for the database location, cache lifetimes and the
    case-counting mode. A missing or unreadable file yields an empty mapping
    and every shortcut falls back to its default.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    def load_from_disk(self) -> Dict[str, Any]:
        try:
            loaded = _read_yaml_locked(self.config_path)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] No config at %s, using defaults.", self.config_path)
            return {}
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            logger.error("[APP CONFIGURATION] Could not read %s: %s", self.config_path, exc)
            return {}

        if loaded is None:
            return {}
        if isinstance(loaded, dict):
            return loaded
        logger.error("[APP CONFIGURATION] Config file %s does not contain a mapping.", self.config_path)
        return {}

    def reload(self) -> Dict[str, Any]:
        """Re-read the YAML file and replace the in-memory copy.

        Returns the raw mapping that was loaded (an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name)
        return section if isinstance(section, dict) else {}

    # Typed shortcuts

    @property
    def database_path(self) -> Path:
        """SQLite file location, relative paths resolved against the working directory."""
        value = self._section("database").get("path") or DEFAULT_DATABASE_PATH
        return Path(str(value)).resolve()

    @property
    def config_ttl_seconds(self) -> float:
        return float(self._section("cache").get("config_ttl_seconds", 60))

    @property
    def feature_ttl_seconds(self) -> float:
        return float(self._section("cache").get("feature_ttl_seconds", 300))

    @property
    def feature_failure_ttl_seconds(self) -> float:
        return float(self._section("cache").get("feature_failure_ttl_seconds", 30))

    @property
    def serialize_case_counting(self) -> bool:
        """Whether warns for the same target are counted one at a time.

        Only a YAML boolean is honoured; anything else keeps the default.
        """
        value = self._section("moderation").get("serialize_case_counting", True)
        if isinstance(value, bool):
            return value
        logger.warning("[APP CONFIGURATION] moderation.serialize_case_counting must be true or false, ignoring %r", value)
        return True

    @property
    def bot_extensions(self) -> List[str]:
        """Dotted module paths of py-cord extensions to load at startup."""
        extensions = self._section("bot").get("extensions") or []
        if not isinstance(extensions, list):
            logger.warning("[APP CONFIGURATION] bot.extensions must be a list, ignoring %r", extensions)
            return []
        return [str(name) for name in extensions]
