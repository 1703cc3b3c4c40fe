import json
import logging
from pathlib import Path
from typing import Any, Dict

DEFAULT_CONFIG: Dict[str, Any] = {
    "username": "New User",
}

logger = logging.getLogger("notes.settings")


class ConfigError(Exception):
    """Raised when the configuration file cannot be written."""


class ConfigStore:
    """
    Handles loading and persisting ``app-config.json``.

    A missing or unreadable file is replaced by the defaults. Updates are not
    locked, so concurrent writers race and the last one wins.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._config: Dict[str, Any] | None = None

    @property
    def config(self) -> Dict[str, Any]:
        if self._config is None:
            self._config = self.load()
        return self._config

    @property
    def username(self) -> str:
        return str(self.config.get("username", DEFAULT_CONFIG["username"]))

    def load(self) -> Dict[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
            if not isinstance(data, dict):
                raise ValueError("configuration must be a JSON object")
        except (OSError, ValueError) as exc:
            logger.warning(
                "Could not load %s (%s), writing default configuration.", self.path, exc
            )
            config = dict(DEFAULT_CONFIG)
            self._write(config)
            return config
        # Stored values win; defaults only backfill missing keys.
        merged = dict(DEFAULT_CONFIG)
        merged.update(data)
        return merged

    def reload(self) -> Dict[str, Any]:
        self._config = self.load()
        return self._config

    def update(self, username: str) -> None:
        config = dict(self.config)
        config["username"] = username
        self._write(config)
        self._config = config
        logger.info("Username updated to %r", username)

    def _write(self, data: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, sort_keys=True)
                handle.write("\n")
            self.path.chmod(0o600)
        except OSError as exc:
            raise ConfigError(f"Could not write {self.path}: {exc}") from exc
