import logging
import os
import pathlib
import re
import yaml
from typing import Optional, Dict, Any

from headtail.workload.log import FileLog, InMemoryLog, SharedLog

logger = logging.getLogger(__name__)


class ConfigFile:
    @classmethod
    def load(cls, file_path: str) -> "ConfigFile":
        with open(file_path, "r", encoding="UTF-8") as file:
            raw = yaml.load(file, Loader=yaml.Loader)
        return cls(raw)

    def __init__(self, raw_parsed: Dict[str, Any]):
        self._raw = raw_parsed

    @property
    def output_directory(self) -> pathlib.Path:
        path = self._extract_path("output_directory")
        if path is None:
            raise KeyError("output_directory")
        return path

    @property
    def log_file(self) -> Optional[pathlib.Path]:
        return self._extract_path("log_file")

    @property
    def shared_log_kind(self) -> str:
        if "shared_log" not in self._raw:
            return "memory"
        return self._raw["shared_log"].get("kind", "memory")

    @property
    def shared_log_path(self) -> Optional[pathlib.Path]:
        if "shared_log" not in self._raw or "path" not in self._raw["shared_log"]:
            return None
        return pathlib.Path(self._raw["shared_log"]["path"])

    def append_loop_defaults(self) -> Dict[str, Any]:
        """
        Request values used when an append loop request omits them.
        """
        if "append_loop" not in self._raw:
            return {}
        return dict(self._raw["append_loop"])

    def create_shared_log(self) -> SharedLog:
        kind = self.shared_log_kind
        if kind == "memory":
            return InMemoryLog()
        elif kind == "file":
            path = self.shared_log_path
            if path is None:
                raise KeyError("shared_log.path")
            return FileLog(path)
        else:
            raise ValueError("Unrecognized shared log kind '{}'".format(kind))

    def _extract_path(self, config_key: str) -> Optional[pathlib.Path]:
        if config_key not in self._raw:
            return None
        raw_value = self._raw[config_key]

        if _ENV_VAR_REGEX.fullmatch(raw_value) is not None:
            # Treat it as an environment variable.
            if raw_value not in os.environ:
                logger.warning(
                    "Specified an environment variable '%s' for config '%s', but the variable was not set.",
                    raw_value,
                    config_key,
                )
                return None
            return pathlib.Path(os.environ[raw_value])
        else:
            # Treat is as a path.
            return pathlib.Path(raw_value)


_ENV_VAR_REGEX = re.compile("[A-Z][A-Z0-9_]*")
