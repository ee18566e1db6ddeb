import os
from pathlib import Path
from typing import Optional

import yaml

from .config import Config
from .errors import RCFileError


class RCFile:
    """Client state kept in the user's home directory (one ``server`` field)."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else Path(os.path.expanduser("~")) / Config.RC_FILE_NAME
        self.server = ""

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> "RCFile":
        try:
            with open(self.path, "r") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise RCFileError(f"read file {self.path} failed: {e}") from e
        except yaml.YAMLError as e:
            raise RCFileError(f"unmarshal {self.path} failed: {e}") from e
        if not isinstance(data, dict):
            raise RCFileError(f"unmarshal {self.path} failed: expected a mapping")
        self.server = data.get("server") or ""
        return self

    def save(self) -> None:
        try:
            with open(self.path, "w") as f:
                yaml.safe_dump({"server": self.server}, f, default_flow_style=False)
        except OSError as e:
            raise RCFileError(f"write file {self.path} failed: {e}") from e


def resolve_server(server: Optional[str] = None, rc: Optional[RCFile] = None) -> str:
    """Pick the mesh server: explicit value, then the rc file, then the configured default."""
    if server:
        return server
    rc = rc or RCFile()
    if rc.exists():
        loaded = rc.load()
        if loaded.server:
            return loaded.server
    return Config.MESH_SERVER
