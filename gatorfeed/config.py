"""Reading and writing the per-user configuration file."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_FILE_NAME = ".gatorconfig.json"


def default_config_path() -> Path:
    """Return the location of the configuration file in the user's home directory."""
    return Path.home() / CONFIG_FILE_NAME


@dataclass
class Config:
    """Settings shared between runs: who is logged in and where the database lives."""

    current_user_name: str = ""
    connection_string: str = ""
    path: Path | None = field(default=None, compare=False, repr=False)

    def to_json(self) -> str:
        """Serialise the settings as a single JSON line."""
        document = {
            "current_user_name": self.current_user_name,
            "connection_string": self.connection_string,
        }
        return json.dumps(document, separators=(",", ":"), ensure_ascii=False) + "\n"

    def save(self) -> None:
        """Write the settings back to the file they came from (or the default file)."""
        target = self.path if self.path is not None else default_config_path()
        Path(target).write_text(self.to_json(), encoding="utf-8")

    def set_user(self, username: str) -> None:
        """Make ``username`` the current user and persist the change."""
        self.current_user_name = username
        self.save()


def read_config(path: str | Path | None = None) -> Config:
    """Load the configuration from ``path``, or from the default file when omitted."""
    target = Path(path) if path is not None else default_config_path()
    with target.open(encoding="utf-8") as handle:
        document = json.load(handle)
    if not isinstance(document, dict):
        raise ValueError(f"configuration in {target} must be a JSON object")

    values = {}
    for key in ("current_user_name", "connection_string"):
        value = document.get(key, "")
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise ValueError(f"configuration field {key!r} must be a string")
        values[key] = value
    return Config(path=target, **values)