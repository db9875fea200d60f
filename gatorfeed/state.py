"""The resources every command works with."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .config import Config, read_config
from .database import DatabaseError, Queries, connect


@dataclass
class State:
    """The open database and the loaded configuration."""

    db: Queries
    config: Config

    def close(self) -> None:
        self.db.close()

    def __enter__(self) -> "State":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def new_state(config_path: str | Path | None = None) -> State:
    """Load the configuration and open the database it names."""
    config = read_config(config_path)
    if not config.connection_string:
        raise DatabaseError("no connection string configured")
    return State(db=connect(config.connection_string), config=config)