"""Reading and writing the JSON configuration file in the user's home directory."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

CONFIG_FILENAME = ".gatorconfig.json"

PathLike = Union[str, Path]


def config_path() -> Path:
    """The location of the configuration file."""
    return Path.home() / CONFIG_FILENAME


@dataclass
class Config:
    """Database location and the name of the logged-in user."""

    db_url: str = ""
    current_user_name: str = ""
    path: Optional[Path] = field(default=None, compare=False, repr=False)

    def set_user(self, user_name: str) -> None:
        """Make ``user_name`` the current user and save the configuration."""
        self.current_user_name = user_name
        write(self, self.path)


def read(path: Optional[PathLike] = None) -> Config:
    """Load the configuration; raises OSError or ValueError when it cannot."""
    target = Path(path) if path is not None else config_path()
    with target.open(encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"{target}: configuration must be a JSON object")
    return Config(
        db_url=str(data.get("db_url", "")),
        current_user_name=str(data.get("current_user_name", "")),
        path=target,
    )


def write(config: Config, path: Optional[PathLike] = None) -> None:
    """Save the configuration, replacing the file."""
    target = Path(path) if path is not None else (config.path or config_path())
    payload = {"db_url": config.db_url, "current_user_name": config.current_user_name}
    target.write_text(json.dumps(payload) + "\n", encoding="utf-8")