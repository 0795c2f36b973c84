"""gistree configuration management.

Handles persistent settings stored in ~/.gistree/config.json
"""

import json
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional


# Default configuration values
DEFAULT_NOTEPAD_NAME = "Gistree Notepad"
DEFAULT_THEME = "textual-dark"
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0
DEFAULT_PER_PAGE = 100


def default_database_url() -> str:
    return f"sqlite:///{Path.home() / '.gistree' / 'gistree.db'}"


@dataclass
class GistreeConfig:
    """gistree application configuration."""

    # Tree behaviour
    show_decorations: bool = False  # eager per-group / per-user counts
    use_owner_avatar: bool = False  # owner avatar as icon for starred/opened gists
    notepad_name: str = DEFAULT_NOTEPAD_NAME

    # Persistence
    database_url: Optional[str] = None

    # Diagnostics
    enable_tracing: bool = False

    # Appearance
    theme: str = DEFAULT_THEME

    # Remote client
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY
    per_page: int = DEFAULT_PER_PAGE

    @classmethod
    def get_config_path(cls) -> Path:
        """Get the path to the config file."""
        return Path.home() / ".gistree" / "config.json"

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "GistreeConfig":
        """Load configuration from file, or return defaults if not found."""
        config_path = path or cls.get_config_path()

        if config_path.exists():
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                # Only use known fields to avoid issues with old config versions
                known_fields = {f.name for f in cls.__dataclass_fields__.values()}
                filtered_data = {k: v for k, v in data.items() if k in known_fields}
                return cls(**filtered_data)
            except (json.JSONDecodeError, TypeError, ValueError):
                # Invalid config, return defaults
                pass

        return cls()

    def save(self, path: Optional[Path] = None) -> None:
        """Save configuration to file."""
        config_path = path or self.get_config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(asdict(self), f, indent=2)

    def reset(self) -> None:
        """Reset configuration to defaults."""
        defaults = GistreeConfig()
        for name in self.__dataclass_fields__:
            setattr(self, name, getattr(defaults, name))

    def resolved_database_url(self) -> str:
        return self.database_url or default_database_url()

    def set_value(self, name: str, raw: str) -> None:
        """Set a field from its string form, coercing to the field's type."""
        if name not in self.__dataclass_fields__:
            raise KeyError(name)
        current = getattr(self, name)
        if isinstance(current, bool):
            value = raw.strip().lower() in ("1", "true", "yes", "on")
        elif isinstance(current, int):
            value = int(raw)
        elif isinstance(current, float):
            value = float(raw)
        elif current is None:
            value = raw or None
        else:
            value = raw
        setattr(self, name, value)
