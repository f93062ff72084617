from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from guardian.policy import DEFAULT_DENY_LIST, CommandPolicy, StrictPolicy

# Absolute project root so .env and config.yaml are found regardless of CWD.
_PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FUSY_",
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Command policy defaults applied by the CLI
    default_deny_list: list[str] = sorted(DEFAULT_DENY_LIST)
    require_approval: bool = False
    allow_meta_operators: bool = False

    # Process runner
    shell_max_buffer: int = 4 * 1024 * 1024  # bytes, shell-delegated path only
    command_timeout: float | None = None  # seconds; None = no deadline

    # Paths
    db_path: str = ".fusy/runs.db"
    log_dir: str = "~/.fusy/logs"

    @field_validator("db_path", "log_dir", mode="before")
    @classmethod
    def expand_path(cls, v: str) -> str:
        return str(Path(v).expanduser())

    @classmethod
    def from_yaml(cls, path: str | Path = "config.yaml") -> "Settings":
        """Load settings, overlaying config.yaml values on top of defaults/env."""
        yaml_path = Path(path)
        if not yaml_path.is_absolute():
            yaml_path = _PROJECT_ROOT / yaml_path
        overrides: dict = {}
        if yaml_path.exists():
            with yaml_path.open() as f:
                overrides = yaml.safe_load(f) or {}
        return cls(**overrides)

    def build_policy(self, **overrides) -> CommandPolicy:
        """Return the operator's default CommandPolicy, optionally overridden per call."""
        base = CommandPolicy(
            deny_list=frozenset(self.default_deny_list),
            require_approval=self.require_approval,
            strict_policy=StrictPolicy(allow_meta_operators=self.allow_meta_operators),
        )
        return base.model_copy(update=overrides) if overrides else base


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_yaml()
