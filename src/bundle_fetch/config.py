"""Fetch configuration."""
from pathlib import Path
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field


class FetchConfig(BaseModel):
    """Settings for running git during a fetch."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        json_schema_extra={
            "example": {
                "git_executable": "git",
                "clone_timeout": 300.0,
                "command_timeout": 60.0,
                "poll_interval": 0.1,
                "temp_prefix": "bundle-fetch-",
                "env": {"GIT_HTTP_LOW_SPEED_LIMIT": "1000"},
            }
        },
    )

    git_executable: str = Field(default="git", description="git binary to run")
    clone_timeout: float = Field(default=300.0, gt=0, description="Seconds allowed for clone")
    command_timeout: float = Field(
        default=60.0, gt=0, description="Seconds allowed for local git commands"
    )
    poll_interval: float = Field(
        default=0.1, gt=0, description="Seconds between cancellation checks"
    )
    temp_prefix: str = Field(default="bundle-fetch-", description="Prefix for scratch clones")
    env: Dict[str, str] = Field(
        default_factory=dict, description="Extra environment for git processes"
    )

    def save(self, path: Path) -> None:
        """Write config to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2))

    @classmethod
    def load(cls, path: Path) -> "FetchConfig":
        """Load config from JSON file."""
        path = Path(path)
        return cls.model_validate_json(path.read_text())
