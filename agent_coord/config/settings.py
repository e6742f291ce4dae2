"""
Configuration settings for agent coordination.
"""
import os
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, read from ``AGENT_COORD_*`` variables and ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="AGENT_COORD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Shared state location
    coordination_dir: str = ".claude/coordination"
    locks_file: str = "locks.json"
    mailbox_file: str = "mailbox.json"

    # Mailbox waits
    await_timeout: float = Field(default=30.0, gt=0)
    poll_interval: float = Field(default=0.5, ge=0.05, le=5.0)

    # Store arbitration
    store_lock_timeout: float = Field(default=10.0, gt=0)

    # Default identity for the command line only
    agent_id: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def locks_path(self) -> str:
        return os.path.join(self.coordination_dir, self.locks_file)

    @property
    def mailbox_path(self) -> str:
        return os.path.join(self.coordination_dir, self.mailbox_file)
