"""
hostguard Configuration
Host key checking settings and remote target definitions
"""

from functools import lru_cache
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, validator
from pydantic_settings import BaseSettings

# Value of a known_hosts setting that disables host key checking
ALLOW_ANY_HOSTS = "allow_any"


class Settings(BaseSettings):
    """Global host key checking settings"""

    app_name: str = "hostguard"

    # Host key checking
    strict_host_key_checking: bool = True
    known_hosts_files: List[str] = Field(default_factory=lambda: ["~/.ssh/known_hosts"])
    # Also trust rows of the ssh_known_hosts table when a session is available
    known_hosts_database: bool = False

    # Connections
    connect_timeout: int = 30

    # Logging
    log_level: str = "INFO"

    @validator("connect_timeout")
    def connect_timeout_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("Connect timeout must be a positive number of seconds")
        return v

    @validator("log_level")
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level

    class Config:
        env_file = ".env"
        env_prefix = "HOSTGUARD_"


class RemoteTarget(BaseModel):
    """
    A remote host to connect to, with optional per-remote overrides.

    known_hosts overrides the global setting for this remote only:
    "allow_any" disables host key checking, a path or list of paths
    replaces the global known_hosts files.
    """

    name: str
    host: str
    port: int = Field(default=22, ge=1, le=65535)
    user: Optional[str] = None
    known_hosts: Optional[Union[Literal["allow_any"], List[str]]] = None

    @validator("host")
    def host_must_not_be_empty(cls, v):
        if not v or not v.strip():
            raise ValueError("Host must not be empty")
        return v.strip()

    @validator("known_hosts", pre=True)
    def single_path_to_list(cls, v):
        if isinstance(v, str) and v != ALLOW_ANY_HOSTS:
            return [v]
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings"""
    return Settings()
