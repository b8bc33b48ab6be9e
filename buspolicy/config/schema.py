"""Configuration schema using Pydantic."""

from pathlib import Path

from pydantic import ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_BASE_PATH = "/etc/dbus-1/system.conf"
DEFAULT_LOCAL_PATH = "/etc/dbus-1/system-local.conf"
DEFAULT_DROPIN_DIR = "/etc/dbus-1/system.d"
DEFAULT_DROPIN_SUFFIX = ".conf"


class PolicySourcesConfig(BaseSettings):
    """Locations of the policy documents, in load order."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, env_prefix="BUSPOLICY_")

    base_path: str = DEFAULT_BASE_PATH
    local_path: str = DEFAULT_LOCAL_PATH
    dropin_dir: str = DEFAULT_DROPIN_DIR
    dropin_suffix: str = Field(default=DEFAULT_DROPIN_SUFFIX, min_length=1)

    @field_validator("dropin_suffix")
    @classmethod
    def _validate_suffix(cls, value: str) -> str:
        if not value.startswith("."):
            raise ValueError("dropin_suffix must start with '.'")
        return value

    @property
    def base_file(self) -> Path:
        return Path(self.base_path).expanduser()

    @property
    def local_file(self) -> Path:
        return Path(self.local_path).expanduser()

    @property
    def dropin_path(self) -> Path:
        return Path(self.dropin_dir).expanduser()
