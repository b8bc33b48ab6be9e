"""Configuration module for buspolicy."""

from buspolicy.config.schema import PolicySourcesConfig

__all__ = ["PolicySourcesConfig"]
