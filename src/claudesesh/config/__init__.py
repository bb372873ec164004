"""Layered TOML settings, logging setup, and repository discovery."""

from claudesesh.config.settings import Config, get_config, get_config_sources, reload_config

__all__ = ["Config", "get_config", "get_config_sources", "reload_config"]
