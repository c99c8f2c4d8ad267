"""Application configuration loaded from ``config/app_config.yml``."""

from warden.configuration.app_configuration import AppConfig, app_config

__all__ = ["AppConfig", "app_config"]
