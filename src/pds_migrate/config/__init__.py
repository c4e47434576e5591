"""Configuration for PDS Migration Tool."""

from .config import Config, LoggingConfig, MigrationConfig, PDSInstanceConfig

__all__ = ['Config', 'LoggingConfig', 'MigrationConfig', 'PDSInstanceConfig']
