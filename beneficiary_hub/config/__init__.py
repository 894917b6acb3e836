from .loader import (
    DEFAULT_CONFIG_PATH,
    AppConfig,
    ConfigError,
    DatabaseConfig,
    ExportSettings,
    FormSettings,
    ImportSettings,
    load_config,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "AppConfig",
    "ConfigError",
    "DatabaseConfig",
    "ExportSettings",
    "FormSettings",
    "ImportSettings",
    "load_config",
]
