# Tablet Sync Configuration Module
# Handles YAML-based configuration loading, validation, and defaults

from tabsync.config.defaults import DEFAULT_CONFIG, default_config, generate_default_config
from tabsync.config.loader import (
    ensure_config_exists,
    get_config_path,
    load_config,
    save_config,
    set_external_root,
    validate_config_file,
)
from tabsync.config.schema import (
    ConfirmConfig,
    LibraryConfig,
    OutputConfig,
    ProjectFolder,
    SyncMode,
    SyncSettings,
    TabSyncConfig,
    TagConfig,
)

__all__ = [
    # Schema
    "TabSyncConfig",
    "LibraryConfig",
    "SyncSettings",
    "ConfirmConfig",
    "TagConfig",
    "ProjectFolder",
    "OutputConfig",
    "SyncMode",
    # Loader
    "load_config",
    "save_config",
    "get_config_path",
    "ensure_config_exists",
    "validate_config_file",
    "set_external_root",
    # Defaults
    "DEFAULT_CONFIG",
    "default_config",
    "generate_default_config",
]
