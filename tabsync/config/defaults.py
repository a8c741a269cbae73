# Tablet Sync Default Configuration
# Full default configuration as Python dict and YAML generator

import copy
from typing import Any

import yaml

DEFAULT_CONFIG: dict[str, Any] = {
    "library": {
        "path": "~/.local/share/tabsync/library.yaml",
        "storage_dir": "~/.local/share/tabsync/storage",
    },
    "sync": {
        "external_root": "",
        "mode": "copy",
        "rename": True,
        "rename_template": "%a_%y_%t",
        "subfolder": False,
        "subfolder_template": "%a/%y",
        "extract_on_sync": True,
        "concurrency": 3,
    },
    "confirm": {
        "batch": True,
        "threshold": 5,
    },
    "tags": {
        "on_tablet": "_tablet",
        "modified": "_tablet_modified",
        "reading_list": "_reading_list",
    },
    "project_folders": [],
    "output": {
        "verbose": False,
        "colored": True,
        "log_file": None,
        "notification_duration": 4000,
        "error_display_limit": 5,
    },
}


def default_config() -> dict[str, Any]:
    """Return a fresh copy of the default configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)


def generate_default_config() -> str:
    """
    Generate the default configuration file content.

    Returns:
        YAML text with a short header.
    """
    header = (
        "# Tablet Sync configuration\n"
        "#\n"
        "# sync.external_root: folder files are sent to (tablet mount, cloud folder)\n"
        "# sync.mode: copy (library keeps its file) or move (library links to the external file)\n"
        "# Template wildcards: %a author, %y year, %t title, %j journal\n"
        "# project_folders: list of {label, path} subfolders of external_root\n"
        "\n"
    )
    body = yaml.dump(default_config(), default_flow_style=False, sort_keys=False, allow_unicode=True)
    return header + body
