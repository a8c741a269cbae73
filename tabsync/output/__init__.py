# Tablet Sync Output Module
# Rich console output and prompts

from tabsync.output.console import Console, create_console

__all__ = [
    "Console",
    "create_console",
]
