"""
letloop.project - Project-level settings

- config.py: Parser for letloop.it configuration files

Usage:
    from letloop.project import load_config

    config = load_config()  # Searches upward for letloop.it
"""

from letloop.project.config import (
    CONFIG_FILENAME,
    CompilerConfig,
    find_project_root,
    letloop_to_python,
    load_config,
)

__all__ = [
    "CONFIG_FILENAME",
    "CompilerConfig",
    "find_project_root",
    "letloop_to_python",
    "load_config",
]
