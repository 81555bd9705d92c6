"""
letloop.project.config - Compiler configuration loader

This module loads letloop.it configuration files. The file uses letloop
map syntax and every key is optional:

    {:gensym-prefix "__ll_"
     :max-expansion-depth 100
     :log-level "WARNING"}

When no letloop.it is found the defaults apply.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional

from letloop.runtime.types import Keyword, MapLiteral, VectorLiteral

# Default configuration values
DEFAULT_GENSYM_PREFIX = "__ll_"
DEFAULT_MAX_EXPANSION_DEPTH = 100
DEFAULT_LOG_LEVEL = "WARNING"
CONFIG_FILENAME = "letloop.it"

KNOWN_KEYS = {"gensym-prefix", "max-expansion-depth", "log-level"}


def letloop_to_python(value: Any) -> Any:
    """
    Convert reader forms to Python native types.

    - Keyword -> str (without the colon)
    - VectorLiteral -> list
    - MapLiteral -> dict
    - Other types pass through unchanged
    """
    if isinstance(value, Keyword):
        return value.name
    elif isinstance(value, VectorLiteral):
        return [letloop_to_python(item) for item in value.items]
    elif isinstance(value, MapLiteral):
        return {letloop_to_python(k): letloop_to_python(v) for k, v in value.pairs}
    elif isinstance(value, list):
        return [letloop_to_python(item) for item in value]
    else:
        return value


def find_project_root(start_path: Optional[str] = None) -> Optional[str]:
    """
    Find the directory holding letloop.it by walking up from start_path.

    Args:
        start_path: Path to start searching from. If None, uses current working directory.
                   Can be a file or directory path.

    Returns:
        Absolute path to the directory containing letloop.it, or None if not found.
    """
    if start_path is None:
        current = os.getcwd()
    elif os.path.isfile(start_path):
        current = os.path.dirname(os.path.abspath(start_path))
    else:
        current = os.path.abspath(start_path)

    while True:
        if os.path.isfile(os.path.join(current, CONFIG_FILENAME)):
            return current

        parent = os.path.dirname(current)
        if parent == current:
            # Reached filesystem root
            return None
        current = parent


@dataclass
class CompilerConfig:
    """
    Settings that shape generated code.

    Fields:
        gensym_prefix: Prefix of every compiler temporary; must be a valid
            Python identifier start that user names cannot produce
        max_expansion_depth: Limit on repeated macro expansion of one form
        log_level: Level the CLI configures logging with
        config_file: Path the settings were read from, if any
    """

    gensym_prefix: str = DEFAULT_GENSYM_PREFIX
    max_expansion_depth: int = DEFAULT_MAX_EXPANSION_DEPTH
    log_level: str = DEFAULT_LOG_LEVEL
    config_file: Optional[str] = None

    _raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def log_level_value(self) -> int:
        """The numeric logging level for log_level."""
        return logging.getLevelName(self.log_level.upper())

    @classmethod
    def from_dict(
        cls, config_dict: dict[str, Any], config_file: Optional[str] = None
    ) -> "CompilerConfig":
        """Validate a converted config map and build a CompilerConfig."""
        where = config_file or CONFIG_FILENAME

        unknown = set(config_dict) - KNOWN_KEYS
        if unknown:
            names = ", ".join(f":{k}" for k in sorted(map(str, unknown)))
            raise ValueError(f"{where} has unknown keys: {names}")

        prefix = config_dict.get("gensym-prefix", DEFAULT_GENSYM_PREFIX)
        depth = config_dict.get("max-expansion-depth", DEFAULT_MAX_EXPANSION_DEPTH)
        level = config_dict.get("log-level", DEFAULT_LOG_LEVEL)

        if not isinstance(prefix, str) or not prefix.isidentifier():
            raise ValueError(f":gensym-prefix must be an identifier string, got {prefix!r}")
        if not prefix.startswith("_"):
            # Temporaries must not collide with normalized user names
            raise ValueError(f":gensym-prefix must start with '_', got {prefix!r}")
        if isinstance(depth, bool) or not isinstance(depth, int) or depth < 1:
            raise ValueError(f":max-expansion-depth must be a positive integer, got {depth!r}")
        if not isinstance(level, str) or not isinstance(
            logging.getLevelName(level.upper()), int
        ):
            raise ValueError(f":log-level must be a logging level name, got {level!r}")

        return cls(
            gensym_prefix=prefix,
            max_expansion_depth=depth,
            log_level=level.upper(),
            config_file=config_file,
            _raw=config_dict,
        )

    @classmethod
    def load(cls, path: Optional[str] = None) -> "CompilerConfig":
        """
        Load a CompilerConfig from a letloop.it file.

        Args:
            path: Path to a letloop.it file, a directory to search upward
                  from, or None to search from the current directory.

        Returns:
            The loaded config, or the defaults when no file is found.

        Raises:
            FileNotFoundError: If path is given and does not exist.
            ValueError: If the file is not a valid config map.
        """
        from letloop.compiler.reader import read_str

        if path is not None and not os.path.exists(path):
            raise FileNotFoundError(f"Path does not exist: {path}")

        if path is not None and os.path.isfile(path):
            config_file = os.path.abspath(path)
        else:
            root = find_project_root(path)
            if root is None:
                return cls()
            config_file = os.path.join(root, CONFIG_FILENAME)

        with open(config_file, encoding="utf-8") as f:
            content = f.read()

        try:
            parsed = read_str(content)
        except SyntaxError as e:
            raise ValueError(f"Failed to parse {config_file}: {e}") from e

        config_form = next((f for f in parsed if isinstance(f, MapLiteral)), None)
        if config_form is None:
            raise ValueError(f"{config_file} must contain a map as the main form")

        return cls.from_dict(letloop_to_python(config_form), config_file)


def load_config(path: Optional[str] = None) -> CompilerConfig:
    """Convenience function to load a CompilerConfig."""
    return CompilerConfig.load(path)
