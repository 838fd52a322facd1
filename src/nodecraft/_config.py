"""Engine settings loaded from pyproject.toml."""

import tomllib
from dataclasses import dataclass
from pathlib import Path

from ._fingerprint import DEFAULT_FLOAT_DIGITS

MAX_FLOAT_DIGITS = 17


class ConfigError(Exception):
    """Error in nodecraft configuration."""


@dataclass(slots=True, frozen=True)
class EngineSettings:
    """Settings of an engine session.

    Attributes:
        cache_max_entries: Maximum number of cached node outputs.
        cache_max_bytes: Maximum estimated size of cached outputs, or None
            for no size bound.
        float_digits: Significant digits of floats when fingerprinting inputs.
        project_root: Directory containing the pyproject.toml the settings
            were loaded from, if any.

    """

    cache_max_entries: int = 1024
    cache_max_bytes: int | None = None
    float_digits: int = DEFAULT_FLOAT_DIGITS
    project_root: Path | None = None


def find_pyproject_toml(start_dir: Path | None = None) -> Path | None:
    """Return the nearest pyproject.toml at or above `start_dir` (default: cwd)."""
    start = (start_dir or Path.cwd()).resolve()
    for directory in (start, *start.parents):
        candidate = directory / "pyproject.toml"
        if candidate.is_file():
            return candidate
    return None


def _positive_int(section: dict[str, object], key: str) -> int | None:
    if key not in section:
        return None
    value = section[key]
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        msg = f"Invalid [tool.nodecraft].{key}: expected a positive integer, got {value!r}"
        raise ConfigError(msg)
    return value


def load_config(pyproject_path: Path) -> EngineSettings:
    """Load and validate [tool.nodecraft] settings from pyproject.toml.

    Args:
        pyproject_path: Path to pyproject.toml

    Returns:
        Parsed EngineSettings. Keys that are absent keep their defaults.

    Raises:
        ConfigError: If the file is not valid TOML or a value is invalid.

    """
    project_root = pyproject_path.parent

    with pyproject_path.open("rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            msg = f"Invalid TOML in {pyproject_path}: {e}"
            raise ConfigError(msg) from e

    section = data.get("tool", {}).get("nodecraft", {})
    if not isinstance(section, dict):
        msg = "Invalid [tool.nodecraft] configuration: expected a table"
        raise ConfigError(msg)

    unknown = set(section) - {"cache_max_entries", "cache_max_bytes", "float_digits"}
    if unknown:
        msg = f"Unknown [tool.nodecraft] keys: {', '.join(sorted(unknown))}"
        raise ConfigError(msg)

    defaults = EngineSettings()
    max_entries = _positive_int(section, "cache_max_entries")
    max_bytes = _positive_int(section, "cache_max_bytes")
    float_digits = _positive_int(section, "float_digits")
    if float_digits is not None and float_digits > MAX_FLOAT_DIGITS:
        msg = f"Invalid [tool.nodecraft].float_digits: must be at most {MAX_FLOAT_DIGITS}, got {float_digits}"
        raise ConfigError(msg)

    return EngineSettings(
        cache_max_entries=max_entries if max_entries is not None else defaults.cache_max_entries,
        cache_max_bytes=max_bytes,
        float_digits=float_digits if float_digits is not None else defaults.float_digits,
        project_root=project_root,
    )


def get_settings() -> EngineSettings:
    """Get settings from pyproject.toml in current directory or parents.

    Returns:
        EngineSettings (defaults if no pyproject.toml or no [tool.nodecraft] section)

    """
    pyproject_path = find_pyproject_toml()
    if pyproject_path is None:
        return EngineSettings()
    return load_config(pyproject_path)
