# surveyor/config.py
import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import attrs
import tomli_w

from .errors import ConfigError
from .models import MODEL_NAME_COLUMN, MODEL_PATH_COLUMN, OBJECT_NAME_COLUMN

CONFIG_FILE_NAME = "surveyor.toml"
ACCESS_TOKEN_ENV = "SURVEYOR_ACCESS_TOKEN"

# Matches every attribute set when present in attribute_set_names.
WILDCARD = "*"

DEFAULT_ATTRIBUTE_SETS = (
    "Pset_WallCommon",
    "Pset_SlabCommon",
    "Pset_WindowCommon",
    "Pset_DoorCommon",
)

DEFAULT_COLUMN_ORDER = (OBJECT_NAME_COLUMN, MODEL_NAME_COLUMN, MODEL_PATH_COLUMN)

DEFAULT_API_URL = "https://app21.connect.trimble.com/tc/api/2.0"
DEFAULT_MODEL_API_URL = "https://model-api21.connect.trimble.com"


def _positive(instance, attribute, value):
    if value <= 0:
        raise ValueError(f"'{attribute.name}' must be positive, got {value!r}")


def _delimiter(instance, attribute, value):
    if len(value) != 1 or value in ('"', "\n", "\r"):
        raise ValueError(f"'{attribute.name}' must be a single character other than a quote or newline, got {value!r}")


def _string_tuple(values) -> Tuple[str, ...]:
    if isinstance(values, str):
        values = [values]
    return tuple(str(v) for v in values)


@attrs.define(slots=True, frozen=True)
class Config:
    """
    Structured configuration for the surveyor application.

    Instances are immutable, so a search holding a reference always sees one
    consistent snapshot. Use update_config() to derive a changed copy.
    """
    recursive_folder_search: bool = True
    recursive_file_search: bool = True
    attribute_set_names: Tuple[str, ...] = attrs.field(default=DEFAULT_ATTRIBUTE_SETS, converter=_string_tuple)
    base_column_order: Tuple[str, ...] = attrs.field(default=DEFAULT_COLUMN_ORDER, converter=_string_tuple)
    file_suffix: str = ".ifc"
    batch_size: int = attrs.field(default=50, validator=_positive)
    workers: int = attrs.field(default=3, validator=_positive)
    report_base_name: str = "IFC_Properties_Report"
    delimiter: str = attrs.field(default=",", validator=_delimiter)
    project_id: Optional[str] = None
    root_folder_ids: Tuple[str, ...] = attrs.field(default=(), converter=_string_tuple)
    api_url: str = DEFAULT_API_URL
    model_api_url: str = DEFAULT_MODEL_API_URL
    timeout: float = attrs.field(default=30.0, validator=_positive)

    @property
    def includes_all_sets(self) -> bool:
        return WILDCARD in self.attribute_set_names


CONFIG_KEYS = tuple(a.name for a in attrs.fields(Config))


def find_config_path() -> Optional[Path]:
    """
    Looks for 'surveyor.toml' in the current working directory, then upwards
    from the package directory.
    """
    candidates = [Path.cwd()]
    start_dir = Path(__file__).parent
    candidates += [start_dir] + list(start_dir.parents)
    for directory in candidates:
        potential_path = directory / CONFIG_FILE_NAME
        if potential_path.is_file():
            return potential_path
    return None


def config_from_dict(stored: Dict[str, Any]) -> Config:
    """Merges stored overrides over the defaults. Unknown keys are ignored with a warning."""
    unknown = sorted(set(stored) - set(CONFIG_KEYS))
    if unknown:
        logging.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")
    try:
        return Config(**{k: v for k, v in stored.items() if k in CONFIG_KEYS})
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def load_config_with_path(config_path: Optional[Path] = None) -> tuple[Config, Optional[Path]]:
    """
    Loads configuration from 'surveyor.toml'.
    If no file is found, it returns a default configuration and None for the path.
    """
    config_path = config_path or find_config_path()

    config_data: Dict[str, Any] = {}
    if config_path and config_path.is_file():
        try:
            with config_path.open("rb") as f:
                config_data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Could not parse {config_path}: {e}") from e

    # Get the [tool.surveyor] table from the TOML file
    surveyor_config = config_data.get("tool", {}).get("surveyor", {})
    return config_from_dict(surveyor_config), config_path


def load_config(config_path: Optional[Path] = None) -> Config:
    """Convenience wrapper around load_config_with_path."""
    return load_config_with_path(config_path)[0]


def update_config(cfg: Config, **changes: Any) -> Config:
    """Returns a copy of cfg with the given fields replaced. The original is left untouched."""
    unknown = sorted(set(changes) - set(CONFIG_KEYS))
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
    try:
        return attrs.evolve(cfg, **changes)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def config_to_dict(cfg: Config) -> Dict[str, Any]:
    """Converts a Config object to a dictionary suitable for TOML serialization."""
    data = {
        "recursive_folder_search": cfg.recursive_folder_search,
        "recursive_file_search": cfg.recursive_file_search,
        "attribute_set_names": list(cfg.attribute_set_names),
        "base_column_order": list(cfg.base_column_order),
        "file_suffix": cfg.file_suffix,
        "batch_size": cfg.batch_size,
        "workers": cfg.workers,
        "report_base_name": cfg.report_base_name,
        "delimiter": cfg.delimiter,
        "project_id": cfg.project_id,
        "root_folder_ids": list(cfg.root_folder_ids),
        "api_url": cfg.api_url,
        "model_api_url": cfg.model_api_url,
        "timeout": cfg.timeout,
    }
    # Filter out None values to prevent serialization errors with tomli-w
    return {k: v for k, v in data.items() if v is not None}


def save_config_to_path(cfg: Config, path: Path):
    """
    Writes cfg to the [tool.surveyor] table of path, keeping any other tables
    already present in the file.
    """
    full_toml_data: Dict[str, Any] = {}
    if path.is_file():
        with path.open("rb") as f:
            full_toml_data = tomllib.load(f)
    full_toml_data.setdefault("tool", {})["surveyor"] = config_to_dict(cfg)
    with open(path, "wb") as f:
        tomli_w.dump(full_toml_data, f)


def get_access_token() -> Optional[str]:
    """The bearer token is read from the environment and never persisted."""
    return os.environ.get(ACCESS_TOKEN_ENV) or None
