"""Reading soilheat configuration files."""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from soilheat.config_schema import Config

logger: logging.Logger = logging.getLogger(__name__)


class DetectDuplicateKeysYamlLoader(yaml.SafeLoader):
    """Safe YAML loader that rejects mappings with a repeated key."""

    def construct_mapping(
        self, node: yaml.nodes.MappingNode, deep: bool = False
    ) -> dict:
        """Build a mapping after checking its keys.

        Raises:
            ValueError: On the first repeated key, with its position in the file.
        """
        seen = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            if key in seen:
                raise ValueError(f"Duplicate key found: {key} ({key_node.start_mark})")
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


def multi_level_merge(base: dict, update: dict) -> dict:
    """Recursively merge `update` into `base`.

    Nested dictionaries are merged key by key, any other value in `update`
    replaces the value in `base`.

    Args:
        base: Dictionary to merge into. Modified in place.
        update: Dictionary whose values take precedence.

    Returns:
        The merged `base`.
    """
    for key, value in update.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            multi_level_merge(base[key], value)
        else:
            base[key] = value
    return base


def parse_config(
    config_path: dict | Path | str, current_directory: Path | None = None
) -> dict[str, Any]:
    """Parse config.

    Reads the config file and recursively resolves any 'inherits' keys. The
    inherited file is read first and the values of the inheriting file are
    merged on top of it.

    Args:
        config_path: Path to the config file or a dict with the config.
        current_directory: Directory relative paths are resolved against.
            If None, the current working directory is used.

    Returns:
        Configuration without any remaining 'inherits' keys.
    """
    if current_directory is None:
        current_directory = Path.cwd()

    if isinstance(config_path, dict):
        config = dict(config_path)
    else:
        with open(current_directory / config_path, "r") as f:
            config = yaml.load(f, Loader=DetectDuplicateKeysYamlLoader)
        if config is None:
            config = {}
        current_directory = current_directory / Path(config_path).parent

    if "inherits" in config:
        # replace {VAR} and $VAR with environment variable VAR if it exists
        inherit_config_path = os.path.expandvars(
            str(config.pop("inherits")).format(**os.environ)
        )
        inherited_config = parse_config(
            Path(inherit_config_path), current_directory=current_directory
        )
        config = multi_level_merge(inherited_config, config)

    return config


def load_config(
    config_path: dict | Path | str, current_directory: Path | None = None
) -> Config:
    """Parse and validate a configuration.

    Args:
        config_path: Path to the config file or a dict with the config.
        current_directory: Directory relative paths are resolved against.

    Returns:
        The validated configuration.

    Raises:
        pydantic.ValidationError: If the configuration does not match the schema.
    """
    config = parse_config(config_path, current_directory=current_directory)
    validated = Config(**config)
    logger.debug(f"Loaded configuration: {validated}")
    return validated
