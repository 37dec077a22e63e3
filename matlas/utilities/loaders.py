"""
Loading of the clusters' configuration files.

The files are YAML (and so, JSON too) with a single mapping of the cluster's
fields, the same as the fields of `matlas.structs.specs.ClusterSpec`::

    project_id: 5f1a2b3c4d5e6f7a8b9c0d1e
    name: my-cluster
    provider_name: AWS
    provider_instance_size_name: M10
    provider_region_name: US_EAST_1
"""
import os
import pathlib
from typing import Any, Union

import yaml

from matlas.structs import specs


class ConfigError(Exception):
    """ The configuration file cannot be read or parsed. """


def load_config(path: Union[str, os.PathLike]) -> Any:  # type: ignore
    try:
        with pathlib.Path(path).open('rt', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read the config file {str(path)!r}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse the config file {str(path)!r}: {e}") from e


def load_spec(path: Union[str, os.PathLike]) -> specs.ClusterSpec:  # type: ignore
    return specs.spec_from_config(load_config(path))
