"""
The desired & observed states of the clusters, as seen by the provider.

The desired state (`ClusterSpec`) comes from the user's configuration.
It is a typed record, validated once at the boundary (`spec_from_config`),
so that no further type checks or coercions are needed deeper in the code.
``None`` always means "not set", and is never sent to the Atlas API.

The observed state (`ClusterStatus`) comes from the Atlas API on every read.
It is never cached beyond one operation.

Both are immutable: to change the desired state, a new spec is constructed
(e.g. with `dataclasses.replace`).
"""
import collections.abc
import dataclasses
import datetime
import enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, Union

from matlas.structs import ids

DEFAULT_ZONE_NAME = 'ZoneName managed by matlas'


class ValidationError(ValueError):
    """ The configuration is malformed or has a bad combination of fields. """


class TypeCoercionError(TypeError):
    """ A value of an unexpected type or shape is received from Atlas. """


class ClusterState(str, enum.Enum):
    """ The status labels as reported by Atlas in ``stateName``. """
    CREATING = 'CREATING'
    UPDATING = 'UPDATING'
    REPAIRING = 'REPAIRING'
    DELETING = 'DELETING'
    IDLE = 'IDLE'
    DELETED = 'DELETED'

    def __str__(self) -> str:
        return str(self.value)


@dataclasses.dataclass(frozen=True)
class RegionConfig:
    region_name: str
    electable_nodes: Optional[int] = None
    priority: Optional[int] = None
    read_only_nodes: int = 0
    analytics_nodes: int = 0


@dataclasses.dataclass(frozen=True)
class ReplicationSpec:
    """
    A zone of a (geo-sharded) cluster with the regions hosting its shards.

    The order of regions is significant on submission (see `translating`),
    but is lost when the cluster is read back from Atlas.
    """
    num_shards: int
    regions_config: Tuple[RegionConfig, ...] = ()
    zone_name: str = DEFAULT_ZONE_NAME
    id: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class BiConnector:
    enabled: Optional[bool] = None
    read_preference: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class ClusterSpec:
    project_id: str
    name: str
    provider_name: str
    provider_instance_size_name: str
    provider_region_name: Optional[str] = None
    backing_provider_name: Optional[str] = None
    provider_disk_iops: Optional[int] = None
    provider_disk_type_name: Optional[str] = None
    provider_encrypt_ebs_volume: Optional[bool] = None
    provider_volume_type: Optional[str] = None
    auto_scaling_disk_gb_enabled: bool = True
    backup_enabled: bool = False
    provider_backup_enabled: bool = False
    cluster_type: Optional[str] = None
    disk_size_gb: Optional[float] = None
    encryption_at_rest_provider: Optional[str] = None
    mongo_db_major_version: Optional[str] = None
    num_shards: Optional[int] = None
    replication_factor: Optional[int] = None
    bi_connector: Optional[BiConnector] = None
    replication_specs: Optional[Tuple[ReplicationSpec, ...]] = None


@dataclasses.dataclass(frozen=True)
class ClusterStatus:
    cluster_id: Optional[str]
    state_name: ClusterState
    paused: bool = False
    mongo_db_version: Optional[str] = None
    mongo_uri: Optional[str] = None
    mongo_uri_updated: Optional[datetime.datetime] = None
    mongo_uri_with_options: Optional[str] = None
    srv_address: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class ResourceState:
    """
    What is recorded for a managed cluster after a successful operation.

    The id is opaque for the host (see `matlas.structs.ids`). The spec and
    the status are the last known ones, as read back from Atlas.
    """
    id: ids.ResourceId
    spec: ClusterSpec
    status: ClusterStatus


_Kinds = Type[Any]

_CLUSTER_SCALARS: Mapping[str, _Kinds] = {
    'project_id': str,
    'name': str,
    'provider_name': str,
    'provider_instance_size_name': str,
    'provider_region_name': str,
    'backing_provider_name': str,
    'provider_disk_iops': int,
    'provider_disk_type_name': str,
    'provider_encrypt_ebs_volume': bool,
    'provider_volume_type': str,
    'auto_scaling_disk_gb_enabled': bool,
    'backup_enabled': bool,
    'provider_backup_enabled': bool,
    'cluster_type': str,
    'disk_size_gb': float,
    'encryption_at_rest_provider': str,
    'mongo_db_major_version': str,
    'num_shards': int,
    'replication_factor': int,
}
_CLUSTER_REQUIRED = frozenset({'project_id', 'name', 'provider_name', 'provider_instance_size_name'})

_REGION_SCALARS: Mapping[str, _Kinds] = {
    'region_name': str,
    'electable_nodes': int,
    'priority': int,
    'read_only_nodes': int,
    'analytics_nodes': int,
}
_REPLICATION_SCALARS: Mapping[str, _Kinds] = {
    'id': str,
    'num_shards': int,
    'zone_name': str,
}
_BI_CONNECTOR_SCALARS: Mapping[str, _Kinds] = {
    'enabled': bool,
    'read_preference': str,
}


def spec_from_config(data: Mapping[str, Any]) -> ClusterSpec:
    """
    Parse & validate a user-supplied configuration into a typed spec.

    The configuration is a mapping as loaded from YAML/JSON, with the same
    snake_case keys as the fields of `ClusterSpec`. Unknown keys, missing
    required keys, and values of wrong types fail with `ValidationError`.
    """
    if not isinstance(data, collections.abc.Mapping):
        raise ValidationError(f"The cluster config must be a mapping, got {data!r}.")
    nested = {'bi_connector', 'replication_specs'}
    _check_keys(data, known=set(_CLUSTER_SCALARS) | nested, required=_CLUSTER_REQUIRED, path='')
    kwargs: Dict[str, Any] = _parse_scalars(data, _CLUSTER_SCALARS, path='')

    if data.get('bi_connector') is not None:
        raw_bi = data['bi_connector']
        _check_mapping(raw_bi, path='bi_connector')
        _check_keys(raw_bi, known=set(_BI_CONNECTOR_SCALARS), path='bi_connector.')
        kwargs['bi_connector'] = BiConnector(**_parse_scalars(raw_bi, _BI_CONNECTOR_SCALARS, path='bi_connector.'))

    if data.get('replication_specs') is not None:
        raw_specs = data['replication_specs']
        if not isinstance(raw_specs, collections.abc.Sequence) or isinstance(raw_specs, str):
            raise ValidationError(f"replication_specs must be a list, got {raw_specs!r}.")
        kwargs['replication_specs'] = tuple(
            _replication_spec_from_config(raw_spec, path=f'replication_specs[{idx}].')
            for idx, raw_spec in enumerate(raw_specs)
        )

    return ClusterSpec(**kwargs)


def spec_to_config(spec: ClusterSpec) -> Dict[str, Any]:
    """
    Render a spec back to the configuration form (the inverse of parsing).

    Unset (``None``) fields are omitted, so that the result is re-parseable.
    """
    return _strip(dataclasses.asdict(spec))


def _replication_spec_from_config(data: Any, *, path: str) -> ReplicationSpec:
    _check_mapping(data, path=path.rstrip('.'))
    _check_keys(data, known=set(_REPLICATION_SCALARS) | {'regions_config'},
                required={'num_shards'}, path=path)
    kwargs: Dict[str, Any] = _parse_scalars(data, _REPLICATION_SCALARS, path=path)
    raw_regions = data.get('regions_config') or []
    if not isinstance(raw_regions, collections.abc.Sequence) or isinstance(raw_regions, str):
        raise ValidationError(f"{path}regions_config must be a list, got {raw_regions!r}.")
    regions: List[RegionConfig] = []
    for idx, raw_region in enumerate(raw_regions):
        subpath = f'{path}regions_config[{idx}].'
        _check_mapping(raw_region, path=subpath.rstrip('.'))
        _check_keys(raw_region, known=set(_REGION_SCALARS), required={'region_name'}, path=subpath)
        regions.append(RegionConfig(**_parse_scalars(raw_region, _REGION_SCALARS, path=subpath)))
    kwargs['regions_config'] = tuple(regions)
    return ReplicationSpec(**kwargs)


def _check_mapping(data: Any, *, path: str) -> None:
    if not isinstance(data, collections.abc.Mapping):
        raise ValidationError(f"{path} must be a mapping, got {data!r}.")


def _check_keys(
        data: Mapping[str, Any],
        *,
        known: Union[set, frozenset],
        required: Union[set, frozenset] = frozenset(),
        path: str,
) -> None:
    unknown = set(data) - set(known)
    if unknown:
        names = ', '.join(f'{path}{key}' for key in sorted(map(str, unknown)))
        raise ValidationError(f"Unknown fields: {names}.")
    missing = {key for key in required if data.get(key) is None}
    if missing:
        names = ', '.join(f'{path}{key}' for key in sorted(missing))
        raise ValidationError(f"Missing required fields: {names}.")


def _parse_scalars(data: Mapping[str, Any], kinds: Mapping[str, _Kinds], *, path: str) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, kind in kinds.items():
        value = data.get(key)
        if value is None:
            continue  # keep the dataclass' default.

        # Booleans are integers in Python, but never in the configs.
        if kind is float and isinstance(value, int) and not isinstance(value, bool):
            value = float(value)
        if isinstance(value, bool) and kind is not bool:
            raise ValidationError(f"{path}{key} must be of type {kind.__name__}, got {value!r}.")
        if not isinstance(value, kind):
            raise ValidationError(f"{path}{key} must be of type {kind.__name__}, got {value!r}.")
        result[key] = value
    return result


def _strip(value: Any) -> Any:
    if isinstance(value, collections.abc.Mapping):
        return {key: _strip(val) for key, val in value.items() if val is not None}
    elif isinstance(value, (list, tuple)):
        return [_strip(val) for val in value]
    else:
        return value
