"""
Translation of the cluster specs to the Atlas API payloads and back.

All functions here are pure: they do no I/O and keep no state.

The payloads are sparse: an unset (``None``) field of a spec is not rendered
at all, so that "unset" stays distinguishable from ``False`` or ``0``, and
Atlas applies its own defaults or keeps the current values for such fields.

Regions of every zone are rendered in the descending order of their election
priority: Atlas assigns the election semantics by the order of submission.
On reads, Atlas returns the regions as a mapping by their names, so the order
of submission cannot be recovered: the parsed regions come in the payload's
order. This is a known limitation of the Atlas API, not something to fix here;
the update detection (see `changed_fields`) ignores the regions' order.
"""
import collections.abc
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple, \
                   Type, TypeVar, cast

import iso8601

from matlas.structs import bodies, diffs, specs

_T = TypeVar('_T')

# (spec field, payload key, value type): the top-level scalars of the cluster.
CLUSTER_FIELDS: Sequence[Tuple[str, str, Type[Any]]] = [
    ('cluster_type', 'clusterType', str),
    ('disk_size_gb', 'diskSizeGB', float),
    ('encryption_at_rest_provider', 'encryptionAtRestProvider', str),
    ('mongo_db_major_version', 'mongoDBMajorVersion', str),
    ('num_shards', 'numShards', int),
    ('replication_factor', 'replicationFactor', int),
    ('backup_enabled', 'backupEnabled', bool),
    ('provider_backup_enabled', 'providerBackupEnabled', bool),
]

# (spec field, payload key, value type): the fields of ``providerSettings``.
PROVIDER_FIELDS: Sequence[Tuple[str, str, Type[Any]]] = [
    ('provider_name', 'providerName', str),
    ('provider_instance_size_name', 'instanceSizeName', str),
    ('provider_region_name', 'regionName', str),
    ('backing_provider_name', 'backingProviderName', str),
    ('provider_disk_iops', 'diskIOPS', int),
    ('provider_disk_type_name', 'diskTypeName', str),
    ('provider_encrypt_ebs_volume', 'encryptEBSVolume', bool),
    ('provider_volume_type', 'volumeType', str),
]

IMMUTABLE_FIELDS = frozenset({'project_id', 'name'})


def validate(spec: specs.ClusterSpec) -> None:
    """
    Check the combinations of fields, which cannot be checked field by field.
    """
    if spec.replication_specs is not None:
        if spec.cluster_type is None:
            raise specs.ValidationError("`cluster_type` should be set when `replication_specs` is set.")
        if spec.num_shards is None:
            raise specs.ValidationError("`num_shards` should be set when `replication_specs` is set.")


def build_create_request(spec: specs.ClusterSpec) -> bodies.RawCluster:
    """
    Render the cluster creation payload with all the fields that are set.

    The spec is validated before rendering, so that the invalid combinations
    fail before any request is made to Atlas.
    """
    validate(spec)
    body = bodies.RawCluster(name=spec.name)
    for field, key, _ in CLUSTER_FIELDS:
        value = getattr(spec, field)
        if value is not None:
            body[key] = value  # type: ignore
    body['autoScaling'] = render_auto_scaling(spec)
    body['providerSettings'] = render_provider_settings(spec)
    if spec.bi_connector is not None:
        body['biConnector'] = render_bi_connector(spec.bi_connector)
    if spec.replication_specs is not None:
        body['replicationSpecs'] = render_replication_specs(spec.replication_specs)
    return body


def build_update_request(
        previous: specs.ClusterSpec,
        desired: specs.ClusterSpec,
) -> bodies.RawCluster:
    """
    Render the payload with only those fields that differ from the last known state.

    If nothing has changed, the payload is empty, and the request must not be
    made at all: Atlas would treat even an empty request as an update.

    The nested blocks (provider settings, auto-scaling, BI connector,
    replication specs) are rendered as a whole if any of their fields has
    changed: Atlas requires e.g. the provider name with the instance size.

    The fields that became unset in the desired spec are not rendered:
    they are left to Atlas to keep their current (possibly computed) values.
    """
    changed = changed_fields(previous, desired)
    immutable = changed & IMMUTABLE_FIELDS
    if immutable:
        names = ', '.join(f'`{name}`' for name in sorted(immutable))
        raise specs.ValidationError(f"Cannot change {names} of an existing cluster.")
    validate(desired)

    # Unset fields keep their current (often computed) values in Atlas, so they are not changes.
    changed = frozenset(field for field in changed if getattr(desired, field) is not None)

    body = bodies.RawCluster()
    for field, key, _ in CLUSTER_FIELDS:
        value = getattr(desired, field)
        if field in changed and value is not None:
            body[key] = value  # type: ignore
    if changed & {field for field, _, _ in PROVIDER_FIELDS}:
        body['providerSettings'] = render_provider_settings(desired)
    if 'auto_scaling_disk_gb_enabled' in changed:
        body['autoScaling'] = render_auto_scaling(desired)
    if 'bi_connector' in changed and desired.bi_connector is not None:
        body['biConnector'] = render_bi_connector(desired.bi_connector)
    if 'replication_specs' in changed and desired.replication_specs is not None:
        body['replicationSpecs'] = render_replication_specs(desired.replication_specs)
    return body


def changed_fields(
        previous: specs.ClusterSpec,
        desired: specs.ClusterSpec,
) -> FrozenSet[str]:
    """
    Detect the top-level fields of the spec that have changed.

    The regions' order is ignored, since it cannot be known for the specs
    read back from Atlas. The zones' ids are ignored if not set in the desired
    spec, since they are assigned by Atlas.
    """
    old = _comparable(specs.spec_to_config(previous), ids=desired.replication_specs)
    new = _comparable(specs.spec_to_config(desired), ids=desired.replication_specs)
    return diffs.diff(old, new).fields


def render_auto_scaling(spec: specs.ClusterSpec) -> bodies.RawAutoScaling:
    return bodies.RawAutoScaling(diskGBEnabled=spec.auto_scaling_disk_gb_enabled)


def render_bi_connector(bi_connector: specs.BiConnector) -> bodies.RawBiConnector:
    body = bodies.RawBiConnector()
    if bi_connector.enabled is not None:
        body['enabled'] = bi_connector.enabled
    if bi_connector.read_preference is not None:
        body['readPreference'] = bi_connector.read_preference
    return body


def render_provider_settings(spec: specs.ClusterSpec) -> bodies.RawProviderSettings:
    body = bodies.RawProviderSettings()
    for field, key, _ in PROVIDER_FIELDS:
        value = getattr(spec, field)
        if value is not None:
            body[key] = value  # type: ignore
    return body


def render_replication_specs(
        replication_specs: Sequence[specs.ReplicationSpec],
) -> List[bodies.RawReplicationSpec]:
    result: List[bodies.RawReplicationSpec] = []
    for replication_spec in replication_specs:
        body = bodies.RawReplicationSpec(
            numShards=replication_spec.num_shards,
            zoneName=replication_spec.zone_name,
            regionsConfig=render_regions_config(replication_spec.regions_config),
        )
        if replication_spec.id is not None:
            body['id'] = replication_spec.id
        result.append(body)
    return result


def render_regions_config(
        regions: Sequence[specs.RegionConfig],
) -> Dict[str, bodies.RawRegionConfig]:
    """
    Render the regions in the descending order of priority (stable for ties).

    JSON objects preserve the order of keys both in Python and on the wire,
    which is what Atlas relies on for the elections' preferences.
    """
    result: Dict[str, bodies.RawRegionConfig] = {}
    for region in sorted(regions, key=lambda r: r.priority or 0, reverse=True):
        body = bodies.RawRegionConfig(
            readOnlyNodes=region.read_only_nodes,
            analyticsNodes=region.analytics_nodes,
        )
        if region.electable_nodes is not None:
            body['electableNodes'] = region.electable_nodes
        if region.priority is not None:
            body['priority'] = region.priority
        result[region.region_name] = body
    return result


def parse_spec(
        raw: Mapping[str, Any],
        *,
        project_id: Optional[str] = None,
) -> specs.ClusterSpec:
    """
    Parse the cluster's payload into a spec (the inverse of the rendering).

    The project id is taken from the payload if present (as in the reads),
    or from the caller otherwise (e.g. for the creation payloads).

    The regions come in the payload's order, not in the order of submission.
    """
    _check_mapping(raw, path='cluster')
    kwargs: Dict[str, Any] = {}

    kwargs['project_id'] = _get(raw, 'groupId', str) or project_id
    if kwargs['project_id'] is None:
        raise specs.TypeCoercionError("No project id in the cluster's payload.")
    kwargs['name'] = _get(raw, 'name', str, required=True)

    for field, key, kind in CLUSTER_FIELDS:
        value = _get(raw, key, kind)
        if value is not None:
            kwargs[field] = value

    raw_provider = raw.get('providerSettings')
    _check_mapping(raw_provider, path='providerSettings')
    for field, key, kind in PROVIDER_FIELDS:
        required = field in {'provider_name', 'provider_instance_size_name'}
        value = _get(raw_provider, key, kind, required=required, path='providerSettings.')
        if value is not None:
            kwargs[field] = value

    raw_auto_scaling = raw.get('autoScaling')
    if raw_auto_scaling is not None:
        _check_mapping(raw_auto_scaling, path='autoScaling')
        value = _get(raw_auto_scaling, 'diskGBEnabled', bool, path='autoScaling.')
        if value is not None:
            kwargs['auto_scaling_disk_gb_enabled'] = value

    raw_bi_connector = raw.get('biConnector')
    if raw_bi_connector is not None:
        _check_mapping(raw_bi_connector, path='biConnector')
        kwargs['bi_connector'] = specs.BiConnector(
            enabled=_get(raw_bi_connector, 'enabled', bool, path='biConnector.'),
            read_preference=_get(raw_bi_connector, 'readPreference', str, path='biConnector.'),
        )

    raw_replication_specs = raw.get('replicationSpecs')
    if raw_replication_specs is not None:
        _check_sequence(raw_replication_specs, path='replicationSpecs')
        kwargs['replication_specs'] = tuple(
            parse_replication_spec(raw_replication_spec, path=f'replicationSpecs[{idx}].')
            for idx, raw_replication_spec in enumerate(raw_replication_specs)
        )

    return specs.ClusterSpec(**kwargs)


def parse_replication_spec(raw: Any, *, path: str = '') -> specs.ReplicationSpec:
    _check_mapping(raw, path=path.rstrip('.'))
    raw_regions = raw.get('regionsConfig') or {}
    _check_mapping(raw_regions, path=f'{path}regionsConfig')
    regions: List[specs.RegionConfig] = []
    for region_name, raw_region in raw_regions.items():
        subpath = f'{path}regionsConfig.{region_name}.'
        _check_mapping(raw_region, path=subpath.rstrip('.'))
        regions.append(specs.RegionConfig(
            region_name=str(region_name),
            electable_nodes=_get(raw_region, 'electableNodes', int, path=subpath),
            priority=_get(raw_region, 'priority', int, path=subpath),
            read_only_nodes=_get(raw_region, 'readOnlyNodes', int, path=subpath) or 0,
            analytics_nodes=_get(raw_region, 'analyticsNodes', int, path=subpath) or 0,
        ))
    return specs.ReplicationSpec(
        id=_get(raw, 'id', str, path=path),
        num_shards=_get(raw, 'numShards', int, required=True, path=path),
        zone_name=_get(raw, 'zoneName', str, path=path) or specs.DEFAULT_ZONE_NAME,
        regions_config=tuple(regions),
    )


def parse_status(raw: Mapping[str, Any]) -> specs.ClusterStatus:
    """
    Parse the cluster's payload into the observed status.
    """
    _check_mapping(raw, path='cluster')
    state_name = _get(raw, 'stateName', str, required=True)
    try:
        state = specs.ClusterState(state_name)
    except ValueError:
        raise specs.TypeCoercionError(f"Unknown cluster state: {state_name!r}") from None
    return specs.ClusterStatus(
        cluster_id=_get(raw, 'id', str),
        state_name=state,
        paused=bool(_get(raw, 'paused', bool)),
        mongo_db_version=_get(raw, 'mongoDBVersion', str),
        mongo_uri=_get(raw, 'mongoURI', str),
        mongo_uri_updated=_get(raw, 'mongoURIUpdated', str, convert=_parse_timestamp),
        mongo_uri_with_options=_get(raw, 'mongoURIWithOptions', str),
        srv_address=_get(raw, 'srvAddress', str),
    )


def _comparable(config: Dict[str, Any], *, ids: Optional[Sequence[specs.ReplicationSpec]]) -> Dict[str, Any]:
    keep_ids = ids is not None and any(replication_spec.id for replication_spec in ids)
    for raw_spec in config.get('replication_specs', []):
        raw_spec['regions_config'] = sorted(raw_spec.get('regions_config', []),
                                            key=lambda region: region['region_name'])
        if not keep_ids:
            raw_spec.pop('id', None)
    return config


def _parse_timestamp(value: str) -> Any:
    try:
        return iso8601.parse_date(value)
    except iso8601.ParseError as e:
        raise specs.TypeCoercionError(f"Unparseable timestamp: {value!r}") from e


def _check_mapping(value: Any, *, path: str) -> None:
    if not isinstance(value, collections.abc.Mapping):
        raise specs.TypeCoercionError(f"{path} must be a mapping, got {value!r}.")


def _check_sequence(value: Any, *, path: str) -> None:
    if not isinstance(value, collections.abc.Sequence) or isinstance(value, str):
        raise specs.TypeCoercionError(f"{path} must be a list, got {value!r}.")


def _get(
        raw: Mapping[str, Any],
        key: str,
        kind: Type[_T],
        *,
        required: bool = False,
        path: str = '',
        convert: Optional[Callable[[Any], Any]] = None,
) -> Any:
    value = raw.get(key)
    if value is None:
        if required:
            raise specs.TypeCoercionError(f"{path}{key} is missing.")
        return None

    # JSON numbers are untyped: 10 and 10.0 are the same number for Atlas.
    if kind is float and isinstance(value, int) and not isinstance(value, bool):
        value = float(value)
    elif kind is int and isinstance(value, float) and value.is_integer():
        value = int(value)

    if isinstance(value, bool) and kind is not bool or not isinstance(value, kind):
        raise specs.TypeCoercionError(f"{path}{key} must be of type {kind.__name__}, got {value!r}.")
    return convert(value) if convert is not None else cast(_T, value)
