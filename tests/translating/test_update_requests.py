import dataclasses

import pytest

from matlas.reactor.translating import build_update_request, changed_fields, parse_spec
from matlas.structs.specs import BiConnector, RegionConfig, ReplicationSpec, ValidationError


@pytest.fixture()
def previous(spec):
    return dataclasses.replace(
        spec,
        cluster_type='REPLICASET',
        disk_size_gb=10.0,
        num_shards=1,
        backup_enabled=True,
        replication_specs=(
            ReplicationSpec(num_shards=1, id='zid1', regions_config=(
                RegionConfig(region_name='US_EAST_1', electable_nodes=3, priority=7),
                RegionConfig(region_name='US_WEST_2', electable_nodes=2, priority=6),
            )),
        ),
    )


def test_no_changes_produce_empty_payloads(previous):
    desired = dataclasses.replace(previous)
    assert build_update_request(previous, desired) == {}
    assert changed_fields(previous, desired) == frozenset()


def test_payloads_are_idempotent(previous):
    desired = dataclasses.replace(previous, disk_size_gb=20.0)
    body1 = build_update_request(previous, desired)
    body2 = build_update_request(previous, desired)
    assert body1 == body2 == {'diskSizeGB': 20.0}


def test_changes_to_falsy_values_are_sent(previous):
    desired = dataclasses.replace(previous, backup_enabled=False)
    body = build_update_request(previous, desired)
    assert body == {'backupEnabled': False}


def test_changes_to_defaults_are_sent(previous):
    desired = dataclasses.replace(previous, auto_scaling_disk_gb_enabled=False)
    body = build_update_request(previous, desired)
    assert body == {'autoScaling': {'diskGBEnabled': False}}


def test_provider_settings_are_sent_as_a_whole(previous):
    desired = dataclasses.replace(previous, provider_instance_size_name='M20')
    body = build_update_request(previous, desired)
    assert body == {
        'providerSettings': {
            'providerName': 'AWS',
            'instanceSizeName': 'M20',
            'regionName': 'US_EAST_1',
        },
    }


def test_bi_connector_is_sent_as_a_whole(previous):
    previous = dataclasses.replace(previous, bi_connector=BiConnector(enabled=False, read_preference='secondary'))
    desired = dataclasses.replace(previous, bi_connector=BiConnector(enabled=True, read_preference='secondary'))
    body = build_update_request(previous, desired)
    assert body == {'biConnector': {'enabled': True, 'readPreference': 'secondary'}}


def test_replication_specs_are_sent_as_a_whole(previous):
    desired = dataclasses.replace(previous, replication_specs=(
        ReplicationSpec(num_shards=1, id='zid1', regions_config=(
            RegionConfig(region_name='US_EAST_1', electable_nodes=3, priority=7),
            RegionConfig(region_name='US_WEST_2', electable_nodes=2, priority=6, read_only_nodes=1),
        )),
    ))
    body = build_update_request(previous, desired)
    assert list(body) == ['replicationSpecs']
    assert body['replicationSpecs'][0]['regionsConfig']['US_WEST_2']['readOnlyNodes'] == 1


def test_multiple_changes(previous):
    desired = dataclasses.replace(previous, disk_size_gb=20.0, mongo_db_major_version='5.0')
    body = build_update_request(previous, desired)
    assert body == {'diskSizeGB': 20.0, 'mongoDBMajorVersion': '5.0'}
    assert changed_fields(previous, desired) == frozenset({'disk_size_gb', 'mongo_db_major_version'})


def test_unset_fields_are_left_to_atlas(previous):
    desired = dataclasses.replace(previous, disk_size_gb=None, replication_specs=None)
    body = build_update_request(previous, desired)
    assert body == {}
    assert changed_fields(previous, desired) == frozenset({'disk_size_gb', 'replication_specs'})


def test_regions_order_is_ignored(previous):
    desired = dataclasses.replace(previous, replication_specs=(
        ReplicationSpec(num_shards=1, id='zid1', regions_config=(
            RegionConfig(region_name='US_WEST_2', electable_nodes=2, priority=6),
            RegionConfig(region_name='US_EAST_1', electable_nodes=3, priority=7),
        )),
    ))
    body = build_update_request(previous, desired)
    assert body == {}


def test_zone_ids_assigned_by_atlas_are_ignored(previous):
    desired = dataclasses.replace(previous, replication_specs=(
        ReplicationSpec(num_shards=1, regions_config=(
            RegionConfig(region_name='US_EAST_1', electable_nodes=3, priority=7),
            RegionConfig(region_name='US_WEST_2', electable_nodes=2, priority=6),
        )),
    ))
    body = build_update_request(previous, desired)
    assert body == {}


@pytest.mark.parametrize('field, value', [
    ('name', 'c2'),
    ('project_id', 'p2'),
])
def test_immutable_fields_cannot_be_changed(previous, field, value):
    desired = dataclasses.replace(previous, **{field: value})
    with pytest.raises(ValidationError) as err:
        build_update_request(previous, desired)
    assert field in str(err.value)


def test_desired_specs_are_validated(previous):
    desired = dataclasses.replace(previous, num_shards=None)
    with pytest.raises(ValidationError):
        build_update_request(previous, desired)


@pytest.fixture()
def remote_previous(raw_cluster):
    raw_cluster['providerSettings'].update(volumeType='STANDARD', diskIOPS=3000, encryptEBSVolume=True)
    return parse_spec(raw_cluster)


def test_computed_provider_fields_are_not_changes(remote_previous, spec):
    desired = dataclasses.replace(spec, provider_backup_enabled=True)
    body = build_update_request(remote_previous, desired)
    assert body == {}


def test_provider_settings_are_sent_with_only_the_desired_fields(remote_previous, spec):
    desired = dataclasses.replace(spec, provider_backup_enabled=True, provider_instance_size_name='M20')
    body = build_update_request(remote_previous, desired)
    assert body == {
        'providerSettings': {
            'providerName': 'AWS',
            'instanceSizeName': 'M20',
            'regionName': 'US_EAST_1',
        },
    }
