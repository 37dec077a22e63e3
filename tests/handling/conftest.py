import copy

import pytest

from matlas.reactor.handling import make_state


@pytest.fixture(autouse=True)
def fast_polling(settings):
    for polling in [settings.creation, settings.updating, settings.deletion]:
        polling.delay = 0
        polling.interval = 0
        polling.timeout = 1


@pytest.fixture()
def raw_in_state(raw_cluster):
    """ A factory of the cluster's payloads with different states. """
    def factory(state_name):
        raw = copy.deepcopy(raw_cluster)
        raw['stateName'] = state_name
        return raw
    return factory


@pytest.fixture()
def state(raw_cluster):
    return make_state(raw_cluster, project_id='p1')


@pytest.fixture()
def create_mock(mocker):
    return mocker.patch('matlas.clients.clusters.create_cluster')


@pytest.fixture()
def read_mock(mocker):
    return mocker.patch('matlas.clients.clusters.read_cluster')


@pytest.fixture()
def update_mock(mocker):
    return mocker.patch('matlas.clients.clusters.update_cluster')


@pytest.fixture()
def delete_mock(mocker):
    return mocker.patch('matlas.clients.clusters.delete_cluster')
