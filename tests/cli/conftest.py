import functools
import logging

import click.testing
import pytest

from matlas.cli import main
from matlas.reactor.handling import make_state
from matlas.storage.states import FileStateStorage

CONFIG_YAML = """
project_id: p1
name: c1
provider_name: AWS
provider_instance_size_name: M10
provider_region_name: US_EAST_1
"""


@pytest.fixture(autouse=True)
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture(autouse=True)
def credentials_env(monkeypatch):
    monkeypatch.delenv('MONGODB_ATLAS_BASE_URL', raising=False)
    monkeypatch.delenv('MONGODB_ATLAS_ACCESS_TOKEN', raising=False)
    monkeypatch.setenv('MONGODB_ATLAS_PUBLIC_KEY', 'pub')
    monkeypatch.setenv('MONGODB_ATLAS_PRIVATE_KEY', 'priv')


@pytest.fixture(autouse=True)
def _restore_root_logger():
    # The commands configure the logging with the runner's short-living streams.
    logger = logging.getLogger()
    level = logger.level
    handlers = list(logger.handlers)
    try:
        yield
    finally:
        logger.handlers[:] = handlers
        logger.setLevel(level)


@pytest.fixture()
def runner():
    runner = click.testing.CliRunner()
    return runner


@pytest.fixture()
def invoke(runner):
    return functools.partial(runner.invoke, main)


@pytest.fixture()
def config_path(workdir):
    path = workdir / 'cluster.yaml'
    path.write_text(CONFIG_YAML)
    return path


@pytest.fixture()
def storage(workdir):
    return FileStateStorage(workdir / 'matlas.state.json')


@pytest.fixture()
def state(raw_cluster):
    return make_state(raw_cluster, project_id='p1')


@pytest.fixture()
def stored_state(storage, state):
    storage.store(state)
    return state
