import asyncio
import copy
import io
import json
import logging
import re
import sys
import time
from unittest.mock import AsyncMock, Mock

import aresponses as aresponses_lib
import pytest

from matlas.clients.auth import APIContext
from matlas.engines.loggers import ObjectLogger, ObjectPrefixingTextFormatter, configure
from matlas.structs.configuration import AtlasSettings
from matlas.structs.credentials import ConnectionInfo
from matlas.structs.specs import ClusterSpec

RAW_CLUSTER = {
    'id': 'cid1',
    'groupId': 'p1',
    'name': 'c1',
    'stateName': 'IDLE',
    'paused': False,
    'mongoDBVersion': '4.4.10',
    'mongoURI': 'mongodb://c1-shard-00-00.abcde.mongodb.net:27017',
    'mongoURIUpdated': '2020-01-02T03:04:05Z',
    'mongoURIWithOptions': 'mongodb://c1-shard-00-00.abcde.mongodb.net:27017/?ssl=true',
    'srvAddress': 'mongodb+srv://c1.abcde.mongodb.net',
    'clusterType': 'REPLICASET',
    'diskSizeGB': 10,
    'mongoDBMajorVersion': '4.4',
    'numShards': 1,
    'replicationFactor': 3,
    'backupEnabled': False,
    'providerBackupEnabled': True,
    'autoScaling': {'diskGBEnabled': True},
    'biConnector': {'enabled': False, 'readPreference': 'secondary'},
    'providerSettings': {
        '@type': 'AWSProviderSettings',
        'providerName': 'AWS',
        'instanceSizeName': 'M10',
        'regionName': 'US_EAST_1',
        'diskIOPS': 100,
        'encryptEBSVolume': True,
    },
    'replicationSpecs': [{
        'id': 'zid1',
        'numShards': 1,
        'zoneName': 'Zone 1',
        'regionsConfig': {
            'US_EAST_1': {'electableNodes': 3, 'priority': 7, 'readOnlyNodes': 0, 'analyticsNodes': 0},
        },
    }],
}


@pytest.fixture()
def raw_cluster():
    """ A cluster as returned by Atlas on reads. Every test gets its own copy. """
    return copy.deepcopy(RAW_CLUSTER)


@pytest.fixture()
def spec():
    return ClusterSpec(
        project_id='p1',
        name='c1',
        provider_name='AWS',
        provider_instance_size_name='M10',
        provider_region_name='US_EAST_1',
    )


@pytest.fixture()
def settings():
    return AtlasSettings()


@pytest.fixture()
def logger():
    return ObjectLogger(project_id='p1', name='c1')


#
# Mocks for the Atlas API. Reasons:
# 1. We do not test aiohttp, we test the layers on top of it,
#    so everything low-level should be mocked and assumed to be functional.
# 2. No external calls must be made under any circumstances.
#    The unit-tests must be fully isolated from the environment.
#

@pytest.fixture()
def hostname():
    """ A fake hostname to be used in all aiohttp/aresponses tests. """
    return 'fake-host'


@pytest.fixture()
def info(hostname):
    return ConnectionInfo(server=f'https://{hostname}', public_key='pub', private_key='priv')


@pytest.fixture()
async def context(info):
    async with APIContext(info) as context:
        yield context


@pytest.fixture()
async def aresponses():
    """ The same as the plugin's fixture, but bound to the test's running loop. """
    async with aresponses_lib.ResponsesMockServer(loop=asyncio.get_running_loop()) as server:
        yield server


@pytest.fixture()
def resp_mocker(context, aresponses):
    """
    A factory of server-side callbacks for `aresponses` with mocking/spying.

    The value of the fixture is a function, which return a coroutine mock.
    That coroutine mock should be passed to `aresponses.add` as a response
    callback function. When called, it calls the mock defined by the function's
    arguments (specifically, return_value or side_effects).

    The received request payloads are accumulated in the mock's ``payloads``,
    since the requests' content can be read inside of the handler only.

    Sample usage::

        def test_me(resp_mocker):
            response = aiohttp.web.json_response({'a': 'b'})
            callback = resp_mocker(return_value=response)
            aresponses.add(hostname, '/path/', 'get', callback)
            do_something()
            assert callback.called
            assert callback.call_count == 1
    """
    def resp_maker(*args, **kwargs):
        actual_response = Mock(*args, **kwargs)
        payloads = []

        async def resp_mock_effect(request):
            text = await request.text()
            payloads.append(json.loads(text) if text else None)
            return actual_response()

        mock = AsyncMock(side_effect=resp_mock_effect)
        mock.payloads = payloads
        return mock
    return resp_maker


#
# Helpers for the timing checks.
#

@pytest.fixture()
def timer():
    return Timer()


class Timer(object):
    """
    A helper context manager to measure the time of the code-blocks.
    Also, supports direct comparison with time-deltas and the numbers of seconds.

    Usage:

        with Timer() as timer:
            do_something()
            print(f"Executing for {timer.seconds}s already.")
            do_something_else()

        print(f"Executed in {timer.seconds}s.")
        assert timer.seconds < 5.0
    """

    def __init__(self):
        super().__init__()
        self._ts = None
        self._te = None

    @property
    def seconds(self):
        if self._ts is None:
            return None
        elif self._te is None:
            return time.perf_counter() - self._ts
        else:
            return self._te - self._ts

    def __repr__(self):
        status = 'new' if self._ts is None else 'running' if self._te is None else 'finished'
        return f'<Timer: {self.seconds}s ({status})>'

    def __enter__(self):
        self._ts = time.perf_counter()
        self._te = None
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._te = time.perf_counter()


#
# Helpers for the logging checks.
#


@pytest.fixture()
def logstream(caplog):
    """ Prefixing is done at the final output. We have to intercept it. """

    logger = logging.getLogger()
    handlers = list(logger.handlers)

    # Setup all log levels of sub-libraries. A sife-effect: the handlers are also added.
    configure(verbose=True)

    # Remove any stream handlers added in the step above. But keep the caplog's handlers.
    for handler in list(logger.handlers):
        if isinstance(handler, logging.StreamHandler) and handler.stream is sys.stderr:
            logger.removeHandler(handler)

    # Inject our stream-intercepting handler.
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    formatter = ObjectPrefixingTextFormatter('prefix %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    try:
        with caplog.at_level(logging.DEBUG):
            yield stream
    finally:
        logger.removeHandler(handler)
        logger.handlers[:] = handlers  # undo `configure()`


@pytest.fixture()
def assert_logs(caplog):
    """
    A function to assert the logs are present (by pattern).

    The listed message patterns MUST be present, in the order specified.
    Some other log messages can also be present, but they are ignored.
    """
    caplog.set_level(logging.DEBUG)

    def assert_logs_fn(patterns, prohibited=[], strict=False):
        __traceback_hide__ = True
        remaining_patterns = list(patterns)
        for message in caplog.messages:
            # The expected pattern is at position 0.
            # Looking-ahead: if one of the following patterns matches, while the
            # 0th does not, then the log message is missing, and we fail the test.
            for idx, pattern in enumerate(remaining_patterns):
                m = re.search(pattern, message)
                if m:
                    if idx == 0:
                        remaining_patterns[:1] = []
                        break  # out of `remaining_patterns` cycle
                    else:
                        skipped_patterns = remaining_patterns[:idx]
                        raise AssertionError(f"Few patterns were skipped: {skipped_patterns!r}")
                elif strict:
                    raise AssertionError(f"Unexpected log message: {message!r}")

            # Check that the prohibited patterns do not appear in any message.
            for pattern in prohibited:
                m = re.search(pattern, message)
                if m:
                    raise AssertionError(f"Prohibited log pattern found: {message!r} ~ {pattern!r}")

        # If all patterns have been matched in order, we are done.
        # if some are left, but the messages are over, then we fail.
        if remaining_patterns:
            raise AssertionError(f"Few patterns were missed: {remaining_patterns!r}")

    return assert_logs_fn
