import asyncio

import aiohttp
import aiohttp.web
import pytest

from matlas.clients.api import delete, get, patch, post, request
from matlas.clients.errors import APINotFoundError, APIServerError, APITooManyRequestsError, \
                                  TransportError, TransportResetError


@pytest.fixture(autouse=True)
def fast_retries(settings):
    settings.networking.error_backoffs = [0, 0]


async def test_relative_urls_are_resolved_against_the_server(
        resp_mocker, aresponses, hostname, context, settings, logger):

    result = {'name': 'c1'}
    callback = resp_mocker(return_value=aiohttp.web.json_response(result))
    aresponses.add(hostname, '/api/atlas/v1.0/groups/p1/clusters/c1', 'get', callback)

    data = await get('api/atlas/v1.0/groups/p1/clusters/c1',
                     context=context, settings=settings, logger=logger)

    assert data == {'name': 'c1'}
    assert callback.called
    assert callback.call_count == 1


@pytest.mark.parametrize('fn, method', [
    (post, 'post'),
    (patch, 'patch'),
])
async def test_payloads_are_sent(
        resp_mocker, aresponses, hostname, context, settings, logger, fn, method):

    callback = resp_mocker(return_value=aiohttp.web.json_response({'x': 'y'}))
    aresponses.add(hostname, '/url', method, callback)

    data = await fn('/url', payload={'a': 'b'}, context=context, settings=settings, logger=logger)

    assert data == {'x': 'y'}
    assert callback.payloads == [{'a': 'b'}]


async def test_empty_bodies_are_parsed_as_none(
        resp_mocker, aresponses, hostname, context, settings, logger):

    callback = resp_mocker(return_value=aiohttp.web.Response(status=202))
    aresponses.add(hostname, '/url', 'delete', callback)

    data = await delete('/url', context=context, settings=settings, logger=logger)

    assert data is None
    assert callback.call_count == 1


@pytest.mark.parametrize('status', [500, 503, 429])
async def test_reads_are_retried_on_server_errors(
        resp_mocker, aresponses, hostname, context, settings, logger, assert_logs, status):

    callback = resp_mocker(side_effect=[
        aiohttp.web.json_response({}, status=status),
        aiohttp.web.json_response({'name': 'c1'}),
    ])
    aresponses.add(hostname, '/url', 'get', callback)
    aresponses.add(hostname, '/url', 'get', callback)

    data = await get('/url', context=context, settings=settings, logger=logger)

    assert data == {'name': 'c1'}
    assert callback.call_count == 2
    assert_logs([
        r"Request attempt #1/3 failed; will retry: GET https://fake-host/url",
        r"Request attempt #2/3: GET https://fake-host/url",
        r"Request attempt #2/3 succeeded: GET https://fake-host/url",
    ])


async def test_reads_escalate_when_retries_are_exhausted(
        resp_mocker, aresponses, hostname, context, settings, logger, assert_logs):

    callback = resp_mocker(side_effect=[
        aiohttp.web.json_response({}, status=500) for _ in range(3)
    ])
    aresponses.add(hostname, '/url', 'get', callback)
    aresponses.add(hostname, '/url', 'get', callback)
    aresponses.add(hostname, '/url', 'get', callback)

    with pytest.raises(APIServerError):
        await get('/url', context=context, settings=settings, logger=logger)

    assert callback.call_count == 3
    assert_logs([
        r"Request attempt #1/3 failed; will retry",
        r"Request attempt #2/3 failed; will retry",
        r"Request attempt #3/3 failed; escalating",
    ])


async def test_reads_are_not_retried_on_client_errors(
        resp_mocker, aresponses, hostname, context, settings, logger):

    callback = resp_mocker(return_value=aiohttp.web.json_response({}, status=404))
    aresponses.add(hostname, '/url', 'get', callback)

    with pytest.raises(APINotFoundError):
        await get('/url', context=context, settings=settings, logger=logger)

    assert callback.call_count == 1


@pytest.mark.parametrize('fn, method', [
    (post, 'post'),
    (patch, 'patch'),
    (delete, 'delete'),
])
async def test_mutations_are_never_retried(
        resp_mocker, aresponses, hostname, context, settings, logger, assert_logs, fn, method):

    callback = resp_mocker(return_value=aiohttp.web.json_response({}, status=500))
    aresponses.add(hostname, '/url', method, callback)

    with pytest.raises(APIServerError):
        await fn('/url', context=context, settings=settings, logger=logger)

    assert callback.call_count == 1
    assert_logs([], prohibited=[r"will retry", r"escalating"])


async def test_connection_resets_are_wrapped_and_retried_for_reads(
        mocker, context, settings, logger):

    mock = mocker.patch.object(context.session, 'request', side_effect=aiohttp.ServerDisconnectedError())

    with pytest.raises(TransportResetError) as err:
        await request('get', '/url', context=context, settings=settings, logger=logger)

    assert isinstance(err.value.__cause__, aiohttp.ServerDisconnectedError)
    assert mock.call_count == 3


@pytest.mark.parametrize('exc', [
    aiohttp.ClientConnectionError('refused'),
    asyncio.TimeoutError(),
])
async def test_other_network_errors_are_wrapped(
        mocker, context, settings, logger, exc):

    mocker.patch.object(context.session, 'request', side_effect=exc)

    with pytest.raises(TransportError) as err:
        await request('post', '/url', context=context, settings=settings, logger=logger)

    assert not isinstance(err.value, TransportResetError)
    assert err.value.__cause__ is exc


async def test_timeouts_are_taken_from_settings(
        mocker, context, settings, logger):

    settings.networking.request_timeout = 123
    settings.networking.connect_timeout = 45
    mock = mocker.patch.object(context.session, 'request', side_effect=asyncio.TimeoutError())

    with pytest.raises(TransportError):
        await request('post', '/url', context=context, settings=settings, logger=logger)

    timeout = mock.call_args.kwargs['timeout']
    assert timeout.total == 123
    assert timeout.sock_connect == 45
