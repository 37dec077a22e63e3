import asyncio
import contextlib
import dataclasses
import functools
import json
from typing import Any, Callable, Iterator, Optional

import click

from matlas.clients import auth
from matlas.engines import loggers
from matlas.helpers import versions
from matlas.reactor import handling
from matlas.storage import states
from matlas.structs import configuration, credentials, specs
from matlas.utilities import loaders

DEFAULT_STATE_PATH = 'matlas.state.json'

# The errors that are reported to the users as is, without tracebacks.
REPORTED_ERRORS = (
    handling.ClusterOperationError,
    credentials.LoginError,
    loaders.ConfigError,
    states.StateError,
    specs.ValidationError,
)


@dataclasses.dataclass()
class CLIControls:
    """ Controls, which are impossible to pass via CLI (e.g. in tests). """
    settings: Optional[configuration.AtlasSettings] = None


class LogFormatParamType(click.Choice):

    def __init__(self) -> None:
        super().__init__(choices=[v.name.lower() for v in loggers.LogFormat])

    def convert(self, value: Any, param: Any, ctx: Any) -> loggers.LogFormat:
        if isinstance(value, loggers.LogFormat):
            return value
        name: str = super().convert(value, param, ctx)
        return loggers.LogFormat[name.upper()]


def logging_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to configure logging in all commands the same way."""
    @click.option('-v', '--verbose', is_flag=True)
    @click.option('-d', '--debug', is_flag=True)
    @click.option('-q', '--quiet', is_flag=True)
    @click.option('--log-format', type=LogFormatParamType(), default='full')
    @click.option('--log-refkey', type=str)
    @click.option('--log-prefix/--no-log-prefix', default=None)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(verbose: bool, quiet: bool, debug: bool,
                log_format: loggers.LogFormat = loggers.LogFormat.FULL,
                log_prefix: Optional[bool] = False,
                log_refkey: Optional[str] = None,
                *args: Any, **kwargs: Any) -> Any:
        loggers.configure(debug=debug, verbose=verbose, quiet=quiet,
                          log_format=log_format, log_refkey=log_refkey, log_prefix=log_prefix)
        return fn(*args, **kwargs)

    return wrapper


def connection_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to collect the Atlas connection info in all commands the same way."""
    @click.option('--base-url', 'server', type=str, envvar='MONGODB_ATLAS_BASE_URL',
                  default=credentials.DEFAULT_SERVER, show_default=True)
    @click.option('--public-key', type=str, envvar='MONGODB_ATLAS_PUBLIC_KEY')
    @click.option('--private-key', type=str, envvar='MONGODB_ATLAS_PRIVATE_KEY')
    @click.option('--token', type=str, envvar='MONGODB_ATLAS_ACCESS_TOKEN')
    @click.option('--ca-file', 'ca_path', type=click.Path(exists=True, dir_okay=False))
    @click.option('--insecure', is_flag=True, default=None)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(server: str,
                public_key: Optional[str],
                private_key: Optional[str],
                token: Optional[str],
                ca_path: Optional[str],
                insecure: Optional[bool],
                *args: Any, **kwargs: Any) -> Any:
        info = credentials.ConnectionInfo(
            server=server,
            public_key=public_key,
            private_key=private_key,
            token=token,
            ca_path=ca_path,
            insecure=insecure,
        )
        return fn(*args, info=info, **kwargs)

    return wrapper


def state_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to select the state file in all commands the same way."""
    @click.option('-s', '--state', 'state_path', type=click.Path(dir_okay=False),
                  default=DEFAULT_STATE_PATH, show_default=True)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(state_path: str, *args: Any, **kwargs: Any) -> Any:
        return fn(*args, storage=states.FileStateStorage(state_path), **kwargs)

    return wrapper


@contextlib.contextmanager
def reporting_errors() -> Iterator[None]:
    try:
        yield
    except REPORTED_ERRORS as e:
        raise click.ClickException(str(e)) from e


def make_settings(
        controls: CLIControls,
        *,
        timeout: Optional[float] = None,
) -> configuration.AtlasSettings:
    settings = controls.settings if controls.settings is not None else configuration.AtlasSettings()
    if timeout is not None:
        settings.creation.timeout = timeout
        settings.updating.timeout = timeout
        settings.deletion.timeout = timeout
    return settings


def echo_state(state: specs.ResourceState) -> None:
    click.echo(json.dumps(states.state_to_record(state), indent=2, sort_keys=True))


def fetch_existing(storage: states.StateStorage) -> specs.ResourceState:
    state = storage.fetch()
    if state is None:
        raise click.ClickException("No cluster is recorded in the state file.")
    return state


def ensure_absent(storage: states.StateStorage) -> None:
    if storage.fetch() is not None:
        raise click.ClickException("A cluster is already recorded in the state file.")


@click.version_option(version=versions.version or 'unknown', prog_name='matlas')
@click.group(name='matlas', context_settings=dict(
    auto_envvar_prefix='MATLAS',
))
def main() -> None:
    pass


@main.command()
@logging_options
@connection_options
@state_options
@click.option('-t', '--timeout', type=float, default=None)
@click.argument('config', type=click.Path(exists=True, dir_okay=False))
@click.make_pass_decorator(CLIControls, ensure=True)
def create(
        __controls: CLIControls,
        config: str,
        timeout: Optional[float],
        storage: states.StateStorage,
        info: credentials.ConnectionInfo,
) -> None:
    """ Create a cluster as configured, and wait until it is ready. """
    settings = make_settings(__controls, timeout=timeout)
    with reporting_errors():
        ensure_absent(storage)
        spec = loaders.load_spec(config)
        state = asyncio.run(_create(spec, info=info, settings=settings))
        storage.store(state)
    echo_state(state)


@main.command()
@logging_options
@connection_options
@state_options
@click.make_pass_decorator(CLIControls, ensure=True)
def read(
        __controls: CLIControls,
        storage: states.StateStorage,
        info: credentials.ConnectionInfo,
) -> None:
    """ Refresh the recorded cluster's state. """
    settings = make_settings(__controls)
    with reporting_errors():
        old_state = fetch_existing(storage)
        new_state = asyncio.run(_read(old_state, info=info, settings=settings))
        if new_state is None:
            storage.purge()
            click.echo("The cluster is gone; the record is purged.")
            return
        storage.store(new_state)
    echo_state(new_state)


@main.command()
@logging_options
@connection_options
@state_options
@click.option('-t', '--timeout', type=float, default=None)
@click.argument('config', type=click.Path(exists=True, dir_okay=False))
@click.make_pass_decorator(CLIControls, ensure=True)
def update(
        __controls: CLIControls,
        config: str,
        timeout: Optional[float],
        storage: states.StateStorage,
        info: credentials.ConnectionInfo,
) -> None:
    """ Apply the changed configuration to the recorded cluster. """
    settings = make_settings(__controls, timeout=timeout)
    with reporting_errors():
        old_state = fetch_existing(storage)
        spec = loaders.load_spec(config)
        new_state = asyncio.run(_update(old_state, spec, info=info, settings=settings))
        storage.store(new_state)
    echo_state(new_state)


@main.command()
@logging_options
@connection_options
@state_options
@click.option('-t', '--timeout', type=float, default=None)
@click.make_pass_decorator(CLIControls, ensure=True)
def delete(
        __controls: CLIControls,
        timeout: Optional[float],
        storage: states.StateStorage,
        info: credentials.ConnectionInfo,
) -> None:
    """ Delete the recorded cluster, and wait until it is gone. """
    settings = make_settings(__controls, timeout=timeout)
    with reporting_errors():
        state = fetch_existing(storage)
        asyncio.run(_delete(state, info=info, settings=settings))
        storage.purge()
    click.echo("The cluster is deleted; the record is purged.")


@main.command(name='import')
@logging_options
@connection_options
@state_options
@click.argument('import_id', metavar='PROJECT_ID-NAME')
@click.make_pass_decorator(CLIControls, ensure=True)
def import_(
        __controls: CLIControls,
        import_id: str,
        storage: states.StateStorage,
        info: credentials.ConnectionInfo,
) -> None:
    """ Adopt an existing cluster and record it in the state file. """
    settings = make_settings(__controls)
    with reporting_errors():
        ensure_absent(storage)
        state = asyncio.run(_import(import_id, info=info, settings=settings))
        storage.store(state)
    echo_state(state)


async def _create(
        spec: specs.ClusterSpec,
        *,
        info: credentials.ConnectionInfo,
        settings: configuration.AtlasSettings,
) -> specs.ResourceState:
    async with auth.APIContext(info) as context:
        return await handling.create_cluster(spec, context=context, settings=settings)


async def _read(
        state: specs.ResourceState,
        *,
        info: credentials.ConnectionInfo,
        settings: configuration.AtlasSettings,
) -> Optional[specs.ResourceState]:
    async with auth.APIContext(info) as context:
        return await handling.read_cluster(state, context=context, settings=settings)


async def _update(
        state: specs.ResourceState,
        desired: specs.ClusterSpec,
        *,
        info: credentials.ConnectionInfo,
        settings: configuration.AtlasSettings,
) -> specs.ResourceState:
    async with auth.APIContext(info) as context:
        return await handling.update_cluster(state, desired, context=context, settings=settings)


async def _delete(
        state: specs.ResourceState,
        *,
        info: credentials.ConnectionInfo,
        settings: configuration.AtlasSettings,
) -> None:
    async with auth.APIContext(info) as context:
        await handling.delete_cluster(state, context=context, settings=settings)


async def _import(
        import_id: str,
        *,
        info: credentials.ConnectionInfo,
        settings: configuration.AtlasSettings,
) -> specs.ResourceState:
    async with auth.APIContext(info) as context:
        return await handling.import_cluster(import_id, context=context, settings=settings)
