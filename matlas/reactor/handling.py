"""
The operations on the managed clusters, as invoked by the host (the CLI).

Every operation combines the translation of specs, the API calls,
and the waiting for the cluster's target state. The result is the new
state to be recorded by the host, or nothing if there is nothing to record.

All failures are re-raised as `ClusterOperationError`, with the operation
and the cluster named, and the original error chained as the cause.
No state is produced if an operation fails: the host keeps the old one
(or none at all) and can retry the whole operation later.
"""
import contextlib
import functools
from typing import Iterator, Optional

from matlas.clients import auth, clusters, errors
from matlas.engines import loggers
from matlas.helpers import typedefs
from matlas.reactor import polling, translating
from matlas.structs import bodies, configuration, ids, specs

# The errors that are expected from the operations; all others are bugs.
OPERATION_ERRORS = (
    errors.APIError,
    errors.TransportError,
    polling.PollingError,
    specs.ValidationError,
    specs.TypeCoercionError,
    ids.ImportFormatError,
    ids.ResourceIdError,
)


class ClusterOperationError(Exception):
    """ An operation on a cluster has failed; the cause is chained. """

    def __init__(self, operation: str, name: str, cause: BaseException) -> None:
        super().__init__(f"Error {operation} MongoDB Cluster ({name}): {cause}")
        self.operation = operation
        self.name = name
        self.cause = cause


@contextlib.contextmanager
def failing(operation: str, name: str) -> Iterator[None]:
    try:
        yield
    except OPERATION_ERRORS as e:
        raise ClusterOperationError(operation, name, e) from e


async def create_cluster(
        spec: specs.ClusterSpec,
        *,
        context: auth.APIContext,
        settings: configuration.AtlasSettings,
        logger: Optional[typedefs.Logger] = None,
) -> specs.ResourceState:
    """
    Create a cluster and wait until it is ready for use (``IDLE``).
    """
    if logger is None:
        logger = loggers.ObjectLogger(project_id=spec.project_id, name=spec.name)
    with failing('creating', spec.name):
        body = translating.build_create_request(spec)
        logger.info("Creating the cluster.")
        await clusters.create_cluster(
            project_id=spec.project_id,
            body=body,
            context=context,
            settings=settings,
            logger=logger,
        )
        await polling.wait_for_state(
            fetch=functools.partial(fetch_status, spec.project_id, spec.name,
                                    context=context, settings=settings, logger=logger),
            goal=polling.creation_goal(settings),
            logger=logger,
        )
        raw = await clusters.read_cluster(
            project_id=spec.project_id,
            name=spec.name,
            context=context,
            settings=settings,
            logger=logger,
        )
        state = make_state(raw, project_id=spec.project_id)
        logger.info(f"The cluster is created: {state.status.srv_address or state.status.mongo_uri}")
        return state


async def read_cluster(
        state: specs.ResourceState,
        *,
        context: auth.APIContext,
        settings: configuration.AtlasSettings,
        logger: Optional[typedefs.Logger] = None,
) -> Optional[specs.ResourceState]:
    """
    Refresh the cluster's state. ``None`` means the cluster is gone.
    """
    if logger is None:
        logger = loggers.ObjectLogger(project_id=state.spec.project_id, name=state.spec.name)
    with failing('reading', state.spec.name):
        ref = ids.parse_resource_id(state.id)
        try:
            raw = await clusters.read_cluster(
                project_id=ref.project_id,
                name=ref.name,
                context=context,
                settings=settings,
                logger=logger,
            )
        except errors.APINotFoundError:
            logger.warning("The cluster is not found; it was deleted outside of the provider.")
            return None
        return make_state(raw, project_id=ref.project_id)


async def update_cluster(
        state: specs.ResourceState,
        desired: specs.ClusterSpec,
        *,
        context: auth.APIContext,
        settings: configuration.AtlasSettings,
        logger: Optional[typedefs.Logger] = None,
) -> specs.ResourceState:
    """
    Apply the changes of the spec to the cluster, if there are any.

    If nothing has changed, no requests are made, and the old state is returned.
    """
    if logger is None:
        logger = loggers.ObjectLogger(project_id=desired.project_id, name=desired.name)
    with failing('updating', desired.name):
        ref = ids.parse_resource_id(state.id)
        body = translating.build_update_request(state.spec, desired)
        if not body:
            logger.info("Nothing to update: the cluster is as desired.")
            return state

        logger.info(f"Updating the cluster: {', '.join(sorted(body))}.")
        await clusters.update_cluster(
            project_id=ref.project_id,
            name=ref.name,
            body=body,
            context=context,
            settings=settings,
            logger=logger,
        )
        await polling.wait_for_state(
            fetch=functools.partial(fetch_status, ref.project_id, ref.name,
                                    context=context, settings=settings, logger=logger),
            goal=polling.updating_goal(settings),
            logger=logger,
        )
        raw = await clusters.read_cluster(
            project_id=ref.project_id,
            name=ref.name,
            context=context,
            settings=settings,
            logger=logger,
        )
        return make_state(raw, project_id=ref.project_id)


async def delete_cluster(
        state: specs.ResourceState,
        *,
        context: auth.APIContext,
        settings: configuration.AtlasSettings,
        logger: Optional[typedefs.Logger] = None,
) -> None:
    """
    Delete the cluster and wait until it is gone. Absent clusters are fine.
    """
    if logger is None:
        logger = loggers.ObjectLogger(project_id=state.spec.project_id, name=state.spec.name)
    with failing('deleting', state.spec.name):
        ref = ids.parse_resource_id(state.id)
        logger.info("Deleting the cluster.")
        try:
            await clusters.delete_cluster(
                project_id=ref.project_id,
                name=ref.name,
                context=context,
                settings=settings,
                logger=logger,
            )
        except errors.APINotFoundError:
            logger.info("The cluster is already deleted.")
            return
        await polling.wait_for_state(
            fetch=functools.partial(fetch_status, ref.project_id, ref.name,
                                    context=context, settings=settings, logger=logger),
            goal=polling.deletion_goal(settings),
            logger=logger,
        )


async def import_cluster(
        import_id: str,
        *,
        context: auth.APIContext,
        settings: configuration.AtlasSettings,
        logger: Optional[typedefs.Logger] = None,
) -> specs.ResourceState:
    """
    Adopt an existing cluster by its ``{project_id}-{name}`` import id.
    """
    with failing('importing', import_id):
        ref = ids.parse_import_id(import_id)
        if logger is None:
            logger = loggers.ObjectLogger(project_id=ref.project_id, name=ref.name)
        raw = await clusters.read_cluster(
            project_id=ref.project_id,
            name=ref.name,
            context=context,
            settings=settings,
            logger=logger,
        )
        state = make_state(raw, project_id=ref.project_id)
        logger.info("The cluster is imported.")
        return state


async def fetch_status(
        project_id: str,
        name: str,
        *,
        context: auth.APIContext,
        settings: configuration.AtlasSettings,
        logger: typedefs.Logger,
) -> specs.ClusterStatus:
    raw = await clusters.read_cluster(
        project_id=project_id,
        name=name,
        context=context,
        settings=settings,
        logger=logger,
    )
    return translating.parse_status(raw)


def make_state(raw: bodies.RawCluster, *, project_id: str) -> specs.ResourceState:
    spec = translating.parse_spec(raw, project_id=project_id)
    status = translating.parse_status(raw)
    resource_id = ids.make_resource_id(
        cluster_id=status.cluster_id or '',
        project_id=spec.project_id,
        cluster_name=spec.name,
    )
    return specs.ResourceState(id=resource_id, spec=spec, status=status)
