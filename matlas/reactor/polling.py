"""
Waiting for the clusters to reach their target states.

Atlas provisions the clusters asynchronously: a mutating request is accepted
immediately, and the actual work takes minutes. To hide this from the callers,
the cluster's status is read periodically until it reaches the target state
(e.g. ``IDLE`` after creation, ``DELETED`` after deletion), or until the time
budget is exhausted.

Every tick is one status read. Its outcome is one of:

* The target state: the waiting is over successfully.
* One of the expected transitional states: continue waiting.
* A connection reset: continue waiting (the reset is transient, Atlas is fine).
* The cluster is not found: a success when waiting for the deletion,
  an error otherwise (the cluster has disappeared unexpectedly).
* Any other state or error: fail immediately.

The same loop serves all operations: the differences are only in the goals.
"""
import asyncio
import dataclasses
from typing import AbstractSet, Awaitable, Callable, Optional, Union

from matlas.clients import errors
from matlas.engines import sleeping
from matlas.helpers import typedefs
from matlas.structs import configuration, specs

PENDING = 'PENDING'
""" The pseudo-state before the first status read. """

RETRY_TRANSPORT = 'RETRY_TRANSPORT'
""" The pseudo-state after a connection reset, when the real state is unknown. """

State = Union[specs.ClusterState, str]
Fetcher = Callable[[], Awaitable[specs.ClusterStatus]]

CREATION_PENDING = frozenset({
    specs.ClusterState.CREATING,
    specs.ClusterState.UPDATING,
    specs.ClusterState.REPAIRING,
})
UPDATING_PENDING = CREATION_PENDING
DELETION_PENDING = frozenset({
    specs.ClusterState.IDLE,
    specs.ClusterState.CREATING,
    specs.ClusterState.UPDATING,
    specs.ClusterState.REPAIRING,
    specs.ClusterState.DELETING,
})


class PollingError(Exception):
    """ The cluster has not reached its target state. """


class UnexpectedStateError(PollingError):
    """ The cluster is in a state that cannot lead to the target state. """

    def __init__(self, state: State, goal: "PollingGoal") -> None:
        super().__init__(f"Unexpected state {state!s} while waiting for {goal.target!s}.")
        self.state = state


class PollingTimeoutError(PollingError, TimeoutError):
    """ The cluster has not reached its target state in time. """

    def __init__(self, state: State, goal: "PollingGoal") -> None:
        super().__init__(f"Timed out in {goal.timeout}s while waiting for {goal.target!s}; "
                         f"the last observed state is {state!s}.")
        self.state = state


@dataclasses.dataclass(frozen=True)
class PollingGoal:
    target: specs.ClusterState
    pending: AbstractSet[specs.ClusterState]
    delay: float = 0
    interval: float = 0
    timeout: float = 0


@dataclasses.dataclass(frozen=True)
class Observation:
    state: State
    status: Optional[specs.ClusterStatus] = None


def creation_goal(settings: configuration.AtlasSettings) -> PollingGoal:
    return PollingGoal(
        target=specs.ClusterState.IDLE,
        pending=CREATION_PENDING,
        delay=settings.creation.delay,
        interval=settings.creation.interval,
        timeout=settings.creation.timeout,
    )


def updating_goal(settings: configuration.AtlasSettings) -> PollingGoal:
    return PollingGoal(
        target=specs.ClusterState.IDLE,
        pending=UPDATING_PENDING,
        delay=settings.updating.delay,
        interval=settings.updating.interval,
        timeout=settings.updating.timeout,
    )


def deletion_goal(settings: configuration.AtlasSettings) -> PollingGoal:
    return PollingGoal(
        target=specs.ClusterState.DELETED,
        pending=DELETION_PENDING,
        delay=settings.deletion.delay,
        interval=settings.deletion.interval,
        timeout=settings.deletion.timeout,
    )


async def observe(
        fetch: Fetcher,
        goal: PollingGoal,
) -> Observation:
    """
    Perform one tick: read the status and interpret it towards the goal.

    The errors that are neither resets nor expected absences escalate as is.
    """
    try:
        status = await fetch()
    except errors.TransportResetError:
        return Observation(state=RETRY_TRANSPORT)
    except errors.APINotFoundError:
        if goal.target is specs.ClusterState.DELETED:
            return Observation(state=specs.ClusterState.DELETED)
        raise
    return Observation(state=status.state_name, status=status)


async def wait_for_state(
        fetch: Fetcher,
        goal: PollingGoal,
        *,
        logger: typedefs.Logger,
) -> Observation:
    """
    Poll the cluster's status until it reaches the goal's target state.

    The timeout is measured from the start, the initial delay included.
    Neither the sleeps nor the reads go beyond the deadline, but at least one
    read is always made. The timeout error names the last state reported
    by Atlas, not the connection resets that might have happened after it.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + goal.timeout
    state: State = PENDING

    await sleeping.sleep([goal.delay, deadline - loop.time()])
    while True:
        remaining = deadline - loop.time()
        read_timeout: Optional[float]
        if remaining > 0:
            read_timeout = remaining
        elif state == PENDING:
            read_timeout = None  # the first read, after the delay has consumed everything.
        else:
            read_timeout = 0

        try:
            observation = await asyncio.wait_for(observe(fetch, goal), timeout=read_timeout)
        except asyncio.TimeoutError as e:
            raise PollingTimeoutError(state, goal) from e

        if observation.state != RETRY_TRANSPORT or state == PENDING:
            state = observation.state

        if observation.state == goal.target:
            logger.info(f"The cluster has reached the {goal.target!s} state.")
            return observation
        elif observation.state == RETRY_TRANSPORT:
            logger.warning(f"The connection was reset while waiting for {goal.target!s}; "
                           f"will retry.")
        elif observation.state in goal.pending:
            logger.info(f"The cluster is {observation.state!s}; waiting for {goal.target!s}.")
        else:
            raise UnexpectedStateError(observation.state, goal)

        remaining = deadline - loop.time()
        if remaining <= 0:
            raise PollingTimeoutError(state, goal)
        await sleeping.sleep([goal.interval, remaining])
