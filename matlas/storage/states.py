"""
State stores keep the records of the managed clusters between the runs.

A record is what the operations return (`matlas.structs.specs.ResourceState`):
the opaque resource id, the last known spec, and the last observed status.
It is stored after every successful operation, and purged after the deletion
or when the cluster is found gone. Failed operations store nothing, so that
the previous record (if any) stays intact.

The only store implemented is a JSON file with one record, similar to what
an orchestrating host (e.g. Terraform) keeps for every resource instance.
Other stores are possible by inheriting and overriding the base class.

The persisted record is a fixed-structure dict with the following keys:

* ``id`` is the opaque resource id (see `matlas.structs.ids`).
* ``spec`` is the spec in the same form as in the user's configuration.
* ``status`` is the observed status; timestamps are strings in ISO8601 format.
"""
import abc
import dataclasses
import json
import os
import pathlib
from typing import Any, Dict, Mapping, Optional, Union

import iso8601
from typing_extensions import TypedDict

from matlas.structs import ids, specs


class StateError(Exception):
    """ The stored record is unreadable or malformed. """


class StateRecord(TypedDict, total=True):
    """ A single record stored for persistence of a single cluster. """
    id: str
    spec: Dict[str, Any]
    status: Dict[str, Any]


class StateStorage(metaclass=abc.ABCMeta):
    """
    Base class and an interface for all the stores of the clusters' states.
    """

    @abc.abstractmethod
    def fetch(self) -> Optional[specs.ResourceState]:
        raise NotImplementedError

    @abc.abstractmethod
    def store(self, state: specs.ResourceState) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def purge(self) -> None:
        raise NotImplementedError


class FileStateStorage(StateStorage):
    """
    A JSON file with a single cluster's record.

    The file is replaced atomically on every store, so that an interrupted
    write never leaves a half-written record behind.
    """

    def __init__(self, path: Union[str, os.PathLike]) -> None:  # type: ignore
        super().__init__()
        self.path = pathlib.Path(path)

    def fetch(self) -> Optional[specs.ResourceState]:
        try:
            text = self.path.read_text(encoding='utf-8')
        except FileNotFoundError:
            return None
        try:
            record = json.loads(text)
        except json.JSONDecodeError as e:
            raise StateError(f"The state file {str(self.path)!r} is not a valid JSON: {e}") from e
        return record_to_state(record)

    def store(self, state: specs.ResourceState) -> None:
        text = json.dumps(state_to_record(state), indent=2, sort_keys=True)
        tmp_path = self.path.with_name(self.path.name + '.tmp')
        tmp_path.write_text(text + '\n', encoding='utf-8')
        os.replace(tmp_path, self.path)

    def purge(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


def state_to_record(state: specs.ResourceState) -> StateRecord:
    status: Dict[str, Any] = dataclasses.asdict(state.status)
    status['state_name'] = str(state.status.state_name)
    if state.status.mongo_uri_updated is not None:
        status['mongo_uri_updated'] = state.status.mongo_uri_updated.isoformat()
    return StateRecord(
        id=str(state.id),
        spec=specs.spec_to_config(state.spec),
        status={key: val for key, val in status.items() if val is not None},
    )


def record_to_state(record: Mapping[str, Any]) -> specs.ResourceState:
    try:
        raw_status = dict(record['status'])
        raw_status.setdefault('cluster_id', None)
        timestamp = raw_status.get('mongo_uri_updated')
        raw_status['state_name'] = specs.ClusterState(raw_status['state_name'])
        raw_status['mongo_uri_updated'] = iso8601.parse_date(timestamp) if timestamp else None
        return specs.ResourceState(
            id=ids.ResourceId(record['id']),
            spec=specs.spec_from_config(record['spec']),
            status=specs.ClusterStatus(**raw_status),
        )
    except (KeyError, TypeError, ValueError, iso8601.ParseError) as e:
        raise StateError(f"The state record is malformed: {e}") from e
