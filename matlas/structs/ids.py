"""
Identifiers of the managed clusters: the opaque resource ids & import ids.

The resource id is what the host records for a successfully created cluster.
It encodes all the identifying fields needed for the subsequent operations,
so that no other state is needed to find the cluster in Atlas::

    base64(key1):base64(value1)-base64(key2):base64(value2)-...

The keys are sorted, so the same fields always produce the same id.
The base64 alphabet contains neither ``:`` nor ``-``, so the encoding
is reversible for arbitrary values.

The import id is what the users type to adopt an existing cluster:
``{project_id}-{name}``, split at the first hyphen (so the project ids
with hyphens cannot be imported this way; Atlas project ids are hex strings).
"""
import base64
import binascii
from typing import Dict, Mapping, NamedTuple, NewType

ResourceId = NewType('ResourceId', str)


class ImportFormatError(ValueError):
    """ The import id is not of the ``{project_id}-{name}`` format. """


class ResourceIdError(ValueError):
    """ The resource id is malformed (e.g. edited manually). """


class ClusterRef(NamedTuple):
    project_id: str
    name: str


def encode_resource_id(values: Mapping[str, str]) -> ResourceId:
    return ResourceId('-'.join(
        f'{_encode(key)}:{_encode(values[key])}'
        for key in sorted(values)
    ))


def decode_resource_id(resource_id: str) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for pair in resource_id.split('-') if resource_id else []:
        key, sep, value = pair.partition(':')
        if not sep:
            raise ResourceIdError(f"Malformed resource id: {resource_id!r}")
        values[_decode(key, resource_id)] = _decode(value, resource_id)
    return values


def make_resource_id(*, cluster_id: str, project_id: str, cluster_name: str) -> ResourceId:
    return encode_resource_id({
        'cluster_id': cluster_id,
        'project_id': project_id,
        'cluster_name': cluster_name,
    })


def parse_resource_id(resource_id: str) -> ClusterRef:
    values = decode_resource_id(resource_id)
    try:
        return ClusterRef(project_id=values['project_id'], name=values['cluster_name'])
    except KeyError as e:
        raise ResourceIdError(f"Resource id misses {e.args[0]!r}: {resource_id!r}") from e


def parse_import_id(import_id: str) -> ClusterRef:
    project_id, sep, name = import_id.partition('-')
    if not sep or not project_id or not name:
        raise ImportFormatError(f"Import format error: to import a cluster, "
                                f"use the format {{project_id}}-{{name}}; got {import_id!r}")
    return ClusterRef(project_id=project_id, name=name)


def _encode(value: str) -> str:
    return base64.b64encode(value.encode('utf-8')).decode('ascii')


def _decode(value: str, resource_id: str) -> str:
    try:
        return base64.b64decode(value.encode('ascii'), validate=True).decode('utf-8')
    except (binascii.Error, UnicodeError) as e:
        raise ResourceIdError(f"Malformed resource id: {resource_id!r}") from e
