"""
All the structures coming from/to the Atlas Admin API.

Everything marked "raw" is a plain unwrapped unprocessed data as JSON-decoded
from the Atlas API (or as going to be JSON-encoded for it). The names of the
keys follow the API's camelCase naming, not the provider's snake_case.

For strict type-checking, they are detailed to the per-field level
(e.g. `TypedDict` instead of just ``Mapping[Any, Any]``) -- as used by
the provider. Atlas can return more fields, which are not declared here;
they are passed through at runtime and are ignored by the provider.

The payloads are sparse: a key that is absent means "not set", which is
different from ``False`` or ``0``. This is essential for the update requests,
where every present key is a change that Atlas will apply.

.. seealso::
    https://www.mongodb.com/docs/atlas/reference/api/clusters/
"""
from typing import Any, List, Mapping

from typing_extensions import TypedDict


class RawAutoScaling(TypedDict, total=False):
    diskGBEnabled: bool


class RawBiConnector(TypedDict, total=False):
    enabled: bool
    readPreference: str


class RawProviderSettings(TypedDict, total=False):
    providerName: str
    instanceSizeName: str
    regionName: str
    backingProviderName: str
    diskIOPS: int
    diskTypeName: str
    encryptEBSVolume: bool
    volumeType: str


class RawRegionConfig(TypedDict, total=False):
    electableNodes: int
    priority: int
    readOnlyNodes: int
    analyticsNodes: int


class RawReplicationSpec(TypedDict, total=False):
    id: str
    numShards: int
    zoneName: str
    regionsConfig: Mapping[str, RawRegionConfig]  # keyed by region names, unordered on reads.


class RawCluster(TypedDict, total=False):
    # Settable fields:
    groupId: str
    name: str
    clusterType: str
    diskSizeGB: float
    encryptionAtRestProvider: str
    mongoDBMajorVersion: str
    numShards: int
    replicationFactor: int
    backupEnabled: bool
    providerBackupEnabled: bool
    autoScaling: RawAutoScaling
    biConnector: RawBiConnector
    providerSettings: RawProviderSettings
    replicationSpecs: List[RawReplicationSpec]

    # Read-only fields:
    id: str
    stateName: str
    paused: bool
    mongoDBVersion: str
    mongoURI: str
    mongoURIUpdated: str
    mongoURIWithOptions: str
    srvAddress: str


class RawError(TypedDict, total=False):
    """ The body of the non-2xx responses of the Atlas API. """
    detail: str
    error: int
    errorCode: str
    parameters: List[Any]
    reason: str
