"""
The main Matlas module for all the exported functions & classes.
"""
# isort: skip_file

# Unlike all other places, where we import other modules and refer
# the functions via the modules, this is the provider's top-level interface,
# as it is seen by the users. So, we export the individual functions.

from matlas.clients.auth import (
    APIContext,
)
from matlas.clients.errors import (
    APIError,
    APIUnauthorizedError,
    APIForbiddenError,
    APINotFoundError,
    APIConflictError,
    APIServerError,
    APITooManyRequestsError,
    TransportError,
    TransportResetError,
)
from matlas.engines.loggers import (
    LogFormat,
    ObjectLogger,
    configure,
)
from matlas.helpers.typedefs import (
    Logger,
)
from matlas.helpers.versions import (
    version as __version__,
)
from matlas.reactor.handling import (
    ClusterOperationError,
    create_cluster,
    read_cluster,
    update_cluster,
    delete_cluster,
    import_cluster,
)
from matlas.reactor.polling import (
    PollingGoal,
    PollingError,
    PollingTimeoutError,
    UnexpectedStateError,
    wait_for_state,
)
from matlas.reactor.translating import (
    build_create_request,
    build_update_request,
    parse_spec,
    parse_status,
)
from matlas.storage.states import (
    StateStorage,
    FileStateStorage,
    StateError,
)
from matlas.structs.configuration import (
    AtlasSettings,
    NetworkingSettings,
    PollingSettings,
)
from matlas.structs.credentials import (
    ConnectionInfo,
    LoginError,
)
from matlas.structs.ids import (
    ResourceId,
    ImportFormatError,
    ResourceIdError,
    parse_import_id,
)
from matlas.structs.specs import (
    ClusterSpec,
    ClusterStatus,
    ClusterState,
    RegionConfig,
    ReplicationSpec,
    BiConnector,
    ResourceState,
    ValidationError,
    TypeCoercionError,
    spec_from_config,
    spec_to_config,
)
from matlas.utilities.loaders import (
    ConfigError,
    load_spec,
)

__all__ = [
    'APIContext',
    'APIError',
    'APIUnauthorizedError',
    'APIForbiddenError',
    'APINotFoundError',
    'APIConflictError',
    'APIServerError',
    'APITooManyRequestsError',
    'TransportError',
    'TransportResetError',
    'LogFormat',
    'ObjectLogger',
    'configure',
    'Logger',
    'ClusterOperationError',
    'create_cluster',
    'read_cluster',
    'update_cluster',
    'delete_cluster',
    'import_cluster',
    'PollingGoal',
    'PollingError',
    'PollingTimeoutError',
    'UnexpectedStateError',
    'wait_for_state',
    'build_create_request',
    'build_update_request',
    'parse_spec',
    'parse_status',
    'StateStorage',
    'FileStateStorage',
    'StateError',
    'AtlasSettings',
    'NetworkingSettings',
    'PollingSettings',
    'ConnectionInfo',
    'LoginError',
    'ResourceId',
    'ImportFormatError',
    'ResourceIdError',
    'parse_import_id',
    'ClusterSpec',
    'ClusterStatus',
    'ClusterState',
    'RegionConfig',
    'ReplicationSpec',
    'BiConnector',
    'ResourceState',
    'ValidationError',
    'TypeCoercionError',
    'spec_from_config',
    'spec_to_config',
    'ConfigError',
    'load_spec',
    '__version__',
]
