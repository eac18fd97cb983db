from swcache.__version__ import __version__ as __version__
from swcache._core._storages._async_base import AsyncBaseStorage
from swcache._core._storages._async_memory import AsyncInMemoryStorage
from swcache._core._storages._async_sqlite import AsyncSqliteStorage
from swcache._core._storages._sync_base import SyncBaseStorage
from swcache._core._storages._sync_memory import SyncInMemoryStorage
from swcache._core._storages._sync_sqlite import SyncSqliteStorage
from swcache._core._headers import Headers as Headers
from swcache._core._classifier import (
    ClassificationRules as ClassificationRules,
    RequestClass as RequestClass,
    classify as classify,
    host_matches as host_matches,
)
from swcache._core._control import (
    CACHE_CLEARED as CACHE_CLEARED,
    CLEAR_CACHE as CLEAR_CACHE,
    GET_VERSION as GET_VERSION,
    SKIP_WAITING as SKIP_WAITING,
    ClearCache as ClearCache,
    ControlMessage as ControlMessage,
    GetVersion as GetVersion,
    SkipWaiting as SkipWaiting,
    parse_control_message as parse_control_message,
)
from swcache._core._options import EngineOptions as EngineOptions
from swcache._core._strategies import (
    AnyState as AnyState,
    Bypass as Bypass,
    CacheFirstFetch as CacheFirstFetch,
    CacheFirstLookup as CacheFirstLookup,
    CacheFirstRecheck as CacheFirstRecheck,
    NetworkFirstFallback as NetworkFirstFallback,
    NetworkFirstFetch as NetworkFirstFetch,
    NoContentAvailable as NoContentAvailable,
    ReturnAsIs as ReturnAsIs,
    ReturnCached as ReturnCached,
    State as State,
    StoreAndReturn as StoreAndReturn,
)
from swcache._core.models import (
    CacheStore as CacheStore,
    Request as Request,
    RequestMetadata as RequestMetadata,
    Response as Response,
    ResponseMetadata as ResponseMetadata,
    Snapshot as Snapshot,
    make_identity as make_identity,
)
from swcache._core._lifecycle import EngineState as EngineState
from swcache._async_engine import AsyncCacheEngine as AsyncCacheEngine, AsyncMessagePort as AsyncMessagePort
from swcache._sync_engine import SyncCacheEngine as SyncCacheEngine, MessagePort as MessagePort
from swcache._exceptions import (
    InvalidStateError as InvalidStateError,
    NetworkFailure as NetworkFailure,
    ProvisioningFailure as ProvisioningFailure,
    StorageFailure as StorageFailure,
    SwcacheError as SwcacheError,
)

__all__ = (
    "__version__",
    ## States
    "AnyState",
    "State",
    "Bypass",
    "CacheFirstLookup",
    "CacheFirstFetch",
    "CacheFirstRecheck",
    "NetworkFirstFetch",
    "NetworkFirstFallback",
    "ReturnCached",
    "StoreAndReturn",
    "ReturnAsIs",
    "NoContentAvailable",
    ## Options
    "EngineOptions",
    "ClassificationRules",
    "RequestClass",
    "classify",
    "host_matches",
    ## Models
    "Request",
    "Response",
    "RequestMetadata",
    "ResponseMetadata",
    "CacheStore",
    "Snapshot",
    "make_identity",
    ## Headers
    "Headers",
    ## Storages
    "SyncBaseStorage",
    "AsyncBaseStorage",
    "SyncInMemoryStorage",
    "AsyncInMemoryStorage",
    "SyncSqliteStorage",
    "AsyncSqliteStorage",
    # Engines
    "AsyncCacheEngine",
    "SyncCacheEngine",
    "AsyncMessagePort",
    "MessagePort",
    "EngineState",
    # Control messages
    "SKIP_WAITING",
    "CLEAR_CACHE",
    "GET_VERSION",
    "CACHE_CLEARED",
    "SkipWaiting",
    "ClearCache",
    "GetVersion",
    "ControlMessage",
    "parse_control_message",
    # Exceptions
    "SwcacheError",
    "ProvisioningFailure",
    "StorageFailure",
    "NetworkFailure",
    "InvalidStateError",
)
