from .config import DispatchConfig
from .database import SQLiteRepository
from .errors import (
    CareDispatchError,
    DataIntegrityWarning,
    DependencyError,
    InvalidArgument,
    RecordNotFound,
)
from .geo import haversine_km, origin_point
from .locator import NearestUnitLocator
from .permissions import Capability, PermissionTable, Role
from .ranker import TriageQueueRanker
from .service import DispatchService

__all__ = [
    "CareDispatchError",
    "Capability",
    "DataIntegrityWarning",
    "DependencyError",
    "DispatchConfig",
    "DispatchService",
    "InvalidArgument",
    "NearestUnitLocator",
    "PermissionTable",
    "RecordNotFound",
    "Role",
    "SQLiteRepository",
    "TriageQueueRanker",
    "haversine_km",
    "origin_point",
]
