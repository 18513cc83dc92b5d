import importlib.metadata

from .checker import ConsistencyChecker
from .checks import CHECKS, Failed, InvariantCheck, Passed, get_check
from .errors import (
    CancellationError,
    CheckFailed,
    ConsistencyCheckError,
    ExecutionError,
    InvariantViolation,
    ScanError,
)
from .sharding import iter_warehouses

try:
    __version__ = importlib.metadata.version("tpcc-consistency-checker")
except importlib.metadata.PackageNotFoundError:
    __version__ = "unknown"
