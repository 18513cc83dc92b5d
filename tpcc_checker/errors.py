"""Error taxonomy for the consistency sweep.

Every error raised by a sweep derives from ConsistencyCheckError so the
harness can catch one type, while CancellationError stays distinguishable
from real data problems.
"""


class ConsistencyCheckError(Exception):
    pass


class ExecutionError(ConsistencyCheckError):
    """The query executor failed (connectivity, syntax, schema mismatch)."""

    def __init__(self, query, cause):
        self.query = query
        self.cause = cause
        super().__init__(f"Exec {' '.join(query.split())} failed: {cause}")


class ScanError(ConsistencyCheckError):
    """A result cell could not be decoded into a number."""

    def __init__(self, value, cause=None):
        self.value = value
        self.cause = cause
        message = f"cannot decode {value!r} as a number"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class InvariantViolation(ConsistencyCheckError):
    def __init__(self, check_number, warehouse_id, observed, description):
        self.check_number = check_number
        self.warehouse_id = warehouse_id
        self.observed = observed
        self.description = description
        super().__init__(
            f"check condition {check_number} failed: {description} "
            f"in warehouse {warehouse_id}, but got {observed}"
        )


class CheckFailed(ConsistencyCheckError):
    """Any non-semantic error raised while a numbered check was running.

    ``cause`` holds the underlying ExecutionError or ScanError (also chained
    as ``__cause__``), so callers can tell a failed query from an
    undecodable result without parsing the message.
    """

    def __init__(self, check_number, warehouse_id, cause):
        self.check_number = check_number
        self.warehouse_id = warehouse_id
        self.cause = cause
        super().__init__(
            f"check condition {check_number} failed in warehouse {warehouse_id}: {cause}"
        )


class CancellationError(ConsistencyCheckError):
    def __init__(self, thread_index, warehouse_id=None):
        self.thread_index = thread_index
        self.warehouse_id = warehouse_id
        where = f" before warehouse {warehouse_id}" if warehouse_id is not None else ""
        super().__init__(f"consistency sweep of thread {thread_index} cancelled{where}")
