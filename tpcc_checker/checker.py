import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from logging import getLogger
from typing import Optional, Sequence

from .checks import CHECKS, Failed, InvariantCheck, QueryExecutor
from .errors import (
    CancellationError,
    CheckFailed,
    ConsistencyCheckError,
    ExecutionError,
    InvariantViolation,
)
from .sharding import iter_warehouses

logger = getLogger(__name__)


class ConsistencyChecker:
    """Runs the consistency conditions over the warehouses of one or all workers.

    Each worker owns a disjoint shard of warehouses, so workers share nothing
    but the executor. A worker stops at the first failing check and raises;
    it never collects more than one problem.
    """

    def __init__(
        self,
        executor: QueryExecutor,
        thread_count: int,
        warehouse_count: int,
        checks: Sequence[InvariantCheck] = CHECKS,
    ):
        if thread_count < 1:
            raise ValueError(f"thread_count should be positive, got {thread_count}")
        if warehouse_count < 1:
            raise ValueError(f"warehouse_count should be positive, got {warehouse_count}")
        self.executor = executor
        self.thread_count = thread_count
        self.warehouse_count = warehouse_count
        self.checks = tuple(sorted(checks, key=lambda c: c.number))

    def check(self, thread_index: int, cancel_event: Optional[threading.Event] = None):
        """Sweep the shard of ``thread_index``.

        Returns None when every check passed for every warehouse of the shard.
        Raises InvariantViolation for the first failing check, CheckFailed when
        a query could not run or its result could not be decoded, and
        CancellationError once ``cancel_event`` is set.
        """
        if not 0 <= thread_index < self.thread_count:
            raise ValueError(
                f"thread_index should be in [0, {self.thread_count}), got {thread_index}"
            )

        start_time = time.time()
        swept = 0
        for warehouse_id in iter_warehouses(thread_index, self.thread_count, self.warehouse_count):
            self._raise_if_cancelled(cancel_event, thread_index, warehouse_id)
            for check in self.checks:
                self._raise_if_cancelled(cancel_event, thread_index, warehouse_id)
                result = self._evaluate(check, warehouse_id)
                if isinstance(result, Failed):
                    logger.error(
                        f"thread {thread_index}: check {check.number} failed in warehouse {warehouse_id}, "
                        f"observed {result.observed}"
                    )
                    raise InvariantViolation(
                        check.number, warehouse_id, result.observed, result.description,
                    )
            swept += 1
            logger.debug(f"thread {thread_index}: warehouse {warehouse_id} is consistent")

        logger.info(
            f"thread {thread_index}: {len(self.checks)} checks passed for {swept} warehouses "
            f"in {time.time() - start_time:.2f}s"
        )

    def check_all(self, cancel_event: Optional[threading.Event] = None):
        """Run one worker per thread and raise the first failure reported.

        The first failing worker sets ``cancel_event`` so the other workers
        stop early; their cancellations are not reported.
        """
        if cancel_event is None:
            cancel_event = threading.Event()

        first_error = None
        cancelled = None
        with ThreadPoolExecutor(max_workers=self.thread_count, thread_name_prefix="tpcc-check") as pool:
            futures = [
                pool.submit(self.check, thread_index, cancel_event)
                for thread_index in range(self.thread_count)
            ]
            for future in as_completed(futures):
                try:
                    future.result()
                except CancellationError as e:
                    if cancelled is None:
                        cancelled = e
                except ConsistencyCheckError as e:
                    if first_error is None:
                        first_error = e
                        cancel_event.set()

        if first_error is not None:
            raise first_error
        if cancelled is not None:
            raise cancelled
        logger.info(
            f"consistency check passed for {self.warehouse_count} warehouses using {self.thread_count} threads"
        )

    def _evaluate(self, check: InvariantCheck, warehouse_id: int):
        try:
            return check.evaluate(self.executor, warehouse_id)
        except ConsistencyCheckError as e:
            raise CheckFailed(check.number, warehouse_id, e) from e
        except Exception as e:
            raise CheckFailed(check.number, warehouse_id, ExecutionError(check.query, e)) from e

    @staticmethod
    def _raise_if_cancelled(cancel_event, thread_index, warehouse_id):
        if cancel_event is not None and cancel_event.is_set():
            raise CancellationError(thread_index, warehouse_id)
