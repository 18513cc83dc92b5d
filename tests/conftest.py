"""Shared fixtures for tpcc_checker tests"""

import threading
from decimal import Decimal

import pytest

from tpcc_checker.checks import CHECKS


class FakeExecutor:
    """In-memory query executor.

    Every check gets a passing row by default; ``fail`` and ``raise_on``
    override the result for one check, optionally for a single warehouse.
    Every call is recorded as ``(check_number, params)``.
    """

    def __init__(self):
        self._numbers = {check.query: check.number for check in CHECKS}
        self._rows = {}
        self._errors = {}
        self.calls = []
        self.lock = threading.Lock()

    def fail(self, check_number, rows, warehouse_id=None):
        self._rows[(check_number, warehouse_id)] = rows

    def raise_on(self, check_number, error, warehouse_id=None):
        self._errors[(check_number, warehouse_id)] = error

    def _lookup(self, table, number, warehouse_id):
        if (number, warehouse_id) in table:
            return table[(number, warehouse_id)]
        return table.get((number, None))

    def query(self, sql, args=()):
        number = self._numbers[sql]
        warehouse_id = args[0]
        with self.lock:
            self.calls.append((number, tuple(args)))
        error = self._lookup(self._errors, number, warehouse_id)
        if error is not None:
            raise error
        rows = self._lookup(self._rows, number, warehouse_id)
        if rows is not None:
            return rows
        if number == 2:
            return [(0, Decimal("0"))]
        return [(Decimal("0"),)]

    def checked_warehouses(self):
        seen = []
        for _, params in self.calls:
            if params[0] not in seen:
                seen.append(params[0])
        return seen


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def cancel_event():
    return threading.Event()
