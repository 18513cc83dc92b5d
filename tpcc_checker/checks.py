"""
TPC-C consistency conditions (clause 3.3.2)

Each condition is a value object holding one aggregate query and a predicate
over the rows it returns. Conditions never depend on each other; the order of
CHECKS only decides which violation is reported first for a warehouse.

All comparisons are exact: numeric cells are decoded to Decimal and compared
with zero, there is no tolerance. Queries that return no rows pass.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from logging import getLogger
from typing import Any, Callable, Optional, Protocol, Sequence, Union

from .errors import ScanError

logger = getLogger(__name__)

# Orders loaded per district minus the initially undelivered ones.
ORDER_BACKLOG = 2100


@dataclass(frozen=True)
class Passed:
    pass


@dataclass(frozen=True)
class Failed:
    observed: Any
    description: str


CheckResult = Union[Passed, Failed]

PASSED = Passed()


def to_decimal(value) -> Optional[Decimal]:
    """Decode one result cell, keeping NULL as None."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ScanError(value)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        # repr keeps the exact binary noise, so it is not rounded away
        result = Decimal(repr(value))
    elif isinstance(value, (str, bytes, bytearray)):
        if not isinstance(value, str):
            value = bytes(value).decode("ascii", errors="replace")
        try:
            result = Decimal(value.strip())
        except InvalidOperation as e:
            raise ScanError(value, e)
    else:
        raise ScanError(value)

    if not result.is_finite():
        raise ScanError(value)
    return result


def _cell(row, column):
    try:
        return row[column]
    except (IndexError, KeyError, TypeError) as e:
        raise ScanError(row, e)


def zero_difference(*columns: int) -> Callable[[Sequence], Optional[Decimal]]:
    """Every listed column of every row must be exactly zero.

    Returns the first non-zero value seen, or None if all rows satisfy the
    condition. NULL cells are skipped.
    """
    if not columns:
        columns = (0,)

    def predicate(rows):
        for row in rows:
            for column in columns:
                value = to_decimal(_cell(row, column))
                if value is not None and value != 0:
                    return value
        return None

    return predicate


def zero_count(rows) -> Optional[Decimal]:
    """The first cell of the first row counts violating rows and must be 0."""
    for row in rows:
        count = to_decimal(_cell(row, 0))
        if count is not None and count != 0:
            return count
        return None
    return None


class QueryExecutor(Protocol):
    def query(self, sql: str, args: Sequence = ()) -> list:
        """Run a parameterized read-only query and return all of its rows."""
        ...


@dataclass(frozen=True)
class InvariantCheck:
    number: int
    name: str
    description: str
    query: str
    predicate: Callable[[Sequence], Any]
    # how many %s placeholders the warehouse id fills
    bind_count: int = 1

    def params(self, warehouse_id: int) -> tuple:
        return (warehouse_id,) * self.bind_count

    def classify(self, rows) -> CheckResult:
        observed = self.predicate(rows)
        if observed is None:
            return PASSED
        return Failed(observed=observed, description=self.description)

    def evaluate(self, executor: QueryExecutor, warehouse_id: int) -> CheckResult:
        rows = executor.query(self.query, self.params(warehouse_id))
        logger.debug(f"check {self.number} ({self.name}) warehouse {warehouse_id}: {rows}")
        return self.classify(rows)


CHECKS = (
    InvariantCheck(
        number=1,
        name="warehouse_ytd",
        description="sum(d_ytd) - max(w_ytd) should be 0",
        query=(
            "SELECT SUM(d_ytd) - MAX(w_ytd) diff FROM district, warehouse "
            "WHERE d_w_id = w_id AND w_id = %s GROUP BY d_w_id"
        ),
        predicate=zero_difference(0),
    ),
    InvariantCheck(
        number=2,
        name="district_next_order_id",
        description="d_next_o_id - 1 - max(o_id) and d_next_o_id - 1 - max(no_o_id) should be 0",
        query=(
            "SELECT d_next_o_id - 1 - mo, d_next_o_id - 1 - mno FROM district dis, "
            "(SELECT o_d_id, MAX(o_id) mo FROM orders WHERE o_w_id = %s GROUP BY o_d_id) q, "
            "(SELECT no_d_id, MAX(no_o_id) mno FROM new_order WHERE no_w_id = %s GROUP BY no_d_id) n "
            "WHERE d_w_id = %s AND q.o_d_id = dis.d_id AND n.no_d_id = dis.d_id"
        ),
        predicate=zero_difference(0, 1),
        bind_count=3,
    ),
    InvariantCheck(
        number=3,
        name="new_order_dense",
        description="max(no_o_id) - min(no_o_id) + 1 - count(*) should be 0",
        query=(
            "SELECT MAX(no_o_id) - MIN(no_o_id) + 1 - COUNT(*) diff FROM new_order "
            "WHERE no_w_id = %s GROUP BY no_d_id"
        ),
        predicate=zero_difference(0),
    ),
    InvariantCheck(
        number=4,
        name="district_order_line_count",
        description="districts where sum(o_ol_cnt) differs from count(order_line) should be 0",
        query=(
            "SELECT COUNT(*) FROM (SELECT o_d_id, SUM(o_ol_cnt) sm1, MAX(cn) AS cn FROM orders, "
            "(SELECT ol_d_id, COUNT(*) cn FROM order_line WHERE ol_w_id = %s GROUP BY ol_d_id) ol "
            "WHERE o_w_id = %s AND ol_d_id = o_d_id GROUP BY o_d_id) t1 WHERE sm1 <> cn"
        ),
        predicate=zero_count,
        bind_count=2,
    ),
    InvariantCheck(
        number=5,
        name="carrier_matches_new_order",
        description="orders that are both or neither delivered and new should be 0",
        query=(
            "SELECT COUNT(*) FROM orders LEFT JOIN new_order "
            "ON (no_w_id = o_w_id AND no_d_id = o_d_id AND no_o_id = o_id) "
            "WHERE o_w_id = %s AND ((o_carrier_id IS NULL AND no_o_id IS NULL) "
            "OR (o_carrier_id IS NOT NULL AND no_o_id IS NOT NULL))"
        ),
        predicate=zero_count,
    ),
    InvariantCheck(
        number=6,
        name="order_line_count",
        description="orders where o_ol_cnt differs from count(order_line) should be 0",
        query="""
SELECT COUNT(*) FROM
(SELECT o_ol_cnt, order_line_count FROM orders
    JOIN (SELECT ol_w_id, ol_d_id, ol_o_id, COUNT(*) order_line_count FROM order_line
          WHERE ol_w_id = %s GROUP BY ol_w_id, ol_d_id, ol_o_id) AS order_line
    ON orders.o_w_id = order_line.ol_w_id AND orders.o_d_id = order_line.ol_d_id
       AND orders.o_id = order_line.ol_o_id
    WHERE orders.o_w_id = %s) AS t
WHERE t.o_ol_cnt != t.order_line_count""",
        predicate=zero_count,
        bind_count=2,
    ),
    InvariantCheck(
        number=7,
        name="delivery_date_matches_carrier",
        description="order lines whose ol_delivery_d disagrees with o_carrier_id should be 0",
        query=(
            "SELECT COUNT(*) FROM orders, order_line "
            "WHERE o_id = ol_o_id AND o_d_id = ol_d_id AND ol_w_id = o_w_id AND o_w_id = %s "
            "AND ((ol_delivery_d IS NULL AND o_carrier_id IS NOT NULL) "
            "OR (o_carrier_id IS NULL AND ol_delivery_d IS NOT NULL))"
        ),
        predicate=zero_count,
    ),
    InvariantCheck(
        number=8,
        name="warehouse_history",
        description="warehouses where w_ytd differs from sum(h_amount) should be 0",
        query=(
            "SELECT COUNT(*) cn FROM (SELECT w_id, w_ytd, SUM(h_amount) sm FROM history, warehouse "
            "WHERE h_w_id = w_id AND w_id = %s GROUP BY w_id, w_ytd) t1 WHERE w_ytd <> sm"
        ),
        predicate=zero_count,
    ),
    InvariantCheck(
        number=9,
        name="district_history",
        description="districts where sum(d_ytd) differs from sum(h_amount) should be 0",
        query=(
            "SELECT COUNT(*) FROM "
            "(SELECT d_id, d_w_id, SUM(d_ytd) s1 FROM district WHERE d_w_id = %s GROUP BY d_id, d_w_id) d, "
            "(SELECT h_d_id, h_w_id, SUM(h_amount) s2 FROM history WHERE h_w_id = %s GROUP BY h_d_id, h_w_id) h "
            "WHERE h_d_id = d_id AND d_w_id = h_w_id AND s1 <> s2"
        ),
        predicate=zero_count,
        bind_count=2,
    ),
    InvariantCheck(
        number=10,
        name="customer_balance",
        description="customers where c_balance differs from delivered sum(ol_amount) - sum(h_amount) should be 0",
        query="""
SELECT COUNT(*)
FROM (SELECT c.c_id, c.c_d_id, c.c_w_id, c.c_balance c1,
             (SELECT SUM(ol_amount) FROM orders STRAIGHT_JOIN order_line
               WHERE ol_w_id = o_w_id AND ol_d_id = o_d_id AND ol_o_id = o_id
                 AND ol_delivery_d IS NOT NULL
                 AND o_w_id = c.c_w_id AND o_d_id = c.c_d_id AND o_c_id = c.c_id) sm,
             (SELECT SUM(h_amount) FROM history
               WHERE h_c_w_id = c.c_w_id AND h_c_d_id = c.c_d_id AND h_c_id = c.c_id) smh
        FROM customer c
       WHERE c.c_w_id = %s) t
WHERE c1 <> sm - smh""",
        predicate=zero_count,
    ),
    InvariantCheck(
        number=11,
        name="order_backlog",
        description=(
            f"districts where count(orders) - count(new_order) is not {ORDER_BACKLOG} should be 0"
        ),
        query=f"""
SELECT COUNT(*) FROM
    (SELECT * FROM
        (SELECT o_w_id, o_d_id, COUNT(*) order_count FROM orders
          WHERE o_w_id = %s GROUP BY o_w_id, o_d_id) orders
        JOIN (SELECT no_w_id, no_d_id, COUNT(*) new_order_count FROM new_order
               WHERE no_w_id = %s GROUP BY no_w_id, no_d_id) new_order
        ON orders.o_w_id = new_order.no_w_id AND orders.o_d_id = new_order.no_d_id
    ) order_new_order
JOIN (SELECT c_w_id, c_d_id, COUNT(*) customer_count FROM customer
       WHERE c_w_id = %s GROUP BY c_w_id, c_d_id) customer
ON order_new_order.no_w_id = customer.c_w_id AND order_new_order.no_d_id = customer.c_d_id
WHERE order_count - {ORDER_BACKLOG} != new_order_count""",
        predicate=zero_count,
        bind_count=3,
    ),
    InvariantCheck(
        number=12,
        name="customer_payment",
        description="customers where c_balance + c_ytd_payment differs from delivered sum(ol_amount) should be 0",
        query="""
SELECT COUNT(*) FROM
(SELECT c.c_id, c.c_d_id, c.c_balance c1, c_ytd_payment,
        (SELECT SUM(ol_amount) FROM orders STRAIGHT_JOIN order_line
          WHERE ol_w_id = o_w_id AND ol_d_id = o_d_id AND ol_o_id = o_id
            AND ol_delivery_d IS NOT NULL
            AND o_w_id = c.c_w_id AND o_d_id = c.c_d_id AND o_c_id = c.c_id) sm
   FROM customer c
  WHERE c.c_w_id = %s) t1
WHERE c1 + c_ytd_payment <> sm""",
        predicate=zero_count,
    ),
)

_CHECKS_BY_NUMBER = {check.number: check for check in CHECKS}


def get_check(number: int) -> InvariantCheck:
    return _CHECKS_BY_NUMBER[number]
