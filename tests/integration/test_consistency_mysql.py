"""Runs the full sweep against a live MySQL server.

Builds one warehouse with one district and one customer owning 2100
delivered orders, which satisfies every consistency condition, then
perturbs single rows to trigger specific conditions.

Connection settings come from MYSQL_HOST, MYSQL_PORT, MYSQL_USER and
MYSQL_PASSWORD; run with --run-optional.
"""

import datetime
from decimal import Decimal

import pytest

from tpcc_checker.checker import ConsistencyChecker
from tpcc_checker.config import MysqlSettings
from tpcc_checker.errors import InvariantViolation
from tpcc_checker.mysql_api import MySQLApi

TEST_DB_NAME = "tpcc_checker_test"
ORDERS = 2100
PAYMENT = Decimal("10.00")
LINE_AMOUNT = Decimal("1.00")
DELIVERY_DATE = datetime.datetime(2024, 1, 1)

SCHEMA = [
    """CREATE TABLE warehouse (
        w_id INT NOT NULL, w_ytd DECIMAL(12, 2), PRIMARY KEY (w_id))""",
    """CREATE TABLE district (
        d_id INT NOT NULL, d_w_id INT NOT NULL, d_ytd DECIMAL(12, 2), d_next_o_id INT,
        PRIMARY KEY (d_w_id, d_id))""",
    """CREATE TABLE customer (
        c_id INT NOT NULL, c_d_id INT NOT NULL, c_w_id INT NOT NULL,
        c_balance DECIMAL(12, 2), c_ytd_payment DECIMAL(12, 2),
        PRIMARY KEY (c_w_id, c_d_id, c_id))""",
    """CREATE TABLE history (
        h_c_id INT, h_c_d_id INT, h_c_w_id INT, h_d_id INT, h_w_id INT, h_amount DECIMAL(6, 2))""",
    """CREATE TABLE orders (
        o_id INT NOT NULL, o_d_id INT NOT NULL, o_w_id INT NOT NULL, o_c_id INT,
        o_carrier_id INT, o_ol_cnt INT, PRIMARY KEY (o_w_id, o_d_id, o_id))""",
    """CREATE TABLE new_order (
        no_o_id INT NOT NULL, no_d_id INT NOT NULL, no_w_id INT NOT NULL,
        PRIMARY KEY (no_w_id, no_d_id, no_o_id))""",
    """CREATE TABLE order_line (
        ol_o_id INT NOT NULL, ol_d_id INT NOT NULL, ol_w_id INT NOT NULL, ol_number INT NOT NULL,
        ol_delivery_d DATETIME, ol_amount DECIMAL(6, 2),
        PRIMARY KEY (ol_w_id, ol_d_id, ol_o_id, ol_number))""",
]


def mysql_settings():
    settings = MysqlSettings(password="admin", pool_name="tpcc_checker_test")
    settings.apply_env_overrides()
    return settings


def load_consistent_warehouse(mysql_api):
    delivered = sum(LINE_AMOUNT for _ in range(ORDERS))
    balance = delivered - PAYMENT

    with mysql_api.get_connection() as (connection, cursor):
        cursor.execute("INSERT INTO warehouse VALUES (1, %s)", (PAYMENT,))
        cursor.execute("INSERT INTO district VALUES (1, 1, %s, %s)", (PAYMENT, ORDERS + 1))
        cursor.execute("INSERT INTO customer VALUES (1, 1, 1, %s, %s)", (balance, PAYMENT))
        cursor.execute("INSERT INTO history VALUES (1, 1, 1, 1, 1, %s)", (PAYMENT,))
        cursor.executemany(
            "INSERT INTO orders VALUES (%s, 1, 1, 1, 1, 1)",
            [(o_id,) for o_id in range(1, ORDERS + 1)],
        )
        cursor.executemany(
            "INSERT INTO order_line VALUES (%s, 1, 1, 1, %s, %s)",
            [(o_id, DELIVERY_DATE, LINE_AMOUNT) for o_id in range(1, ORDERS + 1)],
        )


@pytest.fixture
def mysql_api():
    settings = mysql_settings()
    admin_api = MySQLApi(database=None, mysql_settings=settings)
    with admin_api.get_connection() as (connection, cursor):
        cursor.execute(f"DROP DATABASE IF EXISTS `{TEST_DB_NAME}`")
        cursor.execute(f"CREATE DATABASE `{TEST_DB_NAME}`")

    api = MySQLApi(database=TEST_DB_NAME, mysql_settings=settings)
    with api.get_connection() as (connection, cursor):
        for statement in SCHEMA:
            cursor.execute(statement)
    load_consistent_warehouse(api)

    yield api

    with admin_api.get_connection() as (connection, cursor):
        cursor.execute(f"DROP DATABASE IF EXISTS `{TEST_DB_NAME}`")


def execute(mysql_api, sql, args=()):
    with mysql_api.get_connection() as (connection, cursor):
        cursor.execute(sql, args)


@pytest.mark.optional
@pytest.mark.parametrize("thread_count", [1, 2])
def test_consistent_data_passes(mysql_api, thread_count):
    checker = ConsistencyChecker(mysql_api, thread_count=thread_count, warehouse_count=1)
    for thread_index in range(thread_count):
        assert checker.check(thread_index) is None


@pytest.mark.optional
def test_check_is_idempotent(mysql_api):
    checker = ConsistencyChecker(mysql_api, thread_count=1, warehouse_count=1)
    assert checker.check(0) is None
    assert checker.check(0) is None
    assert mysql_api.query("SELECT COUNT(*) FROM orders") == [(ORDERS,)]


@pytest.mark.optional
def test_perturbed_district_ytd(mysql_api):
    execute(mysql_api, "UPDATE district SET d_ytd = d_ytd + 0.01 WHERE d_w_id = 1 AND d_id = 1")
    checker = ConsistencyChecker(mysql_api, thread_count=1, warehouse_count=1)

    with pytest.raises(InvariantViolation) as excinfo:
        checker.check(0)
    assert excinfo.value.check_number == 1
    assert excinfo.value.warehouse_id == 1
    assert excinfo.value.observed == Decimal("0.01")


@pytest.mark.optional
def test_order_line_count_mismatch(mysql_api):
    execute(mysql_api, "UPDATE orders SET o_ol_cnt = 5 WHERE o_w_id = 1 AND o_d_id = 1 AND o_id = 7")
    checker = ConsistencyChecker(mysql_api, thread_count=1, warehouse_count=1)

    with pytest.raises(InvariantViolation) as excinfo:
        checker.check(0)
    assert excinfo.value.check_number in (4, 6)


@pytest.mark.optional
def test_delivered_order_still_new(mysql_api):
    execute(mysql_api, "INSERT INTO new_order VALUES (%s, 1, 1)", (ORDERS,))
    checker = ConsistencyChecker(mysql_api, thread_count=1, warehouse_count=1)

    with pytest.raises(InvariantViolation) as excinfo:
        checker.check(0)
    assert excinfo.value.check_number == 5


def add_order(mysql_api, o_id, delivered=False, amount=LINE_AMOUNT):
    """Add a one-line order for customer 1 and advance d_next_o_id past it."""
    carrier_id = 1 if delivered else None
    delivery_date = DELIVERY_DATE if delivered else None
    with mysql_api.get_connection() as (connection, cursor):
        cursor.execute("INSERT INTO orders VALUES (%s, 1, 1, 1, %s, 1)", (o_id, carrier_id))
        cursor.execute(
            "INSERT INTO order_line VALUES (%s, 1, 1, 1, %s, %s)", (o_id, delivery_date, amount),
        )
        if not delivered:
            cursor.execute("INSERT INTO new_order VALUES (%s, 1, 1)", (o_id,))
        cursor.execute(
            "UPDATE district SET d_next_o_id = GREATEST(d_next_o_id, %s) WHERE d_w_id = 1 AND d_id = 1",
            (o_id + 1,),
        )


@pytest.mark.optional
def test_outstanding_new_orders_pass(mysql_api):
    add_order(mysql_api, ORDERS + 1)
    add_order(mysql_api, ORDERS + 2)
    checker = ConsistencyChecker(mysql_api, thread_count=1, warehouse_count=1)
    assert checker.check(0) is None


def skip_next_order_id(mysql_api):
    add_order(mysql_api, ORDERS + 1)
    execute(mysql_api, "UPDATE district SET d_next_o_id = d_next_o_id + 1 WHERE d_w_id = 1 AND d_id = 1")


def leave_new_order_gap(mysql_api):
    for o_id in range(ORDERS + 1, ORDERS + 4):
        add_order(mysql_api, o_id)
    execute(mysql_api, "DELETE FROM new_order WHERE no_w_id = 1 AND no_d_id = 1 AND no_o_id = %s", (ORDERS + 2,))


def move_order_line(mysql_api):
    # district totals still agree, orders 7 and 8 do not
    execute(
        mysql_api,
        "UPDATE order_line SET ol_o_id = 8, ol_number = 2 WHERE ol_w_id = 1 AND ol_d_id = 1 AND ol_o_id = 7",
    )


def undeliver_order_line(mysql_api):
    execute(
        mysql_api,
        "UPDATE order_line SET ol_delivery_d = NULL WHERE ol_w_id = 1 AND ol_d_id = 1 AND ol_o_id = 7",
    )


def raise_ytd_without_history(mysql_api):
    execute(mysql_api, "UPDATE warehouse SET w_ytd = w_ytd + 5 WHERE w_id = 1")
    execute(mysql_api, "UPDATE district SET d_ytd = d_ytd + 5 WHERE d_w_id = 1 AND d_id = 1")


def move_history_to_other_district(mysql_api):
    execute(mysql_api, "INSERT INTO district VALUES (2, 1, 0.00, 1)")
    execute(mysql_api, "UPDATE history SET h_d_id = 2 WHERE h_w_id = 1")


def raise_customer_balance(mysql_api):
    execute(mysql_api, "UPDATE customer SET c_balance = c_balance + 1 WHERE c_w_id = 1 AND c_d_id = 1 AND c_id = 1")


def add_order_without_new_order(mysql_api):
    add_order(mysql_api, ORDERS + 1, delivered=True, amount=Decimal("0.00"))
    add_order(mysql_api, ORDERS + 2)


def raise_customer_ytd_payment(mysql_api):
    execute(
        mysql_api,
        "UPDATE customer SET c_ytd_payment = c_ytd_payment + 1 WHERE c_w_id = 1 AND c_d_id = 1 AND c_id = 1",
    )


@pytest.mark.optional
@pytest.mark.parametrize(
    "check_number,perturb",
    [
        (2, skip_next_order_id),
        (3, leave_new_order_gap),
        (6, move_order_line),
        (7, undeliver_order_line),
        (8, raise_ytd_without_history),
        (9, move_history_to_other_district),
        (10, raise_customer_balance),
        (11, add_order_without_new_order),
        (12, raise_customer_ytd_payment),
    ],
    ids=lambda value: value.__name__ if callable(value) else f"check{value}",
)
def test_single_violation_is_reported(mysql_api, check_number, perturb):
    perturb(mysql_api)
    checker = ConsistencyChecker(mysql_api, thread_count=1, warehouse_count=1)

    with pytest.raises(InvariantViolation) as excinfo:
        checker.check(0)
    assert excinfo.value.check_number == check_number
    assert excinfo.value.warehouse_id == 1
