from typing import Iterator


def iter_warehouses(thread_index: int, thread_count: int, warehouse_count: int) -> Iterator[int]:
    """Yield the 1-based warehouse ids owned by one worker thread.

    Thread ``t`` takes ids ``t + 1, t + 1 + thread_count, ...``, so the
    shards of threads ``0 .. thread_count - 1`` are disjoint and together
    cover ``1 .. warehouse_count``. Threads with an index at or past
    ``warehouse_count`` get nothing.
    """
    if thread_count < 1:
        raise ValueError(f"thread_count should be positive, got {thread_count}")
    if warehouse_count < 1:
        raise ValueError(f"warehouse_count should be positive, got {warehouse_count}")
    if thread_index < 0:
        raise ValueError(f"thread_index should be non-negative, got {thread_index}")

    for i in range(thread_index % thread_count, warehouse_count, thread_count):
        yield i % warehouse_count + 1
