import queue
import threading

import pytest

from contextbus.eventqueue import EventQueue

N = 100


def _enqueue_all(q, n):
    def worker(start):
        for i in range(n):
            q.enqueue(start + i)

    threads = [threading.Thread(target=worker, args=(i * n,)) for i in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


def test_many_writers_many_readers():
    q = EventQueue()
    _enqueue_all(q, N)
    assert len(q) == N * N

    seen = set()
    lock = threading.Lock()
    errors = []

    def reader():
        for _ in range(N):
            try:
                value = q.dequeue()
            except queue.Empty:
                errors.append("empty")
                continue
            with lock:
                seen.add(value)

    threads = [threading.Thread(target=reader) for _ in range(N)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert seen == set(range(N * N))
    assert len(q) == 0


def test_many_writers_one_reader():
    q = EventQueue()
    _enqueue_all(q, N)

    seen = {q.dequeue() for _ in range(N * N)}
    assert seen == set(range(N * N))
    assert len(q) == 0


def test_dequeue_empty_raises():
    with pytest.raises(queue.Empty):
        EventQueue().dequeue()


def test_fifo_order_single_thread():
    q = EventQueue()
    for item in ["a", "b", "c"]:
        q.enqueue(item)
    assert [q.dequeue() for _ in range(3)] == ["a", "b", "c"]


def test_none_is_a_valid_item():
    q = EventQueue()
    q.enqueue(None)
    assert len(q) == 1
    assert q.dequeue() is None
    with pytest.raises(queue.Empty):
        q.dequeue()