# tests/test_nonce.py
import re
import threading

from exchange.nonce import MAX_LEAD_MS, NonceSource, make_cloid
from utils.logger import logger


class FakeClock:
    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now


def test_nonce_follows_clock():
    clock = FakeClock(1_700_000_000_000)
    src = NonceSource(clock)
    assert src.next() == 1_700_000_000_000
    clock.now += 25
    assert src.next() == 1_700_000_000_025
    assert src.last == 1_700_000_000_025


def test_default_clock_is_milliseconds():
    import time
    before = time.time_ns() // 1_000_000
    nonce = NonceSource().next()
    after = time.time_ns() // 1_000_000
    assert before <= nonce <= after


def test_same_tick_bumps_by_one():
    src = NonceSource(FakeClock(1000))
    assert [src.next() for _ in range(3)] == [1000, 1001, 1002]


def test_clock_step_backwards_stays_monotonic():
    clock = FakeClock(5000)
    src = NonceSource(clock)
    first = src.next()
    clock.now = 4000
    assert src.next() == first + 1


def test_warns_when_running_ahead_of_clock():
    messages = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="WARNING")
    try:
        src = NonceSource(FakeClock(0))
        for _ in range(MAX_LEAD_MS + 2):
            src.next()
    finally:
        logger.remove(handler_id)
    assert any("ahead of the clock" in m for m in messages)


def test_concurrent_callers_get_unique_increasing_nonces():
    src = NonceSource()
    per_thread = {}

    def worker(tid: int):
        per_thread[tid] = [src.next() for _ in range(200)]

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    issued = [n for seq in per_thread.values() for n in seq]
    assert len(issued) == len(set(issued)) == 8 * 200
    for seq in per_thread.values():
        assert all(a < b for a, b in zip(seq, seq[1:]))
    assert src.last == max(issued)


def test_make_cloid_format():
    a, b = make_cloid(), make_cloid()
    assert re.fullmatch(r"0x[0-9a-f]{32}", a)
    assert a != b
