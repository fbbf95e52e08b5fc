# tests/test_ratelimit.py
import threading

from slashbin.state.ratelimit import RateLimiter

class Ticker:
    def __init__(self, t=1000.0):
        self.t = t

    def __call__(self):
        return self.t

def test_hundred_and_first_request_is_denied():
    clock = Ticker()
    rl = RateLimiter(limit=100, window=3600, clock=clock)
    for i in range(100):
        clock.t += 1
        assert rl.admit("10.0.0.1"), i
    assert rl.admit("10.0.0.1") is False
    assert rl.remaining("10.0.0.1") == 0

def test_admission_returns_after_window_passes():
    clock = Ticker()
    rl = RateLimiter(limit=100, window=3600, clock=clock)
    for _ in range(100):
        rl.admit("a")
    assert not rl.admit("a")
    clock.t += 3600
    assert rl.admit("a")
    assert rl.remaining("a") == 99

def test_window_slides_per_entry():
    clock = Ticker()
    rl = RateLimiter(limit=2, window=10, clock=clock)
    assert rl.admit("k")
    clock.t += 5
    assert rl.admit("k")
    assert not rl.admit("k")
    clock.t += 5  # first stamp leaves the window, second is still in it
    assert rl.admit("k")
    assert not rl.admit("k")

def test_denied_requests_are_not_recorded():
    clock = Ticker()
    rl = RateLimiter(limit=1, window=10, clock=clock)
    assert rl.admit("k")
    for _ in range(5):
        clock.t += 1
        assert not rl.admit("k")
    clock.t = 1010
    assert rl.admit("k")

def test_keys_are_independent():
    rl = RateLimiter(limit=1, window=60, clock=Ticker())
    assert rl.admit("a")
    assert rl.admit("b")
    assert not rl.admit("a")
    assert rl.remaining("c") == 1

def test_sweep_forgets_idle_keys():
    clock = Ticker()
    rl = RateLimiter(limit=5, window=60, clock=clock)
    rl.admit("old")
    clock.t += 30
    rl.admit("new")
    clock.t += 31
    assert rl.sweep() == 1
    assert len(rl) == 1
    clock.t += 60
    assert rl.sweep() == 1
    assert len(rl) == 0
    assert rl.admit("old")

def test_concurrent_admits_never_exceed_limit():
    rl = RateLimiter(limit=100, window=3600)
    results = []
    lock = threading.Lock()
    start = threading.Barrier(20)

    def worker():
        start.wait()
        got = [rl.admit("same-ip") for _ in range(20)]
        with lock:
            results.extend(got)

    threads = [threading.Thread(target=worker) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count(True) == 100
    assert results.count(False) == 300
