import threading

from contextbus.profiler import EnvironmentProfiler, EnvironmentalProfile, NetProfile


def _fast_profiler():
    return EnvironmentProfiler(cpu_interval=0.01, cpu_timeout=5.0, interval=0.05)


def test_initial_latest_is_empty():
    profiler = _fast_profiler()
    assert profiler.latest() == EnvironmentalProfile()


def test_capture_stores_and_links():
    profiler = _fast_profiler()
    first = profiler.capture()
    second = profiler.capture()

    assert first.timestamp > 0
    assert profiler.latest() is second
    assert profiler.get(first.timestamp) is first
    assert profiler.get(second.timestamp) is second
    assert second.prev == first.timestamp
    assert first.next == second.timestamp
    assert profiler.get(-1) is None


def test_capture_contents():
    profile = _fast_profiler().capture()
    assert profile.hardware.cpu is not None
    assert 0.0 <= profile.hardware.cpu.percent <= 100.0
    assert profile.hardware.mem is not None
    assert 0.0 <= profile.hardware.mem.used_percent <= 100.0
    assert profile.hardware.mem.total > 0
    assert profile.runtime.threads >= 1
    assert profile.runtime.rss > 0


def test_cpu_timeout_leaves_cpu_empty():
    profiler = EnvironmentProfiler(cpu_interval=0.5, cpu_timeout=0.01)
    assert profiler.capture().hardware.cpu is None


def test_net_profile_counters_are_non_negative():
    net = _fast_profiler().net_profile()
    assert net is not None
    assert net.bytes_sent >= 0 and net.bytes_recv >= 0


def test_net_delta():
    before = NetProfile(10, 20, 3, 4, 0, 1, 2, 2)
    after = NetProfile(15, 30, 5, 9, 1, 1, 2, 3)
    assert after.delta(before) == NetProfile(5, 10, 2, 5, 1, 0, 0, 1)
    assert after.delta(None) == after
    assert after.delta(None) is not after


def test_run_captures_until_stopped():
    profiler = _fast_profiler()
    stop = threading.Event()
    stop.set()
    profiler.run(stop)
    assert profiler.latest().timestamp > 0


def test_run_in_background():
    profiler = _fast_profiler()
    stop = threading.Event()
    worker = threading.Thread(target=profiler.run, args=(stop,))
    worker.start()
    stop.wait(0.3)
    stop.set()
    worker.join(timeout=10)
    assert not worker.is_alive()
    latest = profiler.latest()
    assert profiler.get(latest.timestamp) is latest
    assert latest.prev > 0 or latest.timestamp > 0