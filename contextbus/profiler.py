"""Periodic snapshots of host and process resources."""

from __future__ import annotations

import dataclasses
import gc
import queue
import threading
import time
from dataclasses import dataclass, field

import psutil

from contextbus.timing import (
    CPU_PROFILE_DURATION,
    CPU_PROFILE_DURATION_MAX,
    ENV_PROFILE_INTERVAL,
)


@dataclass
class CPUProfile:
    percent: float = 0.0


@dataclass
class MemProfile:
    total: int = 0
    available: int = 0
    used: int = 0
    used_percent: float = 0.0
    free: int = 0


@dataclass
class NetProfile:
    bytes_sent: int = 0
    bytes_recv: int = 0
    packets_sent: int = 0
    packets_recv: int = 0
    errin: int = 0
    errout: int = 0
    dropin: int = 0
    dropout: int = 0

    def delta(self, previous: NetProfile | None) -> NetProfile:
        """Counters accumulated since previous, field by field."""
        if previous is None:
            return dataclasses.replace(self)
        return NetProfile(
            **{
                item.name: getattr(self, item.name) - getattr(previous, item.name)
                for item in dataclasses.fields(self)
            }
        )


@dataclass
class HardwareProfile:
    cpu: CPUProfile | None = None
    mem: MemProfile | None = None
    net: NetProfile | None = None


@dataclass
class RuntimeProfile:
    """Memory and collector state of the running interpreter."""

    rss: int = 0
    vms: int = 0
    threads: int = 0
    gc_counts: tuple[int, ...] = (0, 0, 0)
    gc_collections: int = 0


@dataclass
class EnvironmentalProfile:
    """One snapshot, identified by its timestamp and linked to its neighbours."""

    timestamp: int = 0
    prev: int = 0
    next: int = 0
    hardware: HardwareProfile = field(default_factory=HardwareProfile)
    runtime: RuntimeProfile | None = None


def _runtime_profile() -> RuntimeProfile:
    profile = RuntimeProfile(
        threads=threading.active_count(),
        gc_counts=tuple(gc.get_count()),
        gc_collections=sum(stats.get("collections", 0) for stats in gc.get_stats()),
    )
    try:
        memory = psutil.Process().memory_info()
    except psutil.Error:
        return profile
    profile.rss = memory.rss
    profile.vms = memory.vms
    return profile


class EnvironmentProfiler:
    """Takes snapshots and keeps every one by timestamp."""

    def __init__(
        self,
        cpu_interval: float = CPU_PROFILE_DURATION,
        cpu_timeout: float = CPU_PROFILE_DURATION_MAX,
        interval: float = ENV_PROFILE_INTERVAL,
    ) -> None:
        self.cpu_interval = cpu_interval
        self.cpu_timeout = cpu_timeout
        self.interval = interval
        self._lock = threading.Lock()
        self._latest = EnvironmentalProfile()
        self._store: dict[int, EnvironmentalProfile] = {}
        self._net_prev = self.net_profile()

    def latest(self) -> EnvironmentalProfile:
        with self._lock:
            return self._latest

    def get(self, profile_id: int) -> EnvironmentalProfile | None:
        with self._lock:
            return self._store.get(profile_id)

    def net_profile(self) -> NetProfile | None:
        """Current system-wide network counters, or None when they cannot be read."""
        try:
            counters = psutil.net_io_counters(pernic=False)
        except (psutil.Error, OSError) as error:
            print("NetProfile", error)
            return None
        if counters is None:
            return None
        return NetProfile(
            bytes_sent=counters.bytes_sent,
            bytes_recv=counters.bytes_recv,
            packets_sent=counters.packets_sent,
            packets_recv=counters.packets_recv,
            errin=counters.errin,
            errout=counters.errout,
            dropin=counters.dropin,
            dropout=counters.dropout,
        )

    def _measure_cpu(self, results: queue.Queue) -> None:
        try:
            results.put(CPUProfile(percent=psutil.cpu_percent(interval=self.cpu_interval)))
        except (psutil.Error, OSError):
            results.put(None)

    def capture(self) -> EnvironmentalProfile:
        """Take a snapshot, store it and make it the latest."""
        profile = EnvironmentalProfile(timestamp=time.time_ns())

        cpu_results: queue.Queue = queue.Queue(maxsize=1)
        threading.Thread(target=self._measure_cpu, args=(cpu_results,), daemon=True).start()

        try:
            memory = psutil.virtual_memory()
        except (psutil.Error, OSError):
            memory = None
        if memory is not None:
            profile.hardware.mem = MemProfile(
                total=memory.total,
                available=memory.available,
                used=memory.used,
                used_percent=memory.percent,
                free=memory.free,
            )

        current = self.net_profile()
        if current is not None:
            profile.hardware.net = current.delta(self._net_prev)
            self._net_prev = current

        profile.runtime = _runtime_profile()

        try:
            profile.hardware.cpu = cpu_results.get(timeout=self.cpu_timeout)
        except queue.Empty:
            profile.hardware.cpu = None

        with self._lock:
            self._latest.next = profile.timestamp
            profile.prev = self._latest.timestamp
            self._latest = profile
            self._store[profile.timestamp] = profile

        return profile

    def run(self, stop_event: threading.Event) -> None:
        """Capture now and then every interval until stop_event is set."""
        self.capture()
        while not stop_event.wait(self.interval):
            self.capture()


environment_profiler = EnvironmentProfiler()