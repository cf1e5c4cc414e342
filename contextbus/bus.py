"""The observation bus that processes submitted event data, and the background task runner."""

from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass
from typing import Any

from contextbus import perf
from contextbus.configure import Configuration, ServerConfigure
from contextbus.eventqueue import EventQueue
from contextbus.events import EventData
from contextbus.jsonenc import JsonBuffer
from contextbus.metrics import MetricVecStore, Pusher, metric_vec_store, prometheus_pusher
from contextbus.observation import emit_log, observe
from contextbus.perf import CBType
from contextbus.profiler import EnvironmentProfiler, environment_profiler
from contextbus.reaction import Reaction
from contextbus.schema import LoggingConfigure, LogOutType, ReactionType
from contextbus.timing import (
    BUS_OBSERVATION_QUEUE_INTERVAL,
    TIME_FORMAT_DEFAULT,
    format_timestamp,
)
from contextbus.tracing import SAMPLER_CONST, Tracer

_NANOS_PER_MILLISECOND = 1_000_000
_REPORT_LOGGING = LoggingConfigure(out=LogOutType.STDOUT)


@dataclass
class _Submission:
    ctx: Any
    config: Configuration | None
    data: EventData


def _recorder_name(data: EventData) -> str:
    recorder = data.event.recorder
    return recorder.name if recorder is not None else ""


def _to_millis(nanos: int) -> int:
    """Whole milliseconds in nanos, truncated toward zero."""
    millis = abs(nanos) // _NANOS_PER_MILLISECOND
    return millis if nanos >= 0 else -millis


class ObservationBus:
    """Queues event data from submitters and carries out their observations."""

    def __init__(
        self,
        profiler: EnvironmentProfiler | None = None,
        pusher: Pusher | None = None,
        store: MetricVecStore | None = None,
        interval: float = BUS_OBSERVATION_QUEUE_INTERVAL,
    ) -> None:
        self.tracer: Tracer | None = None
        self.interval = interval
        self._profiler = profiler if profiler is not None else environment_profiler
        self._pusher = pusher if pusher is not None else prometheus_pusher
        self._store = store if store is not None else metric_vec_store
        self._queue = EventQueue()
        self._wakeup = threading.Event()
        self._id_lock = threading.Lock()
        self._last_event_id = 0

    def new_event_id(self) -> int:
        """Return the next event id; ids start at 1."""
        with self._id_lock:
            self._last_event_id += 1
            return self._last_event_id

    def submit(self, ctx: Any, config: Configuration | None, data: EventData) -> None:
        """Queue event data and wake the processing loop."""
        self._queue.enqueue(_Submission(ctx, config, data))
        self._wakeup.set()

    def drain(self) -> tuple[int, int, int, int]:
        """Process every queued item; return counts of items, log entries, spans and metrics."""
        count = logs = spans = metrics = 0
        while True:
            try:
                item = self._queue.dequeue()
            except queue.Empty:
                return count, logs, spans, metrics

            started = time.time_ns() if perf.PERF_METRIC else 0
            item_logs = item_spans = item_metrics = 0
            config = item.config
            if config is not None:
                name = _recorder_name(item.data)
                item_logs, item_spans, item_metrics = observe(
                    config.observation_for(name), item.ctx, item.data
                )
                logs += item_logs
                spans += item_spans
                metrics += item_metrics

                reaction = config.reaction_for(name)
                if reaction is not None and reaction.type is ReactionType.PRINT_LOG:
                    self._report_latency(item.ctx, reaction, item.data)

            if perf.PERF_METRIC and perf.perf_metric is not None:
                cb_type = CBType.NONE
                if item_logs:
                    cb_type |= CBType.LOGGING
                if item_spans:
                    cb_type |= CBType.TRACING
                if item_metrics:
                    cb_type |= CBType.METRICS
                perf.perf_metric.add_cb_latency(
                    cb_type, item.data.event.when.time, started, time.time_ns()
                )

            count += 1

    def _profile_entry(self, profile: Any, profile_id: int, data: EventData) -> str:
        buffer = JsonBuffer()
        buffer.begin_object()
        buffer.append_key("caller")
        buffer.append_string("environmental profile")
        buffer.append_key("level")
        buffer.append_string("warn")
        buffer.append_key("time")
        buffer.append_string(format_timestamp(profile_id, TIME_FORMAT_DEFAULT))
        buffer.append_key("message")
        buffer.append_string(str(profile))
        buffer.append_key("ID")
        buffer.append_ids(data.metadata.req_id, data.metadata.eve_id)
        buffer.end_object()
        return str(buffer)

    def _report_latency(self, ctx: Any, reaction: Reaction, data: EventData) -> None:
        """Report the event chain when the latency since the watched event is too high."""
        root = reaction.pre_tree.nodes[0]
        prev_name = root.prev_event_name
        previous = data.previous(prev_name)
        if previous is None:
            return

        latency = _to_millis(data.event.when.time - previous.event.when.time)
        if latency <= root.prev_event_latency:
            return

        tags = {"RequestID": data.metadata.req_id, "EventID": data.metadata.eve_id}
        tracer = ctx.tracer if ctx is not None else None
        if tracer is not None:
            span = tracer.start_span(prev_name, start_time=previous.event.when.time, tags=tags)
            span.finish(data.event.when.time)

        print(
            f"report high latency {latency} ms, from {prev_name} "
            f"to {_recorder_name(data)}, tags {tags}"
        )
        emit_log(_REPORT_LOGGING, data)

        last_profile = -1
        for earlier in previous.chain():
            profile_id = earlier.metadata.esp
            if profile_id != last_profile:
                last_profile = profile_id
                profile = self._profiler.get(profile_id)
                if profile is not None:
                    print(self._profile_entry(profile, profile_id, data))
            emit_log(_REPORT_LOGGING, earlier)

    def run(self, server_config: ServerConfigure, stop_event: threading.Event) -> None:
        """Create the tracer, then process the queue on notification or every interval."""
        tracer = Tracer(
            server_config.service_name, SAMPLER_CONST, 1.0, server_config.jaeger_host
        )
        self.tracer = tracer
        try:
            while not stop_event.is_set():
                self._wakeup.wait(self.interval)
                self._wakeup.clear()
                if stop_event.is_set():
                    break
                _, _, _, metrics = self.drain()
                if metrics:
                    self._store.push(self._pusher)
        finally:
            tracer.close()


class Background:
    """Starts and stops the environment profiler and the observation bus."""

    def __init__(
        self,
        bus: ObservationBus | None = None,
        profiler: EnvironmentProfiler | None = None,
    ) -> None:
        self.bus = bus if bus is not None else observation_bus
        self.profiler = profiler if profiler is not None else environment_profiler
        self.config = ServerConfigure()
        self._stop_events: list[threading.Event] = []
        self._threads: list[threading.Thread] = []

    def start(self, server_config: ServerConfigure | None) -> None:
        """Start the tasks the configuration enables; without one, start nothing."""
        if server_config is None:
            self.config = ServerConfigure()
            return
        self.config = server_config

        if server_config.environment_profiler:
            self._launch(self.profiler.run)
        if server_config.observation_bus:
            self._launch(lambda stop: self.bus.run(server_config, stop))

    def _launch(self, target: Any) -> None:
        stop = threading.Event()
        thread = threading.Thread(target=target, args=(stop,), daemon=True)
        self._stop_events.append(stop)
        self._threads.append(thread)
        thread.start()

    def stop(self) -> None:
        """Signal every started task to stop and wait for it to finish."""
        for stop in self._stop_events:
            stop.set()
        self.bus._wakeup.set()
        for thread in self._threads:
            thread.join()
        self._stop_events.clear()
        self._threads.clear()


observation_bus = ObservationBus()
background = Background(observation_bus, environment_profiler)