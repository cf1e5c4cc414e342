import threading
import time

import pytest

from contextbus.bus import Background, ObservationBus
from contextbus.configure import ServerConfigure, convert_configure
from contextbus.context import Context
from contextbus.events import (
    EventData,
    EventMessage,
    EventMetadata,
    EventRecorder,
    EventRepresentation,
    EventWhat,
    EventWhen,
    Path,
    PathType,
)
from contextbus.fixtures import rest_event_message
from contextbus.metrics import MetricOpts, PrometheusConfiguration, Pusher, metric_vec_store
from contextbus.schema import (
    AttributeConfigure,
    Configure,
    LoggingConfigure,
    LogOutType,
    MetricsConfigure,
    MetricType,
    ObservationConfigure,
)


def make_data(name, what=None, time_ns=1_000):
    if what is None:
        message = EventMessage()
        message.set_message("hello")
        what = EventWhat(application=message)
    return EventData(
        event=EventRepresentation(
            when=EventWhen(time=time_ns), recorder=EventRecorder(name=name), what=what
        ),
        metadata=EventMetadata(req_id=0, eve_id=1),
    )


def logging_config():
    return convert_configure(
        Configure(
            observations={
                "EventA": ObservationConfigure(logging=LoggingConfigure(out=LogOutType.UNSET))
            }
        )
    )


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_event_ids_start_at_one_and_increase():
    bus = ObservationBus()
    assert [bus.new_event_id() for _ in range(3)] == [1, 2, 3]


def test_event_ids_unique_across_threads():
    bus = ObservationBus()
    results = [[] for _ in range(8)]

    def worker(slot):
        slot.extend(bus.new_event_id() for _ in range(200))

    threads = [threading.Thread(target=worker, args=(slot,)) for slot in results]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    found = sorted(event_id for slot in results for event_id in slot)
    assert found == list(range(1, 1601))
    assert bus.new_event_id() == 1601


def test_drain_empty_queue():
    assert ObservationBus().drain() == (0, 0, 0, 0)


def test_drain_counts_logs():
    bus = ObservationBus()
    bus.submit(Context(), logging_config(), make_data("EventA"))
    assert bus.drain() == (1, 1, 0, 0)
    assert bus.drain() == (0, 0, 0, 0)


def test_drain_without_config_counts_item_only():
    bus = ObservationBus()
    bus.submit(Context(), None, make_data("EventA"))
    assert bus.drain() == (1, 0, 0, 0)


def test_concurrent_submissions_all_observed():
    bus = ObservationBus()
    config = logging_config()
    n = 10

    def worker():
        for _ in range(n):
            bus.submit(Context(), config, make_data("EventA"))

    threads = [threading.Thread(target=worker) for _ in range(n)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert bus.drain() == (n * n, n * n, 0, 0)


def test_run_requires_service_name():
    bus = ObservationBus(interval=0.01)
    with pytest.raises(ValueError):
        bus.run(ServerConfigure(service_name=""), threading.Event())


def test_run_pushes_used_metrics():
    metric_vec_store.configure(
        PrometheusConfiguration(
            counters=[
                MetricOpts(
                    id=71, namespace="bus_test", name="requests", label_names=["handler", "method"]
                )
            ]
        )
    )
    metric = MetricsConfigure(
        type=MetricType.COUNTER,
        name="requests",
        opts_id=71,
        attrs=[
            AttributeConfigure("method", Path(PathType.LIBRARY, ["rest", "method"])),
            AttributeConfigure("handler", Path(PathType.LIBRARY, ["rest", "handler"])),
        ],
    )
    config = convert_configure(
        Configure(observations={"EventM": ObservationConfigure(metrics=[metric])})
    )
    sent = []
    pusher = Pusher(
        "http://gateway.example.com", "job", send=lambda url, body: sent.append((url, body))
    )
    bus = ObservationBus(pusher=pusher, interval=0.05)
    stop = threading.Event()
    thread = threading.Thread(
        target=bus.run, args=(ServerConfigure(service_name="test"), stop), daemon=True
    )
    thread.start()

    what = EventWhat(application=EventMessage())
    what.with_library("rest", rest_event_message())
    bus.submit(Context(), config, make_data("EventM", what=what))

    assert wait_until(lambda: sent)
    stop.set()
    thread.join(timeout=5)
    assert not thread.is_alive()
    url, body = sent[0]
    assert url == "http://gateway.example.com/metrics/job/job"
    assert 'bus_test_requests{handler="/handler1",method="POST"} 1' in body.decode("utf-8")


def test_background_without_config_starts_nothing():
    bus = ObservationBus()
    background = Background(bus=bus)
    background.start(None)
    background.stop()
    assert background.config == ServerConfigure()
    assert bus.tracer is None


def test_background_starts_and_stops_bus():
    bus = ObservationBus(interval=0.05)
    background = Background(bus=bus)
    background.start(ServerConfigure(service_name="svc", observation_bus=True))
    assert wait_until(lambda: bus.tracer is not None)
    background.stop()

    assert bus.tracer.service_name == "svc"
    span = bus.tracer.start_span("after-stop")
    span.finish()
    assert bus.tracer.reported == []