# contextbus

`contextbus` collects events that an application or its network libraries
submit while handling a request, and turns them into observations: JSON log
lines, tracing spans and Prometheus-style metrics. What is observed for each
event is driven by a configuration that can be swapped at run time, per
request.

## Concepts

- **Events** (`contextbus.events`) describe *when*, *where*, *who* recorded
  them and *what* happened. The *what* part holds an application message and
  per-library messages, each with nested string attributes. Values are looked
  up by a `Path`, either into the application message or into a named
  library; a path that does not resolve raises `ValueLookupError`.
  `EventData` links each event to the one before it; `EventData.chain()`
  walks that chain and `EventData.previous(name)` finds an earlier event by
  recorder name.
- **Message annotations** (`contextbus.annotations`): `parse_message` turns a
  message with `${...}` placeholders into a `%s` format string and the list
  of paths the placeholders refer to; `parse_path` parses a single path,
  where a leading `_` selects the application message.
- **Context** (`contextbus.context`) carries the request identity, the
  configuration id, the parent span and the chain of previous events through
  a request. `Context.payload()` builds the `Payload` to attach to an
  outgoing request.
- **Configuration** (`contextbus.configure`): a `ConfigureStore` holds a
  default configuration and configurations by id; the module-level `store`
  is the shared one. Each `Configuration` says how every named event is
  observed (`observation_for`, falling back to a single JSON log line to
  standard output) and which reaction, if any, it triggers (`reaction_for`).
- **Reactions** (`contextbus.reaction`) fire once a prerequisite tree is
  satisfied. Trees combine event counts with AND/OR logic and numeric
  conditions (`contextbus.schema`); snapshots record how often each event has
  occurred and can be carried between services and merged back with
  `merge_offset`.
- **Observation** (`contextbus.observation`) renders log lines
  (`render_log`, `emit_log`), finishes spans on a `Tracer`
  (`contextbus.tracing`) and records metrics in a `MetricVecStore`
  (`contextbus.metrics`). `observe` does all three for one event.
- **Background work** (`contextbus.bus`, `contextbus.profiler`): the
  `ObservationBus` queues submitted events and processes them off the
  request path; the `EnvironmentProfiler` periodically samples CPU, memory,
  network and interpreter figures so that slow requests can be reported
  together with the environment they ran in. `Background.start` and
  `Background.stop` run and stop both in daemon threads, according to a
  `ServerConfigure`.

## Submitting events

`contextbus.api.on_submission(ctx, where, who, app)` is the single entry
point for application code. It stamps the event, attaches the library
message from the request context, updates prerequisite snapshots, extends
or closes the event chain according to the observation type, applies any
reaction whose prerequisites are met (a fault-delay reaction sleeps for its
configured milliseconds), hands the event to the bus and returns the
`EventData` it built.

`contextbus.api.from_payload(payload)` rebuilds a context from a message
received from another service (returning `None` for a missing payload or
the bypass configuration id), and `contextbus.api.from_context(values)`
retrieves one stored in a mapping under the `"context_bus"` key.

## Prerequisite trees

The module `contextbus.fixtures` ships ready-made trees. For example, tree 1
reads "(EventA and EventB occurred once) or EventC occurred more than once
and fewer than four times":

```python
from contextbus.fixtures import indexed_tree1

tree = indexed_tree1()
snapshot = tree.initialize_snapshot()

results = []
for _ in range(4):
    tree.update_snapshot("EventC", snapshot)
    results.append(tree.check(snapshot))

assert results == [False, True, True, False]
```

Malformed trees or snapshots of the wrong length raise
`contextbus.reaction.PrerequisiteError`.

## Message placeholders

```python
from contextbus.annotations import parse_message

fmt, paths = parse_message("received message from ${rest.from}")
# fmt == "received message from %s"; paths holds one library path
```

## Performance metrics

Setting the environment variable `CB_PERF_METRIC` to `1` enables the
latency bookkeeping in `contextbus.perf`, which records how long events wait
in the bus queue and how long processing takes.

## What it does not do

- Spans are not exported anywhere: a `Tracer` keeps the sampled spans that
  were finished in its `reported` list and hands each to an optional
  reporter callback.
- The shared `prometheus_pusher` prints the payload it would push instead of
  sending it. A `Pusher` built with a gateway URL and no `send` callback
  issues an HTTP PUT to that gateway.
- Stacktraces are not captured; `needs_stacktrace` only reports whether a
  configuration asks for one.
- Log output configured as `LogOutType.FILE` is rendered but written
  nowhere.
- There is no command-line program; the package is a library.