"""Runtime configuration: reactions indexed by event, observations and a shared store."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from contextbus.reaction import IndexedPrerequisiteTree, PrerequisiteError, Reaction
from contextbus.schema import (
    Configure,
    LoggingConfigure,
    LogOutType,
    ObservationConfigure,
    ObservationType,
    PrerequisiteNodeType,
    PrerequisiteSnapshots,
    TimestampConfigure,
)
from contextbus.timing import TIME_FORMAT_DEFAULT

CBCID_BYPASS = -100
CBCID_TRACEBYPASS = 2
CBCID_LOGGINGBYPASS = 1
CBCID_DEFAULT = 0
CBCID_OBSERVATIONBYPASS = -1

DEFAULT_JSON_LOGGING = LoggingConfigure(
    timestamp=TimestampConfigure(format=TIME_FORMAT_DEFAULT),
    out=LogOutType.STDOUT,
)

DEFAULT_OBSERVATION = ObservationConfigure(
    type=ObservationType.SINGLE,
    logging=DEFAULT_JSON_LOGGING,
)


@dataclass
class ServerConfigure:
    service_name: str = ""
    jaeger_host: str = ""
    environment_profiler: bool = False
    observation_bus: bool = False


@dataclass
class Configuration:
    """Converted configuration with reactions indexed by the events they depend on."""

    reactions: dict[str, Reaction] | None = None
    observations: dict[str, ObservationConfigure] | None = None
    reaction_index: dict[str, list[Reaction]] = field(default_factory=dict)

    def initialize_snapshots(self) -> PrerequisiteSnapshots:
        return PrerequisiteSnapshots(
            {
                name: reaction.pre_tree.initialize_snapshot()
                for name, reaction in (self.reactions or {}).items()
            }
        )

    def _update(self, name: str, snapshots: PrerequisiteSnapshots | None) -> None:
        for reaction in self.reaction_index.get(name, []):
            snapshot = snapshots.get(reaction.name) if snapshots is not None else None
            try:
                reaction.pre_tree.update_snapshot(name, snapshot)
            except PrerequisiteError:
                # A missing or mismatched snapshot leaves that reaction untouched.
                continue

    def update_snapshots(
        self, name: str, snapshots: PrerequisiteSnapshots | None
    ) -> PrerequisiteSnapshots | None:
        """Count an occurrence of the named event in every reaction that depends on it."""
        self._update(name, snapshots)
        return snapshots

    def update_both_snapshots(
        self,
        name: str,
        snapshots: PrerequisiteSnapshots | None,
        offset: PrerequisiteSnapshots | None,
    ) -> tuple[PrerequisiteSnapshots | None, PrerequisiteSnapshots | None]:
        self._update(name, snapshots)
        self._update(name, offset)
        return snapshots, offset

    def observation_for(self, name: str) -> ObservationConfigure:
        """Return the observation configured for name, or the default single-log one."""
        if self.observations is None:
            return DEFAULT_OBSERVATION
        return self.observations.get(name) or DEFAULT_OBSERVATION

    def reaction_for(self, name: str) -> Reaction | None:
        if self.reactions is None:
            return None
        return self.reactions.get(name)


def convert_configure(configure: Configure) -> Configuration:
    """Build reactions with indexed trees and an index from event name to reactions."""
    reactions: dict[str, Reaction] | None = None
    by_event: dict[str, dict[str, Reaction]] = {}

    if configure.reactions is not None:
        reactions = {}
        for name, source in configure.reactions.items():
            reaction = Reaction(
                name=name,
                type=source.type,
                params=source.params,
                pre_tree=IndexedPrerequisiteTree(source.pre_tree),
            )
            reactions[name] = reaction
            for node in source.pre_tree.nodes:
                if node.type is PrerequisiteNodeType.MESSAGE:
                    by_event.setdefault(node.message.name, {})[name] = reaction

    return Configuration(
        reactions=reactions,
        observations=configure.observations,
        reaction_index={event: list(found.values()) for event, found in by_event.items()},
    )


class ConfigureStore:
    """Configurations by id, falling back to a replaceable default."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._default: Configuration | None = None
        self._configures: dict[int, Configuration] = {}

    def set_default(self, configure: Configure) -> None:
        self._default = convert_configure(configure)

    def default(self) -> Configuration | None:
        return self._default

    def set(self, configure_id: int, configure: Configure) -> None:
        converted = convert_configure(configure)
        with self._lock:
            self._configures[configure_id] = converted

    def get(self, configure_id: int) -> Configuration | None:
        with self._lock:
            found = self._configures.get(configure_id)
        return found if found is not None else self.default()


store = ConfigureStore()