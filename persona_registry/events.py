"""
Persona events and the sinks that carry them to indexers.

Every successful write produces one log line of the form

    EVENT_JSON:{"account_id":"...","cid":"..."}

Consumers scan a call's log lines for the prefix and parse the rest as JSON.
"""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import Iterable, List

from persona_registry.witness import WitnessChain

EVENT_PREFIX = "EVENT_JSON:"
PERSONA_SET_ACTION = "persona_set"
EVENT_FIELDS = frozenset({"account_id", "cid"})

logger = logging.getLogger("persona_registry.events")


@dataclass(frozen=True)
class PersonaSetEvent:
    account_id: str
    cid: str

    def to_dict(self) -> dict:
        return asdict(self)

    def to_log(self) -> str:
        return EVENT_PREFIX + json.dumps(self.to_dict(), separators=(",", ":"))


def parse_event_logs(lines: Iterable[str]) -> List[PersonaSetEvent]:
    """Pull persona events out of a call's log lines, skipping everything else."""
    events = []
    for line in lines:
        if not line.startswith(EVENT_PREFIX):
            continue
        # Other event standards share the prefix.
        try:
            payload = json.loads(line[len(EVENT_PREFIX):])
        except json.JSONDecodeError:
            continue
        if not isinstance(payload, dict) or set(payload) != EVENT_FIELDS:
            continue
        if not all(isinstance(payload[k], str) for k in EVENT_FIELDS):
            continue
        events.append(PersonaSetEvent(account_id=payload["account_id"], cid=payload["cid"]))
    return events


class EventSink:
    """Append-only destination for persona events."""

    def emit(self, event: PersonaSetEvent) -> None:
        raise NotImplementedError


class CallLog(EventSink):
    """Log lines emitted during a single call."""

    def __init__(self) -> None:
        self.logs: List[str] = []

    def emit(self, event: PersonaSetEvent) -> None:
        self.logs.append(event.to_log())

    def events(self) -> List[PersonaSetEvent]:
        return parse_event_logs(self.logs)


class LoggerSink(EventSink):
    def __init__(self, log: logging.Logger = logger):
        self.log = log

    def emit(self, event: PersonaSetEvent) -> None:
        self.log.info(event.to_log())


class WitnessSink(EventSink):
    """Persists events on the witness chain for indexers that poll."""

    def __init__(self, chain: WitnessChain):
        self.chain = chain

    def emit(self, event: PersonaSetEvent) -> None:
        self.chain.record(PERSONA_SET_ACTION, event.account_id, event.to_dict())


class FanoutSink(EventSink):
    def __init__(self, *sinks: EventSink):
        self.sinks = list(sinks)

    def emit(self, event: PersonaSetEvent) -> None:
        for sink in self.sinks:
            sink.emit(event)
