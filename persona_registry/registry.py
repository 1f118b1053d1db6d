"""
Persona Registry

Maps each account id to a single persona CID. Writes are authorized by the
ambient caller only, replace any prior value, and emit one indexable event.

Usage:
    from persona_registry.registry import PersonaRegistry
    from persona_registry.context import CallerContext

    registry = PersonaRegistry.initialize(context=CallerContext("alice"))
    registry.set_persona("bafybeigdyrzt4persona")
    registry.get_persona("alice")  # "bafybeigdyrzt4persona"
"""
from __future__ import annotations

from typing import Optional

from persona_registry.context import CallerContext
from persona_registry.events import CallLog, EventSink, PersonaSetEvent
from persona_registry.observability import get_tracer
from persona_registry.store import MemoryStore, PersonaStore

INVALID_CID_MESSAGE = "Invalid CID format. Must be a valid IPFS CID starting with 'bafy'."

# Unicode White_Space. str.strip() with no argument also drops U+001C..U+001F.
WHITE_SPACE = (
    "\t\n\x0b\x0c\r \x85\xa0\u1680"
    "\u2000\u2001\u2002\u2003\u2004\u2005\u2006\u2007\u2008\u2009\u200a"
    "\u2028\u2029\u202f\u205f\u3000"
)


class InvalidInput(ValueError):
    """Rejected write. Nothing was stored and nothing was emitted."""


def is_valid_cid(cid: str) -> bool:
    # Surface check only; the prefix named in INVALID_CID_MESSAGE is not enforced.
    return isinstance(cid, str) and bool(cid.strip(WHITE_SPACE))


class PersonaRegistry:
    def __init__(
        self,
        store: PersonaStore,
        sink: EventSink,
        context: Optional[CallerContext] = None,
        tracer=None,
    ):
        self.store = store
        self.sink = sink
        self.context = context
        self.tracer = tracer or get_tracer()

    @classmethod
    def initialize(
        cls,
        store: Optional[PersonaStore] = None,
        sink: Optional[EventSink] = None,
        context: Optional[CallerContext] = None,
        tracer=None,
    ) -> "PersonaRegistry":
        """Set up an empty registry state (in-memory unless a store is given)."""
        store = store if store is not None else MemoryStore()
        store.initialize()
        return cls(
            store=store,
            sink=sink if sink is not None else CallLog(),
            context=context,
            tracer=tracer,
        )

    def set_persona(self, cid: str) -> None:
        """Register or update the caller's persona CID."""
        if self.context is None:
            raise RuntimeError("set_persona called without a caller context")
        caller = self.context.current_caller()
        with self.tracer.start_as_current_span("persona.set") as span:
            span.set_attribute("persona.account_id", caller)
            if not is_valid_cid(cid):
                span.set_attribute("persona.outcome", "invalid_input")
                raise InvalidInput(INVALID_CID_MESSAGE)
            self.store.put(caller, cid)
            self.sink.emit(PersonaSetEvent(account_id=caller, cid=cid))
            span.set_attribute("persona.outcome", "accepted")

    def get_persona(self, account_id: str) -> Optional[str]:
        with self.tracer.start_as_current_span("persona.get") as span:
            span.set_attribute("persona.account_id", account_id)
            cid = self.store.get(account_id)
            span.set_attribute("persona.outcome", "found" if cid is not None else "absent")
            return cid
