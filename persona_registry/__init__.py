"""
PERSONA_REGISTRY - Per-account persona CID registry

Maps each account id to one content-addressed persona pointer, with:
- Ed25519 challenge-response authentication for writers
- Last-write-wins storage (in-memory or SQLite)
- EVENT_JSON log lines for external indexers
- Hash-chained witness log (audit trail)

Components:
- registry.py: PersonaRegistry, CID validation, InvalidInput
- store.py: MemoryStore / SQLiteStore
- events.py: PersonaSetEvent and event sinks
- context.py: CallerContext (who is calling)
- auth.py: Ed25519 challenge-response authentication
- witness.py: Hash-chained audit log
- api_server.py: FastAPI server
- cli.py: Operator CLI
"""

__version__ = "0.1.0"

# Lazy imports - only import what's needed when used
def __getattr__(name):
    if name in ("PersonaRegistry", "InvalidInput", "is_valid_cid"):
        from . import registry
        return getattr(registry, name)
    elif name == "CallerContext":
        from .context import CallerContext
        return CallerContext
    elif name in ("MemoryStore", "SQLiteStore", "PersonaStore"):
        from . import store
        return getattr(store, name)
    elif name in ("PersonaSetEvent", "EventSink", "CallLog", "parse_event_logs"):
        from . import events
        return getattr(events, name)
    elif name == "WitnessChain":
        from .witness import WitnessChain
        return WitnessChain
    elif name == "AgentAuth":
        from .auth import AgentAuth
        return AgentAuth
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    "__version__",
    # Core
    "PersonaRegistry",
    "InvalidInput",
    "is_valid_cid",
    "CallerContext",
    # Store
    "PersonaStore",
    "MemoryStore",
    "SQLiteStore",
    # Events
    "PersonaSetEvent",
    "EventSink",
    "CallLog",
    "parse_event_logs",
    "WitnessChain",
    # Auth
    "AgentAuth",
]
