"""
Persona Registry CLI — local operator commands against the registry database.

Usage:
    python -m persona_registry.cli keygen       # New Ed25519 keypair + address
    python -m persona_registry.cli set CID      # Set persona for PERSONA_PRIVATE_KEY's account
    python -m persona_registry.cli get ACCOUNT  # Show persona CID for an account
    python -m persona_registry.cli events       # Show recent persona events
    python -m persona_registry.cli verify       # Verify the witness chain
"""
import os
import sys

from persona_registry.auth import derive_address, generate_agent_keypair, public_key_for
from persona_registry.config import get_db_path
from persona_registry.context import CallerContext
from persona_registry.events import CallLog, FanoutSink, PERSONA_SET_ACTION, WitnessSink
from persona_registry.registry import InvalidInput, PersonaRegistry
from persona_registry.store import SQLiteStore
from persona_registry.witness import WitnessChain


def cmd_keygen():
    private_key, public_key = generate_agent_keypair()
    print(f"private_key: {private_key.decode()}")
    print(f"public_key:  {public_key.decode()}")
    print(f"address:     {derive_address(public_key)}")


def cmd_set():
    cid = sys.argv[2] if len(sys.argv) > 2 else ""
    private_key = os.environ.get("PERSONA_PRIVATE_KEY", "")
    if not private_key:
        print("PERSONA_PRIVATE_KEY is not set")
        sys.exit(1)
    try:
        caller = CallerContext(derive_address(public_key_for(private_key.encode())))
    except (ValueError, TypeError):
        print("PERSONA_PRIVATE_KEY is not a valid Ed25519 key")
        sys.exit(1)

    db_path = get_db_path()
    call_log = CallLog()
    registry = PersonaRegistry.initialize(
        store=SQLiteStore(db_path),
        sink=FanoutSink(call_log, WitnessSink(WitnessChain(db_path))),
        context=caller,
    )
    try:
        registry.set_persona(cid)
    except InvalidInput as e:
        print(f"Rejected: {e}")
        sys.exit(1)
    for line in call_log.logs:
        print(line)


def cmd_get():
    if len(sys.argv) < 3:
        print("Usage: python -m persona_registry.cli get ACCOUNT")
        sys.exit(1)
    db_path = get_db_path()
    if not db_path.exists():
        print(f"Database not found at {db_path}")
        sys.exit(1)
    registry = PersonaRegistry(store=SQLiteStore(db_path), sink=CallLog())
    cid = registry.get_persona(sys.argv[2])
    print(cid if cid is not None else "(none)")


def cmd_events():
    db_path = get_db_path()
    if not db_path.exists():
        print(f"Database not found at {db_path}")
        sys.exit(1)
    entries = WitnessChain(db_path).list_entries(action=PERSONA_SET_ACTION, limit=20)
    print("=" * 50)
    print("PERSONA EVENTS (last 20)")
    print("=" * 50)
    if not entries:
        print("\n(no entries)")
        return
    for e in entries:
        print(f"\n  [{e['id']}] {e['account_id']} -> {e['details']['cid']}")
        print(f"       at {e['timestamp']}")
        print(f"       hash: {e['hash'][:16]}...")


def cmd_verify():
    db_path = get_db_path()
    if not db_path.exists():
        print(f"Database not found at {db_path}")
        sys.exit(1)
    chain = WitnessChain(db_path)
    entries = chain.all_entries()
    ok = chain.verify_chain(entries)
    print(f"Witness chain: {len(entries)} entries, {'VALID' if ok else 'TAMPERED'}")
    if not ok:
        sys.exit(1)


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(0)
    cmd = sys.argv[1]
    commands = {
        "keygen": cmd_keygen,
        "set": cmd_set,
        "get": cmd_get,
        "events": cmd_events,
        "verify": cmd_verify,
    }
    if cmd not in commands:
        print(f"Unknown command: {cmd}")
        print(f"Available: {', '.join(commands)}")
        sys.exit(1)
    commands[cmd]()


if __name__ == "__main__":
    main()
