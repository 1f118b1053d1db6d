"""
Persona Registry Test Configuration — shared fixtures.
"""
import importlib
import sys

import pytest
from fastapi.testclient import TestClient

from persona_registry.auth import generate_agent_keypair, sign_challenge

CID_ALICE = "bafkreigs35l72j7oni6pwwnny2ae2nb4lto5jdzfy2yyb5hxggdeub2f2i"


@pytest.fixture
def fresh_app(tmp_path, monkeypatch):
    """Fresh API server with isolated database and JWT secret."""
    db_path = tmp_path / "personas_test.db"
    monkeypatch.setenv("PERSONA_DB_PATH", str(db_path))
    monkeypatch.setenv("PERSONA_JWT_SECRET", str(tmp_path / ".jwt_secret"))
    monkeypatch.delenv("ENFORCE_HTTPS", raising=False)
    monkeypatch.delenv("PERSONA_OTEL_ENABLED", raising=False)

    # Force reimport to pick up new settings
    for mod_name in list(sys.modules):
        if mod_name.startswith("persona_registry.") and not mod_name.startswith("persona_registry.tests"):
            del sys.modules[mod_name]

    api_server = importlib.import_module("persona_registry.api_server")

    client = TestClient(api_server.app)
    return client, api_server, db_path


def register_and_auth(client, name="agent"):
    """Helper: register an agent over HTTP and return its address + auth headers."""
    private_key, public_key = generate_agent_keypair()
    resp = client.post("/auth/register", json={"name": name, "public_key_hex": public_key.decode()})
    assert resp.status_code == 200, resp.text
    address = resp.json()["address"]

    resp = client.post("/auth/challenge", json={"address": address})
    assert resp.status_code == 200, resp.text
    challenge = bytes.fromhex(resp.json()["challenge_hex"])

    signature = sign_challenge(private_key, challenge)
    resp = client.post("/auth/verify", json={"address": address, "signature_hex": signature.decode()})
    assert resp.status_code == 200, resp.text
    token = resp.json()["token"]

    return {
        "address": address,
        "token": token,
        "private_key": private_key,
        "public_key": public_key,
        "headers": {"Authorization": f"Bearer {token}"},
    }


# Export helpers
pytest.register_and_auth = register_and_auth
