#!/usr/bin/env python3
"""
Persona Registry Authentication Module

Ed25519 challenge-response authentication. The resulting token is the only
way a caller's account id reaches the registry: there is no "on behalf of"
path.

Usage:
    from persona_registry.auth import AgentAuth, generate_agent_keypair, sign_challenge

    # Agent generates keypair (private key stays on agent)
    private_key, public_key = generate_agent_keypair()

    # Agent registers with public key
    auth = AgentAuth()
    address = auth.register("my-agent", public_key)

    # Auth flow: challenge -> sign -> verify -> JWT
    challenge = auth.create_challenge(address)
    signature = sign_challenge(private_key, challenge)
    jwt_token = auth.verify_challenge(address, signature).token
"""

import base64
import hashlib
import hmac
import json
import secrets
import sqlite3
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Tuple

from nacl.encoding import HexEncoder
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from persona_registry import config
from persona_registry.witness import WitnessChain


class InvalidPublicKey(ValueError):
    """Registration key is not a hex-encoded Ed25519 public key."""


# =============================================================================
# KEY GENERATION (For Agents)
# =============================================================================

def generate_agent_keypair() -> Tuple[bytes, bytes]:
    """
    Generate Ed25519 keypair for agent authentication.

    Returns:
        (private_key_hex, public_key_hex) - Both as hex-encoded bytes

    The private key MUST stay on the agent's device.
    """
    signing_key = SigningKey.generate()
    private_key_hex = signing_key.encode(encoder=HexEncoder)
    public_key_hex = signing_key.verify_key.encode(encoder=HexEncoder)

    return private_key_hex, public_key_hex


def derive_address(public_key_hex) -> str:
    """Account id for a public key: first 16 hex chars of its SHA-256."""
    if isinstance(public_key_hex, bytes):
        public_key_hex = public_key_hex.decode()
    return hashlib.sha256(public_key_hex.encode()).hexdigest()[:16]


def public_key_for(private_key_hex: bytes) -> bytes:
    signing_key = SigningKey(private_key_hex, encoder=HexEncoder)
    return signing_key.verify_key.encode(encoder=HexEncoder)


def sign_challenge(private_key_hex: bytes, challenge: bytes) -> bytes:
    """
    Sign a challenge with the agent's private key.

    Returns:
        Signature (hex-encoded)
    """
    signing_key = SigningKey(private_key_hex, encoder=HexEncoder)
    signed = signing_key.sign(challenge)
    return signed.signature.hex().encode()


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b'=').decode()


def _unpad(s: str) -> str:
    return s + '=' * (-len(s) % 4)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class Agent:
    """Registered agent."""
    address: str
    name: str
    public_key_hex: str
    created_at: str
    last_seen: Optional[str] = None


@dataclass
class AuthResult:
    """Result of authentication attempt."""
    success: bool
    token: Optional[str] = None
    agent: Optional[Agent] = None
    error: Optional[str] = None
    expires_at: Optional[str] = None


# =============================================================================
# AGENT AUTHENTICATION
# =============================================================================

class AgentAuth:
    """
    Agent authentication using Ed25519 challenge-response.

    Security properties:
    1. No API keys stored - only public keys
    2. Challenge-response prevents replay attacks
    3. Short-lived JWTs reduce exposure window
    4. Registration and auth outcomes recorded on the witness chain
    """

    def __init__(
        self,
        db_path: Optional[Path] = None,
        witness: Optional[WitnessChain] = None,
        jwt_secret_file: Optional[Path] = None,
    ):
        self.db_path = Path(db_path or config.get_db_path())
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.witness = witness or WitnessChain(self.db_path)
        self.jwt_secret_file = Path(jwt_secret_file or config.JWT_SECRET_FILE)
        self._init_db()
        self._jwt_secret = self._load_or_create_jwt_secret()

    def _init_db(self):
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        # Agents table - NO API KEYS, only public keys
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS agents (
                address TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                public_key_hex TEXT NOT NULL UNIQUE,
                created_at TEXT NOT NULL,
                last_seen TEXT
            )
        """)

        # Challenges table - temporary, removed once used or expired
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS challenges (
                address TEXT PRIMARY KEY,
                challenge_hex TEXT NOT NULL,
                created_at TEXT NOT NULL,
                expires_at TEXT NOT NULL
            )
        """)

        conn.commit()
        conn.close()

    def _load_or_create_jwt_secret(self) -> bytes:
        self.jwt_secret_file.parent.mkdir(parents=True, exist_ok=True)

        if self.jwt_secret_file.exists():
            return self.jwt_secret_file.read_bytes()

        secret = secrets.token_bytes(32)
        self.jwt_secret_file.write_bytes(secret)
        self.jwt_secret_file.chmod(0o600)  # Owner read/write only
        return secret

    def register(self, name: str, public_key_hex) -> str:
        """
        Register a new agent with their public key.

        Returns:
            Agent address (derived from public key hash)

        Raises:
            InvalidPublicKey: If the key is malformed
            ValueError: If public key already registered
        """
        if isinstance(public_key_hex, bytes):
            public_key_hex = public_key_hex.decode()

        try:
            VerifyKey(public_key_hex.encode(), encoder=HexEncoder)
        except (ValueError, TypeError):
            raise InvalidPublicKey("Invalid Ed25519 public key")

        address = derive_address(public_key_hex)

        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute("""
                INSERT INTO agents (address, name, public_key_hex, created_at)
                VALUES (?, ?, ?, ?)
            """, (
                address,
                name,
                public_key_hex,
                datetime.now(timezone.utc).isoformat(),
            ))
            conn.commit()
        except sqlite3.IntegrityError:
            raise ValueError(f"Agent already registered: {address}")
        finally:
            conn.close()

        self.witness.record("agent_registered", address, {"name": name})
        return address

    def create_challenge(self, address: str) -> bytes:
        """
        Create authentication challenge for an agent.

        Returns:
            Random challenge bytes (32 bytes)

        Raises:
            ValueError: If the agent is unknown
        """
        conn = sqlite3.connect(self.db_path)
        try:
            row = conn.execute("SELECT address FROM agents WHERE address = ?", (address,)).fetchone()
            if not row:
                raise ValueError(f"Unknown agent: {address}")

            challenge = secrets.token_bytes(32)
            now = datetime.now(timezone.utc)
            expires = now + timedelta(seconds=config.CHALLENGE_TTL_SECONDS)

            # Store challenge (replace any existing)
            conn.execute("""
                INSERT OR REPLACE INTO challenges (address, challenge_hex, created_at, expires_at)
                VALUES (?, ?, ?, ?)
            """, (address, challenge.hex(), now.isoformat(), expires.isoformat()))
            conn.commit()
        finally:
            conn.close()

        return challenge

    def verify_challenge(self, address: str, signature_hex) -> AuthResult:
        """Verify agent's signature over its pending challenge and issue a JWT."""
        if isinstance(signature_hex, bytes):
            signature_hex = signature_hex.decode()

        conn = sqlite3.connect(self.db_path)
        try:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT a.public_key_hex, c.challenge_hex, c.expires_at, a.name, a.created_at
                FROM agents a
                JOIN challenges c ON a.address = c.address
                WHERE a.address = ?
            """, (address,))

            row = cursor.fetchone()
            if not row:
                return AuthResult(success=False, error="No pending challenge")

            public_key_hex, challenge_hex, expires_at, name, created_at = row

            if datetime.fromisoformat(expires_at) < datetime.now(timezone.utc):
                cursor.execute("DELETE FROM challenges WHERE address = ?", (address,))
                conn.commit()
                return AuthResult(success=False, error="Challenge expired")

            try:
                verify_key = VerifyKey(public_key_hex.encode(), encoder=HexEncoder)
                verify_key.verify(bytes.fromhex(challenge_hex), bytes.fromhex(signature_hex))
            except (BadSignatureError, ValueError):
                self.witness.record("auth_failed", address, {"reason": "bad_signature"})
                return AuthResult(success=False, error="Invalid signature")

            # Challenges are single use
            now = datetime.now(timezone.utc)
            cursor.execute("DELETE FROM challenges WHERE address = ?", (address,))
            cursor.execute("UPDATE agents SET last_seen = ? WHERE address = ?", (now.isoformat(), address))
            conn.commit()
        finally:
            conn.close()

        expires = now + timedelta(hours=config.JWT_TTL_HOURS)
        token = self._create_jwt(address, name, expires)
        agent = Agent(
            address=address,
            name=name,
            public_key_hex=public_key_hex,
            created_at=created_at,
            last_seen=now.isoformat(),
        )

        self.witness.record("auth_success", address, {"expires": expires.isoformat()})

        return AuthResult(success=True, token=token, agent=agent, expires_at=expires.isoformat())

    def _create_jwt(self, address: str, name: str, expires_at: datetime) -> str:
        """Create simple HMAC-signed JWT."""
        header = {"alg": "HS256", "typ": "JWT"}
        payload = {
            "sub": address,
            "name": name,
            "exp": int(expires_at.timestamp()),
            "iat": int(time.time()),
        }

        header_b64 = _b64url(json.dumps(header).encode())
        payload_b64 = _b64url(json.dumps(payload).encode())
        message = f"{header_b64}.{payload_b64}"

        signature = hmac.new(self._jwt_secret, message.encode(), hashlib.sha256).digest()
        return f"{message}.{_b64url(signature)}"

    def verify_jwt(self, token: str) -> Optional[dict]:
        """Verify JWT and return payload if valid."""
        parts = token.split('.')
        if len(parts) != 3:
            return None

        header_b64, payload_b64, signature_b64 = parts
        message = f"{header_b64}.{payload_b64}"
        expected_sig = hmac.new(self._jwt_secret, message.encode(), hashlib.sha256).digest()

        try:
            actual_sig = base64.urlsafe_b64decode(_unpad(signature_b64))
            if not hmac.compare_digest(expected_sig, actual_sig):
                return None
            payload = json.loads(base64.urlsafe_b64decode(_unpad(payload_b64)))
        except (ValueError, TypeError):
            return None

        if payload.get('exp', 0) < time.time():
            return None
        return payload

    def get_agent(self, address: str) -> Optional[Agent]:
        conn = sqlite3.connect(self.db_path)
        try:
            row = conn.execute("""
                SELECT address, name, public_key_hex, created_at, last_seen
                FROM agents WHERE address = ?
            """, (address,)).fetchone()
        finally:
            conn.close()

        if not row:
            return None
        return Agent(*row)
