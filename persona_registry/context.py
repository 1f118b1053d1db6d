"""
Caller identity for a single registry call.

The registry never takes an account argument for writes; it asks the
context who is calling. Hosts build one context per call.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from persona_registry.auth import AgentAuth


@dataclass(frozen=True)
class CallerContext:
    account_id: str

    def current_caller(self) -> str:
        return self.account_id

    @classmethod
    def from_token(cls, auth: "AgentAuth", token: str) -> Optional["CallerContext"]:
        """Resolve the caller behind a bearer JWT, or None if it does not verify."""
        payload = auth.verify_jwt(token)
        if not payload:
            return None
        agent = auth.get_agent(payload["sub"])
        if not agent:
            return None
        return cls(account_id=agent.address)
