"""Wire envelopes exchanged with the backend over the control channel.

Backend -> bridge:
    {"type": "command", "id"?: str, "content": str}

Bridge -> backend:
    {"type": "register", "profile": str, "instanceId": str, "windowId": str,
     "tabs": [{"id": int, "url": str, "title": str}, ...]}
    {"type": "response", "id"?: str, "content": str}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .host import TabInfo

COMMAND = "command"
REGISTER = "register"
RESPONSE = "response"


@dataclass(frozen=True, slots=True)
class CommandEnvelope:
    content: str
    id: Any | None = None

    @classmethod
    def from_message(cls, msg: Any) -> CommandEnvelope | None:
        """Return the command carried by a decoded message, or None if it is not one."""
        if not isinstance(msg, dict) or msg.get("type") != COMMAND:
            return None
        content = msg.get("content")
        if not isinstance(content, str):
            return None
        return cls(content=content, id=msg.get("id"))


@dataclass(frozen=True, slots=True)
class RegistrationSnapshot:
    profile: str
    instance_id: str
    window_id: str | None
    tabs: list[TabInfo] = field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": REGISTER,
            "profile": self.profile,
            "instanceId": self.instance_id,
            "windowId": self.window_id or "",
            "tabs": [t.to_wire() for t in self.tabs],
        }


def response_envelope(request_id: Any | None, content: str) -> dict[str, Any]:
    payload: dict[str, Any] = {"type": RESPONSE, "content": content}
    if request_id is not None:
        payload["id"] = request_id
    return payload


def profile_name(os_name: str) -> str:
    return f"browser-{os_name}"


__all__ = [
    "COMMAND",
    "CommandEnvelope",
    "REGISTER",
    "RESPONSE",
    "RegistrationSnapshot",
    "profile_name",
    "response_envelope",
]
