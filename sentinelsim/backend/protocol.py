"""Wire messages exchanged over the live crisis-session channel."""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sentinelsim.backend.models import CRISIS_DECISION_ACTION, InteractionEntry

DECISION_EVENT_TYPE = "crisis_response"
DECISION_UPDATE_TYPE = "crisis_update"


class MalformedMessage(ValueError):
    """Raised when an inbound frame cannot be understood."""


class DecisionEvent(BaseModel):
    # Wire keys are camelCase only.
    model_config = ConfigDict(frozen=True)

    type: Literal["crisis_response"]
    user_id: int = Field(alias="userId", strict=True)
    simulation_id: int = Field(alias="simulationId", strict=True)
    decision: str = Field(strict=True)
    phase: int = Field(ge=0, strict=True)

    def to_interaction(self) -> InteractionEntry:
        return InteractionEntry(
            user_id=self.user_id,
            simulation_id=self.simulation_id,
            action=CRISIS_DECISION_ACTION,
            details={"decision": self.decision, "phase": self.phase},
        )

    def to_update(self) -> "DecisionUpdate":
        return DecisionUpdate(data=self.decision)


class DecisionUpdate(BaseModel):
    # Only the decision value is relayed; peers do not learn who decided or in which phase.
    type: Literal["crisis_update"] = DECISION_UPDATE_TYPE
    data: str


def decode_frame(raw: str | bytes) -> dict[str, Any]:
    """Decode a text frame into a JSON object carrying a ``type`` field."""
    try:
        payload = json.loads(raw)
    except (ValueError, RecursionError, TypeError) as exc:
        raise MalformedMessage(f"invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MalformedMessage(f"expected a JSON object, got {type(payload).__name__}")
    if "type" not in payload:
        raise MalformedMessage("missing 'type' discriminator")
    return payload


def parse_decision_event(payload: dict[str, Any]) -> DecisionEvent | None:
    """Return the decision carried by ``payload``.

    Messages of any other kind yield ``None``. A ``crisis_response`` with
    missing or mistyped fields raises :class:`MalformedMessage`.
    """
    if payload.get("type") != DECISION_EVENT_TYPE:
        return None
    try:
        return DecisionEvent.model_validate(payload)
    except ValidationError as exc:
        raise MalformedMessage(f"invalid {DECISION_EVENT_TYPE}: {exc.error_count()} error(s)") from exc
