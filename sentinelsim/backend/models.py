"""Domain models for interaction records, generated scenarios and deliveries."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

CRISIS_DECISION_ACTION = "crisis_decision"
# Interactions that earn a coaching session; only a report is the correct response.
COACHED_ACTIONS = ("click", "report")


@dataclass(frozen=True)
class InteractionEntry:
    user_id: int
    action: str
    simulation_id: int | None = None
    scenario_id: int | None = None
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class InteractionRecord:
    interaction_id: int
    user_id: int
    simulation_id: int | None
    scenario_id: int | None
    action: str
    details: dict[str, Any] | None
    timestamp: datetime


@dataclass(frozen=True)
class CrisisPhase:
    phase: str
    description: str
    decisions: list[str]


@dataclass(frozen=True)
class CrisisScenario:
    title: str
    description: str
    phases: list[CrisisPhase]


@dataclass(frozen=True)
class PhishingScenario:
    subject: str
    content: str
    indicators: list[str]
    difficulty: str


@dataclass(frozen=True)
class CoachingFeedback:
    feedback: str
    recommendations: list[str]
    security_tips: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class EmailTemplate:
    subject: str
    text: str
    html: str


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    message_id: str | None = None
    error: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class CoachingSessionEntry:
    user_id: int
    feedback: str
    recommendations: list[str]
    simulation_id: int | None = None


@dataclass(frozen=True)
class CoachingSession:
    session_id: int
    user_id: int
    simulation_id: int | None
    feedback: str
    recommendations: list[str]
    created_at: datetime
