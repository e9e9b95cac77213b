"""LLM-backed generation of crisis scenarios, phishing lures and coaching feedback."""

from __future__ import annotations

import json
import logging
from typing import Any

from openai import OpenAI, OpenAIError

from sentinelsim.backend.models import CoachingFeedback, CrisisPhase, CrisisScenario, PhishingScenario

logger = logging.getLogger(__name__)

COMPLEXITY_LEVELS = ("basic", "intermediate", "advanced")
DEFAULT_MODEL = "gpt-4o"

CRISIS_SYSTEM_PROMPT = (
    "You are a cybersecurity crisis management expert creating realistic GRC training "
    "scenarios for enterprise organizations."
)
PHISHING_SYSTEM_PROMPT = (
    "You are a cybersecurity expert specializing in creating realistic phishing scenarios for "
    "security awareness training. Generate educational content that helps users learn to identify threats."
)
COACHING_SYSTEM_PROMPT = (
    "You are a friendly, encouraging cybersecurity education coach. Your goal is to help users "
    "learn and improve their security awareness in a positive, supportive way."
)

CRISIS_PROMPT = """Generate a realistic cybersecurity crisis simulation scenario for GRC training.

Scenario type: {scenario_type}
Complexity level: {complexity}

Create a multi-phase crisis scenario that includes:
1. Initial incident description
2. Multiple decision phases with realistic choices
3. Escalating complexity based on the level
4. Realistic stakeholder interactions

Respond in JSON format:
{{
  "title": "Crisis scenario title",
  "description": "Initial scenario description",
  "phases": [
    {{
      "phase": "Phase name",
      "description": "What happens in this phase",
      "decisions": ["Decision option 1", "Decision option 2", "Decision option 3"]
    }}
  ]
}}"""

PHISHING_PROMPT = """Generate a realistic phishing email scenario with the following requirements:
- Difficulty level: {difficulty}
- Target audience: {target_audience}
- Company: {company_name}
- Industry: {industry}

Create a phishing email that includes a compelling subject line, email content that uses
social engineering tactics, and the red flag indicators users should identify.

Respond in JSON format:
{{
  "subject": "Email subject line",
  "content": "Full email content with HTML formatting",
  "indicators": ["List of red flags and security indicators"]
}}"""

COACHING_PROMPT = """Provide personalized coaching feedback for a user who chose to {user_action} in response to a cybersecurity training scenario.

Scenario context: {scenario_details}
User's response was {verdict}.

Offer specific, actionable recommendations and practical security tips in a positive, educational tone.

Respond in JSON format:
{{
  "feedback": "Encouraging, educational feedback message",
  "recommendations": ["Specific improvement recommendations"],
  "securityTips": ["Practical security tips"]
}}"""

_DEFAULT_PHASE = CrisisPhase(
    phase="Initial Response",
    description="Immediate actions required",
    decisions=["Contact IT team", "Notify management", "Document incident"],
)

_FALLBACK_PHISHING: dict[str, PhishingScenario] = {
    "basic": PhishingScenario(
        subject="Action Required: Verify Your Account",
        content=(
            "<p>Dear User,</p><p>We have detected unusual activity on your account. "
            "Please verify your identity using the link below within 24 hours or your "
            "account will be suspended.</p><p>Security Team</p>"
        ),
        indicators=[
            "Generic greeting instead of personalized name",
            "Creates urgency with account suspension threat",
            "Suspicious URL domain",
            "Requests immediate action",
        ],
        difficulty="basic",
    ),
    "intermediate": PhishingScenario(
        subject="Shared document: Q3 budget review",
        content=(
            "<p>Hi,</p><p>Finance shared the Q3 budget review with you. Sign in with your "
            "corporate account to view the document before tomorrow's meeting.</p>"
        ),
        indicators=[
            "Unexpected file share from an unfamiliar sender",
            "Login page reached through an email link",
            "Deadline pressure tied to a real-sounding meeting",
        ],
        difficulty="intermediate",
    ),
    "advanced": PhishingScenario(
        subject="RE: Vendor banking details update",
        content=(
            "<p>Following up on our call, please update the remittance account for our "
            "next invoice to the details attached. The change is effective this week.</p>"
        ),
        indicators=[
            "Request to change payment details by email",
            "Reply chain that was never started by you",
            "Look-alike sender domain",
            "Bypasses the normal verification process",
        ],
        difficulty="advanced",
    ),
}


class ScenarioGenerationError(RuntimeError):
    """Raised when a crisis scenario cannot be produced."""


class ScenarioGenerator:
    def __init__(self, client: Any | None = None, api_key: str | None = None, model: str = DEFAULT_MODEL) -> None:
        self._client = client
        self._api_key = api_key
        self.model = model

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = OpenAI(api_key=self._api_key)
        return self._client

    def _complete_json(self, system_prompt: str, prompt: str, temperature: float) -> dict[str, Any]:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
            temperature=temperature,
        )
        content = response.choices[0].message.content or "{}"
        result = json.loads(content)
        if not isinstance(result, dict):
            raise ValueError("model response is not a JSON object")
        return result

    def generate_crisis_scenario(self, scenario_type: str, complexity: str) -> CrisisScenario:
        if complexity not in COMPLEXITY_LEVELS:
            raise ValueError(f"unknown complexity {complexity!r}")
        prompt = CRISIS_PROMPT.format(scenario_type=scenario_type, complexity=complexity)
        try:
            result = self._complete_json(CRISIS_SYSTEM_PROMPT, prompt, temperature=0.7)
            phases = [_parse_phase(raw) for raw in result.get("phases") or []]
        except (OpenAIError, ValueError, TypeError, AttributeError) as exc:
            logger.error("crisis scenario generation failed: %s", exc)
            raise ScenarioGenerationError("Failed to generate crisis scenario") from exc

        return CrisisScenario(
            title=result.get("title") or "Cybersecurity Crisis",
            description=result.get("description") or "A critical security incident has occurred.",
            phases=phases or [_DEFAULT_PHASE],
        )

    def generate_phishing_scenario(
        self,
        difficulty: str,
        target_audience: str | list[str],
        company_name: str | None = None,
        industry: str | None = None,
    ) -> PhishingScenario:
        if difficulty not in COMPLEXITY_LEVELS:
            raise ValueError(f"unknown difficulty {difficulty!r}")
        audience = ", ".join(target_audience) if isinstance(target_audience, list) else target_audience
        prompt = PHISHING_PROMPT.format(
            difficulty=difficulty,
            target_audience=audience,
            company_name=company_name or "Generic Corporation",
            industry=industry or "Technology",
        )
        try:
            result = self._complete_json(PHISHING_SYSTEM_PROMPT, prompt, temperature=0.7)
            return PhishingScenario(
                subject=_text(result.get("subject"), "Security Alert"),
                content=_text(result.get("content"), "Please verify your account immediately."),
                indicators=_text_list(result.get("indicators"), ["Generic warning signs"]),
                difficulty=difficulty,
            )
        except (OpenAIError, ValueError, TypeError) as exc:
            logger.warning("phishing scenario generation failed, using fallback: %s", exc)
            return _FALLBACK_PHISHING[difficulty]

    def generate_coaching_feedback(
        self,
        user_action: str,
        scenario_details: Any,
        was_correct: bool,
    ) -> CoachingFeedback:
        prompt = COACHING_PROMPT.format(
            user_action=user_action,
            scenario_details=json.dumps(scenario_details, default=str),
            verdict="correct" if was_correct else "incorrect",
        )
        try:
            result = self._complete_json(COACHING_SYSTEM_PROMPT, prompt, temperature=0.6)
            return CoachingFeedback(
                feedback=_text(
                    result.get("feedback"),
                    "Thank you for participating in the security training! "
                    "Every step helps you become more security-aware.",
                ),
                recommendations=_text_list(
                    result.get("recommendations"),
                    ["Continue practicing security awareness", "Ask questions when you're unsure"],
                ),
                security_tips=_text_list(
                    result.get("securityTips"), ["Always verify sender identity", "When in doubt, ask IT"]
                ),
            )
        except (OpenAIError, ValueError, TypeError) as exc:
            logger.warning("coaching feedback generation failed, using fallback: %s", exc)
            return _fallback_feedback(was_correct)


def _text(value: Any, default: str) -> str:
    if not value:
        return default
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {type(value).__name__}")
    return value


def _text_list(value: Any, default: list[str]) -> list[str]:
    """Model output for list fields must be a JSON array of strings."""
    if not value:
        return list(default)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise TypeError("expected a list of strings")
    return list(value)


def _parse_phase(raw: dict[str, Any]) -> CrisisPhase:
    return CrisisPhase(
        phase=str(raw.get("phase") or "Untitled phase"),
        description=str(raw.get("description") or ""),
        decisions=[str(option) for option in raw.get("decisions") or []],
    )


def _fallback_feedback(was_correct: bool) -> CoachingFeedback:
    if was_correct:
        feedback = "Excellent work! You correctly identified the security issue. This shows great awareness!"
    else:
        feedback = "Great learning opportunity! This scenario helps you recognize these patterns in the future."
    return CoachingFeedback(
        feedback=feedback,
        recommendations=[
            "Keep practicing with different scenarios",
            "Review the security indicators",
            "Apply this knowledge in your daily work",
        ],
        security_tips=["Look for suspicious URLs", "Verify unexpected requests", "When in doubt, ask for help"],
    )
