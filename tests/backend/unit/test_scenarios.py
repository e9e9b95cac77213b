import json
from types import SimpleNamespace

import pytest
from openai import OpenAIError

from sentinelsim.backend.scenarios import _FALLBACK_PHISHING, ScenarioGenerationError, ScenarioGenerator


class _FakeCompletions:
    def __init__(self, content: str | None = None, error: Exception | None = None) -> None:
        self.content = content
        self.error = error
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _fake_client(content: str | None = None, error: Exception | None = None) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=_FakeCompletions(content=content, error=error)))


def test_crisis_scenario_is_built_from_model_json() -> None:
    client = _fake_client(
        json.dumps(
            {
                "title": "Ransomware at the plant",
                "description": "File servers are encrypted.",
                "phases": [
                    {"phase": "Detection", "description": "Alerts fire", "decisions": ["Isolate", "Wait"]},
                    {"phase": "Containment", "description": "Spread slows", "decisions": ["Restore", "Pay"]},
                ],
            }
        )
    )
    generator = ScenarioGenerator(client=client, model="gpt-test")

    scenario = generator.generate_crisis_scenario("ransomware", "advanced")

    assert scenario.title == "Ransomware at the plant"
    assert [phase.phase for phase in scenario.phases] == ["Detection", "Containment"]
    assert scenario.phases[0].decisions == ["Isolate", "Wait"]
    call = client.chat.completions.calls[0]
    assert call["model"] == "gpt-test"
    assert call["response_format"] == {"type": "json_object"}
    assert "Scenario type: ransomware" in call["messages"][1]["content"]
    assert "Complexity level: advanced" in call["messages"][1]["content"]


def test_crisis_scenario_fills_missing_fields_with_defaults() -> None:
    generator = ScenarioGenerator(client=_fake_client("{}"))

    scenario = generator.generate_crisis_scenario("data breach", "basic")

    assert scenario.title == "Cybersecurity Crisis"
    assert scenario.description == "A critical security incident has occurred."
    assert len(scenario.phases) == 1
    assert scenario.phases[0].phase == "Initial Response"
    assert scenario.phases[0].decisions == ["Contact IT team", "Notify management", "Document incident"]


@pytest.mark.parametrize(
    "client",
    [
        _fake_client(error=OpenAIError("rate limited")),
        _fake_client("not json"),
        _fake_client("[]"),
        _fake_client(json.dumps({"phases": ["not-an-object"]})),
    ],
)
def test_crisis_scenario_failures_raise_generation_error(client) -> None:
    generator = ScenarioGenerator(client=client)

    with pytest.raises(ScenarioGenerationError):
        generator.generate_crisis_scenario("ddos", "intermediate")


def test_crisis_scenario_rejects_unknown_complexity() -> None:
    generator = ScenarioGenerator(client=_fake_client("{}"))

    with pytest.raises(ValueError):
        generator.generate_crisis_scenario("ddos", "extreme")


def test_phishing_scenario_uses_model_output() -> None:
    client = _fake_client(
        json.dumps({"subject": "Payroll update", "content": "<p>Confirm</p>", "indicators": ["Urgency"]})
    )
    generator = ScenarioGenerator(client=client)

    scenario = generator.generate_phishing_scenario("intermediate", ["Finance", "HR"], company_name="Acme")

    assert scenario.subject == "Payroll update"
    assert scenario.indicators == ["Urgency"]
    assert scenario.difficulty == "intermediate"
    prompt = client.chat.completions.calls[0]["messages"][1]["content"]
    assert "Target audience: Finance, HR" in prompt
    assert "Company: Acme" in prompt
    assert "Industry: Technology" in prompt


def test_phishing_scenario_falls_back_when_model_fails() -> None:
    generator = ScenarioGenerator(client=_fake_client(error=OpenAIError("offline")))

    scenario = generator.generate_phishing_scenario("advanced", "Executives")

    assert scenario.difficulty == "advanced"
    assert scenario.subject
    assert scenario.indicators


def test_coaching_feedback_reads_camel_case_tips() -> None:
    client = _fake_client(
        json.dumps({"feedback": "Nice catch", "recommendations": ["Keep reporting"], "securityTips": ["Hover links"]})
    )
    generator = ScenarioGenerator(client=client)

    feedback = generator.generate_coaching_feedback("report", {"subject": "Invoice"}, was_correct=True)

    assert feedback.feedback == "Nice catch"
    assert feedback.recommendations == ["Keep reporting"]
    assert feedback.security_tips == ["Hover links"]
    prompt = client.chat.completions.calls[0]["messages"][1]["content"]
    assert "User's response was correct." in prompt


def test_coaching_feedback_falls_back_when_model_fails() -> None:
    generator = ScenarioGenerator(client=_fake_client(error=OpenAIError("offline")))

    correct = generator.generate_coaching_feedback("report", None, was_correct=True)
    incorrect = generator.generate_coaching_feedback("click", None, was_correct=False)

    assert correct.feedback.startswith("Excellent work")
    assert incorrect.feedback.startswith("Great learning opportunity")
    assert correct.recommendations
    assert incorrect.security_tips


@pytest.mark.parametrize(
    "reply",
    [
        {"subject": "x", "content": "y", "indicators": 5},
        {"subject": "x", "content": "y", "indicators": [1, 2]},
        {"subject": ["x"], "content": "y", "indicators": ["Urgency"]},
        {"subject": "x", "content": {"html": "y"}},
    ],
)
def test_phishing_scenario_falls_back_on_wrong_shape_reply(reply) -> None:
    generator = ScenarioGenerator(client=_fake_client(json.dumps(reply)))

    scenario = generator.generate_phishing_scenario("basic", "All")

    assert scenario == _FALLBACK_PHISHING["basic"]


@pytest.mark.parametrize(
    "reply",
    [
        {"feedback": "ok", "recommendations": "Keep reporting"},
        {"feedback": "ok", "securityTips": 3},
        {"feedback": 42, "recommendations": ["Keep reporting"]},
    ],
)
def test_coaching_feedback_falls_back_on_wrong_shape_reply(reply) -> None:
    generator = ScenarioGenerator(client=_fake_client(json.dumps(reply)))

    feedback = generator.generate_coaching_feedback("click", None, was_correct=False)

    assert feedback.feedback.startswith("Great learning opportunity")
    assert all(isinstance(tip, str) for tip in feedback.security_tips)
