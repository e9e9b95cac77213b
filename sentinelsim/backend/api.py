"""FastAPI endpoints for interactions, generated content, email and the live crisis channel."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from datetime import datetime
from typing import Any, AsyncIterator, Literal

from fastapi import Depends, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ConfigDict, Field

from .broadcaster import CrisisBroadcaster
from .config import BackendSettings, load_settings
from .models import (
    COACHED_ACTIONS,
    CoachingSession,
    CoachingSessionEntry,
    DeliveryResult,
    InteractionEntry,
    InteractionRecord,
)
from .notifications import NotificationService
from .registry import ConnectionRegistry
from .scenarios import ScenarioGenerationError, ScenarioGenerator
from .store import InteractionStore, create_store

logger = logging.getLogger(__name__)

Complexity = Literal["basic", "intermediate", "advanced"]


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class InteractionRequest(CamelModel):
    user_id: int = Field(alias="userId")
    simulation_id: int | None = Field(default=None, alias="simulationId")
    scenario_id: int | None = Field(default=None, alias="scenarioId")
    action: str = Field(min_length=1, max_length=100)
    details: dict[str, Any] | None = None


class InteractionResponse(CamelModel):
    id: int
    user_id: int = Field(alias="userId")
    simulation_id: int | None = Field(alias="simulationId")
    scenario_id: int | None = Field(alias="scenarioId")
    action: str
    details: dict[str, Any] | None
    timestamp: datetime

    @classmethod
    def from_record(cls, record: InteractionRecord) -> "InteractionResponse":
        return cls(
            id=record.interaction_id,
            user_id=record.user_id,
            simulation_id=record.simulation_id,
            scenario_id=record.scenario_id,
            action=record.action,
            details=record.details,
            timestamp=record.timestamp,
        )


class CoachingSessionResponse(CamelModel):
    id: int
    user_id: int = Field(alias="userId")
    simulation_id: int | None = Field(alias="simulationId")
    feedback: str
    recommendations: list[str]
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_session(cls, session: CoachingSession) -> "CoachingSessionResponse":
        return cls(
            id=session.session_id,
            user_id=session.user_id,
            simulation_id=session.simulation_id,
            feedback=session.feedback,
            recommendations=session.recommendations,
            created_at=session.created_at,
        )


class CrisisScenarioRequest(CamelModel):
    scenario_type: str = Field(alias="scenarioType", min_length=1, max_length=200)
    complexity: Complexity


class CrisisPhaseResponse(BaseModel):
    phase: str
    description: str
    decisions: list[str]


class CrisisScenarioResponse(BaseModel):
    title: str
    description: str
    phases: list[CrisisPhaseResponse]


class PhishingScenarioRequest(CamelModel):
    difficulty: Complexity
    target_audience: str | list[str] = Field(alias="targetAudience")
    company_name: str | None = Field(default=None, alias="companyName")
    industry: str | None = None


class PhishingScenarioResponse(BaseModel):
    subject: str
    content: str
    indicators: list[str]
    difficulty: str


class CoachingFeedbackRequest(CamelModel):
    user_action: str = Field(alias="userAction", min_length=1)
    scenario_details: dict[str, Any] | None = Field(default=None, alias="scenarioDetails")
    was_correct: bool = Field(alias="wasCorrect")


class CoachingFeedbackResponse(CamelModel):
    feedback: str
    recommendations: list[str]
    security_tips: list[str] = Field(alias="securityTips")


class SendEmailRequest(CamelModel):
    to: str | list[str]
    subject: str = Field(min_length=1)
    text: str = Field(min_length=1)
    html: str | None = None


class PhishingEmailRequest(CamelModel):
    to: str | list[str]
    scenario: str = Field(min_length=1)


class SecurityAlertData(CamelModel):
    title: str = Field(min_length=1)
    severity: str = "Medium"
    description: str
    recommendations: list[str] | None = None


class SecurityAlertRequest(CamelModel):
    to: str | list[str]
    alert_data: SecurityAlertData = Field(alias="alertData")


class DeliveryResponse(CamelModel):
    success: bool
    message_id: str | None = Field(default=None, alias="messageId")
    error: str | None = None
    message: str | None = None

    @classmethod
    def from_result(cls, result: DeliveryResult) -> "DeliveryResponse":
        return cls(
            success=result.success,
            message_id=result.message_id,
            error=result.error,
            message=result.message,
        )


def create_app(
    store: InteractionStore | None = None,
    scenario_generator: ScenarioGenerator | None = None,
    notifier: NotificationService | None = None,
    settings: BackendSettings | None = None,
) -> FastAPI:
    runtime_settings = settings if settings is not None else load_settings()
    interaction_store = store if store is not None else create_store(runtime_settings.database_url)
    generator = (
        scenario_generator
        if scenario_generator is not None
        else ScenarioGenerator(api_key=runtime_settings.openai_api_key, model=runtime_settings.openai_model)
    )
    notification_service = (
        notifier
        if notifier is not None
        else NotificationService(smtp=runtime_settings.smtp, public_url=runtime_settings.public_url)
    )

    registry = ConnectionRegistry()
    broadcaster = CrisisBroadcaster(registry=registry, store=interaction_store)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await registry.close_all()
        await broadcaster.drain()

    app = FastAPI(title="SentinelSim API", version="0.1.0", lifespan=lifespan)
    app.state.connection_registry = registry
    app.state.broadcaster = broadcaster

    def get_store() -> InteractionStore:
        return interaction_store

    def get_generator() -> ScenarioGenerator:
        return generator

    def get_notifier() -> NotificationService:
        return notification_service

    @app.post("/api/interactions", response_model=InteractionResponse)
    def record_interaction(
        payload: InteractionRequest,
        local_store: InteractionStore = Depends(get_store),
        local_generator: ScenarioGenerator = Depends(get_generator),
    ) -> InteractionResponse:
        record = local_store.record_interaction(
            InteractionEntry(
                user_id=payload.user_id,
                simulation_id=payload.simulation_id,
                scenario_id=payload.scenario_id,
                action=payload.action,
                details=payload.details,
            )
        )
        if payload.action in COACHED_ACTIONS:
            feedback = local_generator.generate_coaching_feedback(
                user_action=payload.action,
                scenario_details=payload.details,
                was_correct=payload.action == "report",
            )
            local_store.create_coaching_session(
                CoachingSessionEntry(
                    user_id=payload.user_id,
                    simulation_id=payload.simulation_id,
                    feedback=feedback.feedback,
                    recommendations=feedback.recommendations,
                )
            )
        return InteractionResponse.from_record(record)

    @app.get("/api/users/{user_id}/coaching", response_model=list[CoachingSessionResponse])
    def get_user_coaching_sessions(
        user_id: int,
        local_store: InteractionStore = Depends(get_store),
    ) -> list[CoachingSessionResponse]:
        sessions = local_store.get_user_coaching_sessions(user_id)
        return [CoachingSessionResponse.from_session(session) for session in sessions]

    @app.get("/api/users/{user_id}/interactions", response_model=list[InteractionResponse])
    def get_user_interactions(
        user_id: int,
        local_store: InteractionStore = Depends(get_store),
    ) -> list[InteractionResponse]:
        return [InteractionResponse.from_record(record) for record in local_store.get_user_interactions(user_id)]

    @app.get("/api/simulations/{simulation_id}/interactions", response_model=list[InteractionResponse])
    def get_simulation_interactions(
        simulation_id: int,
        local_store: InteractionStore = Depends(get_store),
    ) -> list[InteractionResponse]:
        records = local_store.get_simulation_interactions(simulation_id)
        return [InteractionResponse.from_record(record) for record in records]

    @app.post("/api/crisis-scenarios", response_model=CrisisScenarioResponse)
    def generate_crisis_scenario(
        payload: CrisisScenarioRequest,
        local_generator: ScenarioGenerator = Depends(get_generator),
    ) -> CrisisScenarioResponse:
        try:
            scenario = local_generator.generate_crisis_scenario(payload.scenario_type, payload.complexity)
        except ScenarioGenerationError as exc:
            raise HTTPException(status_code=500, detail="Failed to generate crisis scenario") from exc
        return CrisisScenarioResponse(
            title=scenario.title,
            description=scenario.description,
            phases=[
                CrisisPhaseResponse(phase=phase.phase, description=phase.description, decisions=phase.decisions)
                for phase in scenario.phases
            ],
        )

    @app.post("/api/phishing-scenarios", response_model=PhishingScenarioResponse)
    def generate_phishing_scenario(
        payload: PhishingScenarioRequest,
        local_generator: ScenarioGenerator = Depends(get_generator),
    ) -> PhishingScenarioResponse:
        scenario = local_generator.generate_phishing_scenario(
            difficulty=payload.difficulty,
            target_audience=payload.target_audience,
            company_name=payload.company_name,
            industry=payload.industry,
        )
        return PhishingScenarioResponse(
            subject=scenario.subject,
            content=scenario.content,
            indicators=scenario.indicators,
            difficulty=scenario.difficulty,
        )

    @app.post("/api/coaching-feedback", response_model=CoachingFeedbackResponse)
    def generate_coaching_feedback(
        payload: CoachingFeedbackRequest,
        local_generator: ScenarioGenerator = Depends(get_generator),
    ) -> CoachingFeedbackResponse:
        feedback = local_generator.generate_coaching_feedback(
            user_action=payload.user_action,
            scenario_details=payload.scenario_details,
            was_correct=payload.was_correct,
        )
        return CoachingFeedbackResponse(
            feedback=feedback.feedback,
            recommendations=feedback.recommendations,
            security_tips=feedback.security_tips,
        )

    @app.get("/api/email/test", response_model=DeliveryResponse, response_model_exclude_none=True)
    async def test_email_connection(
        local_notifier: NotificationService = Depends(get_notifier),
    ) -> DeliveryResponse:
        return DeliveryResponse.from_result(await local_notifier.test_connection())

    @app.post("/api/email/send", response_model=DeliveryResponse, response_model_exclude_none=True)
    async def send_email(
        payload: SendEmailRequest,
        local_notifier: NotificationService = Depends(get_notifier),
    ) -> DeliveryResponse:
        result = await local_notifier.send_email(payload.to, payload.subject, payload.text, html=payload.html)
        return DeliveryResponse.from_result(result)

    @app.post("/api/email/phishing",response_model=DeliveryResponse, response_model_exclude_none=True)
    async def send_phishing_email(
        payload: PhishingEmailRequest,
        local_notifier: NotificationService = Depends(get_notifier),
    ) -> DeliveryResponse:
        result = await local_notifier.send_phishing_simulation(payload.to, payload.scenario)
        return DeliveryResponse.from_result(result)

    @app.post("/api/email/security-alert", response_model=DeliveryResponse, response_model_exclude_none=True)
    async def send_security_alert(
        payload: SecurityAlertRequest,
        local_notifier: NotificationService = Depends(get_notifier),
    ) -> DeliveryResponse:
        alert = payload.alert_data
        result = await local_notifier.send_security_alert(
            payload.to,
            title=alert.title,
            severity=alert.severity,
            description=alert.description,
            recommendations=alert.recommendations,
        )
        return DeliveryResponse.from_result(result)

    @app.websocket("/ws")
    async def crisis_ws(websocket: WebSocket) -> None:
        connection_id = await registry.connect(websocket)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes") or b""
                await broadcaster.handle_message(connection_id, raw)
        except WebSocketDisconnect:
            pass
        except RuntimeError as exc:
            logger.warning("connection %s dropped: %s", connection_id, exc)
        finally:
            registry.disconnect(connection_id)

    return app


app = create_app()
