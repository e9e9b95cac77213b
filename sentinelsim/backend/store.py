"""Persistence interfaces and implementations for interaction records and coaching sessions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import itertools
import json
import threading
from typing import Any, Protocol

from sentinelsim.backend.models import CoachingSession, CoachingSessionEntry, InteractionEntry, InteractionRecord


class InteractionStore(Protocol):
    def record_interaction(self, entry: InteractionEntry) -> InteractionRecord:
        """Persist an interaction entry and return the stored record."""

    def get_user_interactions(self, user_id: int) -> list[InteractionRecord]:
        """Return a user's interactions, newest first."""

    def get_simulation_interactions(self, simulation_id: int) -> list[InteractionRecord]:
        """Return a simulation's interactions, newest first."""

    def create_coaching_session(self, entry: CoachingSessionEntry) -> CoachingSession:
        """Persist coaching feedback given to a user."""

    def get_user_coaching_sessions(self, user_id: int) -> list[CoachingSession]:
        """Return a user's coaching sessions, newest first."""


@dataclass
class InMemoryInteractionStore:
    """Process-local store.

    Writes arrive from worker threads when the broadcaster persists decisions,
    so every access goes through a lock.
    """

    def __post_init__(self) -> None:
        self._records: list[InteractionRecord] = []
        self._ids = itertools.count(1)
        self._sessions: list[CoachingSession] = []
        self._session_ids = itertools.count(1)
        self._lock = threading.Lock()

    def record_interaction(self, entry: InteractionEntry) -> InteractionRecord:
        with self._lock:
            record = InteractionRecord(
                interaction_id=next(self._ids),
                user_id=entry.user_id,
                simulation_id=entry.simulation_id,
                scenario_id=entry.scenario_id,
                action=entry.action,
                details=dict(entry.details) if entry.details is not None else None,
                timestamp=datetime.now(timezone.utc),
            )
            self._records.append(record)
        return record

    def get_user_interactions(self, user_id: int) -> list[InteractionRecord]:
        with self._lock:
            return [record for record in reversed(self._records) if record.user_id == user_id]

    def get_simulation_interactions(self, simulation_id: int) -> list[InteractionRecord]:
        with self._lock:
            return [record for record in reversed(self._records) if record.simulation_id == simulation_id]

    def create_coaching_session(self, entry: CoachingSessionEntry) -> CoachingSession:
        with self._lock:
            session = CoachingSession(
                session_id=next(self._session_ids),
                user_id=entry.user_id,
                simulation_id=entry.simulation_id,
                feedback=entry.feedback,
                recommendations=list(entry.recommendations),
                created_at=datetime.now(timezone.utc),
            )
            self._sessions.append(session)
        return session

    def get_user_coaching_sessions(self, user_id: int) -> list[CoachingSession]:
        with self._lock:
            return [session for session in reversed(self._sessions) if session.user_id == user_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


_SELECT_COLUMNS = "id, user_id, simulation_id, scenario_id, action, details, timestamp"


@dataclass
class PostgresInteractionStore:
    database_url: str

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    def record_interaction(self, entry: InteractionEntry) -> InteractionRecord:
        details_json = json.dumps(entry.details) if entry.details is not None else None
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO user_interactions (user_id, simulation_id, scenario_id, action, details)
                    VALUES (%s, %s, %s, %s, %s::jsonb)
                    RETURNING id, timestamp
                    """,
                    (entry.user_id, entry.simulation_id, entry.scenario_id, entry.action, details_json),
                )
                interaction_id, timestamp = cur.fetchone()
            conn.commit()

        return InteractionRecord(
            interaction_id=interaction_id,
            user_id=entry.user_id,
            simulation_id=entry.simulation_id,
            scenario_id=entry.scenario_id,
            action=entry.action,
            details=entry.details,
            timestamp=timestamp,
        )

    def get_user_interactions(self, user_id: int) -> list[InteractionRecord]:
        return self._select(
            f"""
            SELECT {_SELECT_COLUMNS}
            FROM user_interactions
            WHERE user_id = %s
            ORDER BY timestamp DESC, id DESC
            """,
            (user_id,),
        )

    def get_simulation_interactions(self, simulation_id: int) -> list[InteractionRecord]:
        return self._select(
            f"""
            SELECT {_SELECT_COLUMNS}
            FROM user_interactions
            WHERE simulation_id = %s
            ORDER BY timestamp DESC, id DESC
            """,
            (simulation_id,),
        )

    def create_coaching_session(self, entry: CoachingSessionEntry) -> CoachingSession:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO coaching_sessions (user_id, simulation_id, feedback, recommendations)
                    VALUES (%s, %s, %s, %s::jsonb)
                    RETURNING id, created_at
                    """,
                    (entry.user_id, entry.simulation_id, entry.feedback, json.dumps(entry.recommendations)),
                )
                session_id, created_at = cur.fetchone()
            conn.commit()

        return CoachingSession(
            session_id=session_id,
            user_id=entry.user_id,
            simulation_id=entry.simulation_id,
            feedback=entry.feedback,
            recommendations=list(entry.recommendations),
            created_at=created_at,
        )

    def get_user_coaching_sessions(self, user_id: int) -> list[CoachingSession]:
        rows = self._fetch_rows(
            """
            SELECT id, user_id, simulation_id, feedback, recommendations, created_at
            FROM coaching_sessions
            WHERE user_id = %s
            ORDER BY created_at DESC, id DESC
            """,
            (user_id,),
        )
        return [_row_to_session(row) for row in rows]

    def _select(self, sql: str, params: tuple) -> list[InteractionRecord]:
        return [_row_to_record(row) for row in self._fetch_rows(sql, params)]

    def _fetch_rows(self, sql: str, params: tuple) -> list[tuple]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return cur.fetchall()


def _row_to_record(row: tuple) -> InteractionRecord:
    interaction_id, user_id, simulation_id, scenario_id, action, details, timestamp = row
    if isinstance(details, str):
        details = json.loads(details)
    return InteractionRecord(
        interaction_id=interaction_id,
        user_id=user_id,
        simulation_id=simulation_id,
        scenario_id=scenario_id,
        action=action,
        details=details,
        timestamp=timestamp,
    )


def _row_to_session(row: tuple) -> CoachingSession:
    session_id, user_id, simulation_id, feedback, recommendations, created_at = row
    if isinstance(recommendations, str):
        recommendations = json.loads(recommendations)
    return CoachingSession(
        session_id=session_id,
        user_id=user_id,
        simulation_id=simulation_id,
        feedback=feedback,
        recommendations=list(recommendations),
        created_at=created_at,
    )


def create_store(database_url: str | None) -> InteractionStore:
    if database_url:
        return PostgresInteractionStore(database_url=database_url)
    return InMemoryInteractionStore()
