from datetime import datetime, timezone

from sentinelsim.backend.models import CoachingSessionEntry, InteractionEntry
from sentinelsim.backend.store import InMemoryInteractionStore, PostgresInteractionStore, create_store


def test_create_store_returns_postgres_store_when_database_url_present() -> None:
    store = create_store(database_url="postgresql://local")

    assert isinstance(store, PostgresInteractionStore)


def test_create_store_returns_in_memory_store_when_database_url_missing() -> None:
    store = create_store(database_url=None)

    assert isinstance(store, InMemoryInteractionStore)


def test_in_memory_store_assigns_ids_and_timestamps() -> None:
    store = InMemoryInteractionStore()

    first = store.record_interaction(InteractionEntry(user_id=1, simulation_id=5, action="click"))
    second = store.record_interaction(
        InteractionEntry(user_id=1, simulation_id=5, action="crisis_decision", details={"decision": "Escalate", "phase": 0})
    )

    assert first.interaction_id == 1
    assert second.interaction_id == 2
    assert second.timestamp.tzinfo is timezone.utc
    assert second.details == {"decision": "Escalate", "phase": 0}
    assert len(store) == 2


def test_in_memory_store_filters_and_orders_newest_first() -> None:
    store = InMemoryInteractionStore()
    store.record_interaction(InteractionEntry(user_id=1, simulation_id=5, action="click"))
    store.record_interaction(InteractionEntry(user_id=2, simulation_id=5, action="report"))
    store.record_interaction(InteractionEntry(user_id=1, simulation_id=6, action="ignore"))

    user_actions = [record.action for record in store.get_user_interactions(1)]
    simulation_actions = [record.action for record in store.get_simulation_interactions(5)]

    assert user_actions == ["ignore", "click"]
    assert simulation_actions == ["report", "click"]
    assert store.get_user_interactions(99) == []


def test_in_memory_store_copies_details() -> None:
    store = InMemoryInteractionStore()
    details = {"decision": "Isolate"}

    record = store.record_interaction(InteractionEntry(user_id=1, action="crisis_decision", details=details))
    details["decision"] = "changed"

    assert record.details == {"decision": "Isolate"}


class _FakeCursor:
    def __init__(self, fetchone_result=None, fetchall_result=None) -> None:
        self.commands: list[tuple[str, tuple]] = []
        self.fetchone_result = fetchone_result
        self.fetchall_result = fetchall_result or []

    def execute(self, sql: str, params: tuple) -> None:
        self.commands.append((sql, params))

    def fetchone(self):
        return self.fetchone_result

    def fetchall(self):
        return self.fetchall_result

    def __enter__(self) -> "_FakeCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


class _FakeConnection:
    def __init__(self, cursor: _FakeCursor) -> None:
        self.cursor_instance = cursor
        self.committed = False

    def cursor(self) -> _FakeCursor:
        return self.cursor_instance

    def commit(self) -> None:
        self.committed = True

    def __enter__(self) -> "_FakeConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


class _PostgresStoreWithFakeConnection(PostgresInteractionStore):
    def __init__(self, cursor: _FakeCursor) -> None:
        super().__init__(database_url="postgresql://local")
        self.fake_connection = _FakeConnection(cursor)

    def _connect(self) -> _FakeConnection:
        return self.fake_connection


def test_postgres_record_interaction_inserts_and_commits() -> None:
    created_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    store = _PostgresStoreWithFakeConnection(_FakeCursor(fetchone_result=(42, created_at)))

    record = store.record_interaction(
        InteractionEntry(
            user_id=7,
            simulation_id=3,
            action="crisis_decision",
            details={"decision": "Isolate", "phase": 1},
        )
    )

    assert record.interaction_id == 42
    assert record.timestamp == created_at
    assert record.details == {"decision": "Isolate", "phase": 1}
    assert store.fake_connection.committed is True
    sql, params = store.fake_connection.cursor_instance.commands[0]
    assert "INSERT INTO user_interactions" in sql
    assert "RETURNING id, timestamp" in sql
    assert params == (7, 3, None, "crisis_decision", '{"decision": "Isolate", "phase": 1}')


def test_postgres_reads_decode_json_details() -> None:
    created_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    cursor = _FakeCursor(
        fetchall_result=[
            (2, 7, 3, None, "crisis_decision", '{"decision": "Notify", "phase": 2}', created_at),
            (1, 7, 3, None, "click", None, created_at),
        ]
    )
    store = _PostgresStoreWithFakeConnection(cursor)

    records = store.get_simulation_interactions(3)

    assert [record.interaction_id for record in records] == [2, 1]
    assert records[0].details == {"decision": "Notify", "phase": 2}
    assert records[1].details is None
    sql, params = cursor.commands[0]
    assert "WHERE simulation_id = %s" in sql
    assert "ORDER BY timestamp DESC" in sql
    assert params == (3,)
    assert store.fake_connection.committed is False


def test_postgres_user_interactions_query_filters_by_user() -> None:
    cursor = _FakeCursor(fetchall_result=[])
    store = _PostgresStoreWithFakeConnection(cursor)

    assert store.get_user_interactions(7) == []
    assert "WHERE user_id = %s" in cursor.commands[0][0]
    assert cursor.commands[0][1] == (7,)


def test_in_memory_coaching_sessions_are_per_user_newest_first() -> None:
    store = InMemoryInteractionStore()
    store.create_coaching_session(CoachingSessionEntry(user_id=1, simulation_id=5, feedback="first", recommendations=["a"]))
    store.create_coaching_session(CoachingSessionEntry(user_id=2, feedback="other", recommendations=[]))
    latest = store.create_coaching_session(
        CoachingSessionEntry(user_id=1, simulation_id=6, feedback="second", recommendations=["b"])
    )

    sessions = store.get_user_coaching_sessions(1)

    assert latest.session_id == 3
    assert [session.feedback for session in sessions] == ["second", "first"]
    assert sessions[1].simulation_id == 5
    assert len(store) == 0


def test_postgres_create_coaching_session_inserts_recommendations_as_json() -> None:
    created_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    store = _PostgresStoreWithFakeConnection(_FakeCursor(fetchone_result=(11, created_at)))

    session = store.create_coaching_session(
        CoachingSessionEntry(user_id=4, simulation_id=9, feedback="Nice catch", recommendations=["Keep reporting"])
    )

    assert session.session_id == 11
    assert session.created_at == created_at
    assert store.fake_connection.committed is True
    sql, params = store.fake_connection.cursor_instance.commands[0]
    assert "INSERT INTO coaching_sessions" in sql
    assert params == (4, 9, "Nice catch", '["Keep reporting"]')


def test_postgres_coaching_sessions_decode_json_recommendations() -> None:
    created_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    cursor = _FakeCursor(fetchall_result=[(2, 4, None, "Good", '["Hover links"]', created_at), (1, 4, 9, "Ok", [], created_at)])
    store = _PostgresStoreWithFakeConnection(cursor)

    sessions = store.get_user_coaching_sessions(4)

    assert [session.session_id for session in sessions] == [2, 1]
    assert sessions[0].recommendations == ["Hover links"]
    assert sessions[1].recommendations == []
    sql, params = cursor.commands[0]
    assert "FROM coaching_sessions" in sql
    assert "ORDER BY created_at DESC" in sql
    assert params == (4,)
