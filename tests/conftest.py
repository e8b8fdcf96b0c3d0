"""Pytest configuration and fixtures."""

import pytest

from src.cache.session_cache import SessionParticipantCache
from src.models.participant import ParticipantRecord
from src.models.session import SessionInfo
from src.session.context import ReconciliationSession
from src.store.memory import InMemoryRemoteStore

EVENT_ID = "spring"


def _make_record(**fields) -> ParticipantRecord:
    defaults = {
        "name": "田中太郎",
        "phonetic_name": "タナカタロウ",
        "department": "工学部",
        "group_label": "1",
    }
    return ParticipantRecord(**{**defaults, **fields})


@pytest.fixture
def make_record():
    """Factory for participants with sensible defaults."""
    return _make_record


@pytest.fixture
def sessions() -> list[SessionInfo]:
    """Three sessions of the test event."""
    return [
        SessionInfo(session_id="s1", label="4月1日", participant_count=2),
        SessionInfo(session_id="s2", label="4月2日", participant_count=1),
        SessionInfo(session_id="s3", label="4月3日", participant_count=0),
    ]


@pytest.fixture
def remote_tree() -> dict:
    """Remote participant tree of the test event."""
    return {
        EVENT_ID: {
            "s1": {
                "p1": {
                    "uid": "p1",
                    "name": "田中太郎",
                    "phonetic": "タナカタロウ",
                    "department": "工学部",
                    "teamNumber": "1",
                    "token": "tok-p1-000000000000",
                },
                "p2": {
                    "uid": "p2",
                    "name": "佐藤花子",
                    "phonetic": "サトウハナコ",
                    "department": "文学部",
                    "teamNumber": "2",
                },
            },
            "s2": {
                "p9": {
                    "uid": "p9",
                    "name": "鈴木一郎",
                    "phonetic": "スズキイチロウ",
                    "department": "理学部",
                    "teamNumber": "1",
                },
            },
        }
    }


@pytest.fixture
def store(remote_tree: dict, sessions: list[SessionInfo]) -> InMemoryRemoteStore:
    """In-memory remote store seeded with the test event."""
    return InMemoryRemoteStore(participants=remote_tree, sessions={EVENT_ID: sessions})


@pytest.fixture
async def session(store: InMemoryRemoteStore) -> ReconciliationSession:
    """Loaded session for s1."""
    s = ReconciliationSession(EVENT_ID, "s1", store)
    await s.load()
    return s


@pytest.fixture
def cache() -> SessionParticipantCache:
    """Empty participant cache for the test event."""
    return SessionParticipantCache(EVENT_ID)
