"""Tests for InMemoryRemoteStore."""

import pytest

from src.errors import RemoteStoreError
from src.store import (
    CommitPayload,
    InMemoryRemoteStore,
    RemoteStore,
    TokenAssignment,
)


def test_satisfies_protocol(store: InMemoryRemoteStore) -> None:
    """The in-memory store is a structural RemoteStore."""
    assert isinstance(store, RemoteStore)


class TestFetch:
    """Tests for reads."""

    async def test_fetch_event(self, store: InMemoryRemoteStore) -> None:
        snapshot = await store.fetch_event("spring")

        assert snapshot.event_id == "spring"
        assert [s.session_id for s in snapshot.sessions] == ["s1", "s2", "s3"]
        assert sorted(snapshot.participants["s1"]) == ["p1", "p2"]

    async def test_snapshot_is_a_copy(self, store: InMemoryRemoteStore) -> None:
        snapshot = await store.fetch_event("spring")
        snapshot.participants["s1"].clear()
        assert len(store.participants["spring"]["s1"]) == 2

    async def test_sessions_found_only_in_tree(self) -> None:
        """Branches without session metadata still count as sessions."""
        store = InMemoryRemoteStore(participants={"ev": {"x": {"a": {}, "b": {}}}})

        snapshot = await store.fetch_event("ev")

        [info] = snapshot.sessions
        assert info.session_id == "x"
        assert info.participant_count == 2

    async def test_unknown_event(self, store: InMemoryRemoteStore) -> None:
        with pytest.raises(RemoteStoreError):
            await store.fetch_event("nope")


class TestWrite:
    """Tests for applying commit payloads."""

    async def test_write(self, store: InMemoryRemoteStore) -> None:
        payload = CommitPayload(
            event_id="spring",
            session_id="s1",
            roster={"p1": {"uid": "p1", "teamNumber": "別日"}},
            destination_records={"s3": {"p1": {"uid": "p1", "teamNumber": "2"}}},
            participant_counts={"s1": 1, "s3": 1},
            tokens_added={
                "tok": TokenAssignment(event_id="spring", session_id="s1", record_id="p1")
            },
        )

        result = await store.write(payload)

        assert result.success
        assert result.item_count == 2
        assert store.participants["spring"]["s1"] == {
            "p1": {"uid": "p1", "teamNumber": "別日"}
        }
        assert store.participants["spring"]["s3"]["p1"]["teamNumber"] == "2"
        assert store.sessions["spring"]["s1"].participant_count == 1
        assert store.sessions["spring"]["s1"].label == "4月1日"
        assert store.tokens["tok"].record_id == "p1"
        assert store.writes == [payload]

    async def test_destination_records_are_upserted(
        self, store: InMemoryRemoteStore
    ) -> None:
        """Existing records in the destination session are kept."""
        await store.write(
            CommitPayload(
                event_id="spring",
                session_id="s1",
                destination_records={"s2": {"p1": {"uid": "p1"}}},
            )
        )
        assert sorted(store.participants["spring"]["s2"]) == ["p1", "p9"]

    async def test_tokens_removed(self) -> None:
        owner = TokenAssignment(event_id="ev", session_id="s1", record_id="p1")
        store = InMemoryRemoteStore(tokens={"old": owner})

        await store.write(
            CommitPayload(event_id="ev", session_id="s1", tokens_removed=["old"])
        )

        assert await store.fetch_tokens() == {}
