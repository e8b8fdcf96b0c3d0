"""Tests for IdentityResolver."""

import pytest

from src.identity.resolver import IdentityResolver, identity_key
from src.identity.schemas import ResolutionScope
from src.models.participant import ParticipantRecord


@pytest.fixture
def resolver() -> IdentityResolver:
    """Resolver with the default pad width."""
    return IdentityResolver()


@pytest.fixture
def scope() -> ResolutionScope:
    """Scope whose prefix is "ev-s1"."""
    return ResolutionScope(event_id="ev", session_id="s1")


def row(name: str, record_id: str = "", **fields) -> ParticipantRecord:
    return ParticipantRecord(
        record_id=record_id,
        name=name,
        phonetic_name=fields.pop("phonetic_name", ""),
        department=fields.pop("department", "工学部"),
        **fields,
    )


class TestResolutionScope:
    """Tests for prefix derivation."""

    def test_prefix(self) -> None:
        assert ResolutionScope(event_id="Spring Fair", session_id="Day 1").prefix == (
            "spring-fair-day-1"
        )

    def test_default_prefix(self) -> None:
        """An empty scope falls back to the default prefix."""
        assert ResolutionScope().prefix == "participant"


class TestIdentityResolver:
    """Tests for ID assignment."""

    def test_mints_sequential_ids(
        self, resolver: IdentityResolver, scope: ResolutionScope
    ) -> None:
        """Rows without IDs get zero-padded sequence numbers in order."""
        resolved = resolver.resolve_identities([row("A"), row("B")], [], scope)
        assert [r.record_id for r in resolved] == ["ev-s1_001", "ev-s1_002"]

    def test_continues_after_highest_existing(
        self, resolver: IdentityResolver, scope: ResolutionScope
    ) -> None:
        """Minting starts after the highest used sequence number."""
        existing = [row("X", "ev-s1_007")]
        resolved = resolver.resolve_identities([row("A")], existing, scope)
        assert resolved[0].record_id == "ev-s1_008"

    def test_keeps_wider_padding(
        self, resolver: IdentityResolver, scope: ResolutionScope
    ) -> None:
        """The pad width grows to the widest existing number."""
        existing = [row("X", "ev-s1_0012")]
        resolved = resolver.resolve_identities([row("A")], existing, scope)
        assert resolved[0].record_id == "ev-s1_0013"

    def test_min_width_setting(self, scope: ResolutionScope) -> None:
        resolved = IdentityResolver(min_width=5).resolve_identities(
            [row("A")], [], scope
        )
        assert resolved[0].record_id == "ev-s1_00001"

    def test_reuses_existing_id_once(
        self, resolver: IdentityResolver, scope: ResolutionScope
    ) -> None:
        """A matching existing ID goes to the first matching row only."""
        existing = [row("田中太郎", "p1", phonetic_name="タナカタロウ")]
        rows = [
            row("田中太郎", phonetic_name="タナカタロウ"),
            row("田中太郎", phonetic_name="タナカタロウ"),
        ]
        resolved, report = resolver.resolve_with_report(rows, existing, scope)
        assert resolved[0].record_id == "p1"
        assert resolved[1].record_id == "ev-s1_001"
        assert report.reused_ids == ["p1"]
        assert report.minted_ids == ["ev-s1_001"]

    def test_identity_key_uses_full_width_folding(self) -> None:
        """Full-width and half-width forms share one identity."""
        assert identity_key(row("ＡＢＣ")) == identity_key(row("ABC"))

    def test_carried_id_is_not_reused(
        self, resolver: IdentityResolver, scope: ResolutionScope
    ) -> None:
        """An ID carried by one row is never handed to another row."""
        existing = [row("田中太郎", "p1")]
        rows = [row("別人", "p1"), row("田中太郎")]
        resolved, report = resolver.resolve_with_report(rows, existing, scope)
        assert [r.record_id for r in resolved] == ["p1", "ev-s1_001"]
        assert report.kept_ids == ["p1"]

    def test_repeated_carried_id_kept_once(
        self, resolver: IdentityResolver, scope: ResolutionScope
    ) -> None:
        """Only the first row keeps an ID that several rows carry."""
        existing = [row("田中太郎", "p5", phonetic_name="タナカタロウ")]
        rows = [
            row("A", "p1"),
            row("B", "p1"),
            row("田中太郎", "p1", phonetic_name="タナカタロウ"),
        ]
        resolved, report = resolver.resolve_with_report(rows, existing, scope)
        ids = [r.record_id for r in resolved]
        assert ids == ["p1", "ev-s1_001", "p5"]
        assert report.kept_ids == ["p1"]
        assert report.reused_ids == ["p5"]
        assert report.minted_ids == ["ev-s1_001"]

    def test_never_collides_with_carried_ids(
        self, resolver: IdentityResolver, scope: ResolutionScope
    ) -> None:
        """Minted IDs skip sequence numbers already carried by rows."""
        rows = [row("A"), row("B", "ev-s1_001"), row("C")]
        resolved = resolver.resolve_identities(rows, [], scope)
        ids = [r.record_id for r in resolved]
        assert ids == ["ev-s1_002", "ev-s1_001", "ev-s1_003"]
        assert len(set(ids)) == len(ids)

    def test_is_deterministic(
        self, resolver: IdentityResolver, scope: ResolutionScope
    ) -> None:
        """Same inputs always produce the same IDs."""
        rows = [row("A"), row("B"), row("田中太郎")]
        existing = [row("田中太郎", "p1"), row("X", "ev-s1_004")]
        first = [r.record_id for r in resolver.resolve_identities(rows, existing, scope)]
        second = [
            r.record_id for r in resolver.resolve_identities(rows, existing, scope)
        ]
        assert first == second == ["ev-s1_005", "ev-s1_006", "p1"]

    def test_preserves_row_keys(
        self, resolver: IdentityResolver, scope: ResolutionScope
    ) -> None:
        """Resolved copies keep the row identity of their input."""
        rows = [row("A")]
        resolved = resolver.resolve_identities(rows, [], scope)
        assert resolved[0].row_key == rows[0].row_key
