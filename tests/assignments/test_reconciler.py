"""Tests for bulk group-assignment reconciliation."""

from src.assignments import apply_assignments, apply_assignments_to_cache
from src.cache import CacheEntry, SessionParticipantCache
from src.models.participant import ParticipantStatus


class TestApplyAssignments:
    """Tests for apply_assignments."""

    def test_matching_label_is_not_an_update(self, make_record) -> None:
        """A record already carrying the mapped label is matched only."""
        record = make_record(record_id="p1", group_label="1")

        result = apply_assignments([record], {"p1": "1"})

        assert result.matched_ids == {"p1"}
        assert result.updated_ids == set()
        assert result.roster[0] is record

    def test_updates_label_and_status(self, make_record) -> None:
        record = make_record(record_id="p1", group_label="1")

        result = apply_assignments([record], {"p1": "別日"})

        [updated] = result.roster
        assert result.updated_ids == {"p1"}
        assert updated.status is ParticipantStatus.RELOCATED
        assert updated.row_key == record.row_key

    def test_normalizes_mapped_label(self, make_record) -> None:
        record = make_record(record_id="p1", group_label="3")
        result = apply_assignments([record], {"p1": " ３ "})
        assert result.updated_ids == set()

    def test_matches_legacy_id(self, make_record) -> None:
        record = make_record(record_id="p1", legacy_record_id="old-1")
        result = apply_assignments([record], {"old-1": "5"})
        assert result.matched_ids == {"old-1"}
        assert result.roster[0].group_label == "5"

    def test_unmatched_records_untouched(self, make_record) -> None:
        records = [make_record(record_id="p1"), make_record(record_id="p2")]
        result = apply_assignments(records, {"p2": "4"})
        assert result.roster[0] is records[0]
        assert result.roster[1].group_label == "4"

    def test_empty_mapping(self, make_record) -> None:
        records = [make_record(record_id="p1")]
        result = apply_assignments(records, {})
        assert result.roster == records
        assert result.matched_ids == set()

    def test_summary(self, make_record) -> None:
        record = make_record(record_id="p1", group_label="1")
        result = apply_assignments([record], {"p1": "2", "p7": "1", "p8": "1"})

        assert result.summary(3) == "班番号を照合: 1名 / 変更: 1件 / 未一致: 2名"
        assert result.summary(3, {"p7", "p8"}) == "班番号を照合: 3名 / 変更: 1件"


class TestApplyAssignmentsToCache:
    """Tests for apply_assignments_to_cache."""

    def test_updates_other_sessions(
        self, cache: SessionParticipantCache, make_record
    ) -> None:
        cache.replace_slice(
            "s2", [CacheEntry(record_id="p9", name="鈴木一郎", session_id="s2")]
        )

        matched = apply_assignments_to_cache(cache, {"p9": "キャンセル"})

        [entry] = cache.slice("s2")
        assert matched == {"p9"}
        assert entry.group_label == "キャンセル"
        assert entry.status is ParticipantStatus.CANCELLED

    def test_previews_are_left_alone(
        self, cache: SessionParticipantCache, make_record
    ) -> None:
        """Previews follow their relocation intent, not assignment imports."""
        cache.upsert_preview(
            make_record(record_id="p1", group_label="別日"),
            source_session_id="s1",
            destination_session_id="s2",
            destination_group_label="3",
        )

        matched = apply_assignments_to_cache(cache, {"p1": "9"})

        assert matched == set()
        assert cache.slice("s2")[0].group_label == "3"
