"""Tests for duplicate detection and its operator-facing rendering."""

import pytest

from src.cache import CacheEntry, SessionParticipantCache
from src.duplicates import (
    DuplicateDetector,
    DuplicateReport,
    MatchedRecord,
    describe_match,
    duplicate_key,
    summarize,
)


@pytest.fixture
def detector() -> DuplicateDetector:
    """Duplicate detector."""
    return DuplicateDetector()


def cached(record_id: str, session_id: str, **fields) -> CacheEntry:
    return CacheEntry(
        record_id=record_id,
        row_key=f"row-{record_id}",
        name=fields.get("name", "田中太郎"),
        phonetic_name=fields.get("phonetic_name", "タナカタロウ"),
        department=fields.get("department", "工学部"),
        session_id=session_id,
    )


class TestDuplicateKey:
    """Tests for duplicate_key."""

    def test_ignores_spacing(self) -> None:
        assert duplicate_key("田中 太郎", "工学部") == duplicate_key("田中太郎", " 工学部")

    def test_empty_part(self) -> None:
        """Records without a name or department are never indexed."""
        assert duplicate_key("田中太郎", "") == ""
        assert duplicate_key("", "工学部") == ""


class TestDetect:
    """Tests for DuplicateDetector.detect."""

    def test_cross_session_duplicate(
        self, detector: DuplicateDetector, cache: SessionParticipantCache, make_record
    ) -> None:
        """A live row and a cached row in another session form a group."""
        cache.replace_slice("s1", [cached("p1", "s1")])
        record = make_record(record_id="p2")

        report = detector.detect([record], cache, "s2")

        assert report.has_duplicates
        [group] = report.groups
        assert group.total_count == 2
        match = report.match_for(record.row_key)
        assert match is not None
        assert [o.record_id for o in match.others] == ["p1"]
        assert match.others[0].session_id == "s1"
        assert not match.others[0].is_current

    def test_live_duplicates_are_symmetric(
        self, detector: DuplicateDetector, cache: SessionParticipantCache, make_record
    ) -> None:
        """Each member of a live pair lists the other."""
        first = make_record(record_id="p1")
        second = make_record(record_id="p2", name="田中 太郎")

        report = detector.detect([first, second], cache, "s1")

        first_match = report.match_for(first.row_key)
        second_match = report.match_for(second.row_key)
        assert [o.row_key for o in first_match.others] == [second.row_key]
        assert [o.row_key for o in second_match.others] == [first.row_key]
        assert first_match.total_count == second_match.total_count == 2

    def test_current_cache_slice_is_superseded(
        self, detector: DuplicateDetector, cache: SessionParticipantCache, make_record
    ) -> None:
        """A row never duplicates its own mirror in the active slice."""
        record = make_record(record_id="p1")
        cache.sync_current("s1", [record])

        report = detector.detect([record], cache, "s1")

        assert not report.has_duplicates
        assert report.matches == {}

    def test_groups_need_a_live_member(
        self, detector: DuplicateDetector, cache: SessionParticipantCache
    ) -> None:
        """Collisions only among other sessions are not reported."""
        cache.replace_slice("s2", [cached("p1", "s2")])
        cache.replace_slice("s3", [cached("p2", "s3")])

        report = detector.detect([], cache, "s1")

        assert report.groups == []

    def test_relocation_preview_counts(
        self, detector: DuplicateDetector, cache: SessionParticipantCache, make_record
    ) -> None:
        """A relocation preview in the destination slice collides with live rows."""
        moving = make_record(record_id="p1", group_label="別日")
        cache.upsert_preview(
            moving,
            source_session_id="s1",
            destination_session_id="s2",
            destination_group_label="3",
        )
        live = make_record(record_id="p5")

        report = detector.detect([live], cache, "s2")

        [other] = report.match_for(live.row_key).others
        assert other.record_id == "p1"

    def test_records_without_key_are_ignored(
        self, detector: DuplicateDetector, cache: SessionParticipantCache, make_record
    ) -> None:
        rows = [make_record(department=""), make_record(department="")]
        assert not detector.detect(rows, cache, "s1").has_duplicates


class TestNearMisses:
    """Tests for phonetic near-miss hints."""

    def test_similar_reading_in_other_session(
        self, detector: DuplicateDetector, cache: SessionParticipantCache, make_record
    ) -> None:
        cache.replace_slice(
            "s2", [cached("p9", "s2", name="田中太朗", phonetic_name="タナカタロ")]
        )
        record = make_record(record_id="p1")

        [hint] = detector.find_near_misses([record], cache, "s1", 0.8)

        assert hint.left.record_id == "p1"
        assert hint.right.record_id == "p9"
        assert 0.8 <= hint.similarity < 1.0

    def test_disabled_by_zero_threshold(
        self, detector: DuplicateDetector, cache: SessionParticipantCache, make_record
    ) -> None:
        cache.replace_slice(
            "s2", [cached("p9", "s2", name="田中太朗", phonetic_name="タナカタロ")]
        )
        assert detector.find_near_misses([make_record()], cache, "s1", 0) == []

    def test_exact_duplicates_and_other_departments_are_skipped(
        self, detector: DuplicateDetector, cache: SessionParticipantCache, make_record
    ) -> None:
        cache.replace_slice(
            "s2",
            [
                cached("p8", "s2"),
                cached("p9", "s2", name="田中太朗", department="文学部"),
            ],
        )
        assert detector.find_near_misses([make_record()], cache, "s1", 0.5) == []

    def test_live_pairs(
        self, detector: DuplicateDetector, cache: SessionParticipantCache, make_record
    ) -> None:
        """Rows of the live roster are compared with each other."""
        rows = [
            make_record(record_id="p1"),
            make_record(record_id="p2", name="田中太朗", phonetic_name="タナカタロ"),
        ]
        [hint] = detector.find_near_misses(rows, cache, "s1", 0.8)
        assert (hint.left.record_id, hint.right.record_id) == ("p1", "p2")


class TestRendering:
    """Tests for describe_match and summarize."""

    def test_same_session(self) -> None:
        member = MatchedRecord(
            record_id="ev-s1_004", row_key="r", name="田中", session_id="s1"
        )
        assert describe_match(member, "s1") == "田中（同日程・ID:004）"

    def test_other_session_with_label(self) -> None:
        member = MatchedRecord(
            record_id="ev-s2_003", row_key="r", name="田中", session_id="s2"
        )
        assert describe_match(member, "s1", {"s2": "4月2日"}) == "田中（4月2日・ID:003）"

    def test_other_session_without_label(self) -> None:
        member = MatchedRecord(record_id="abc", row_key="r", name="田中", session_id="s2")
        assert describe_match(member, "s1") == "田中（日程ID:s2・ID:abc）"

    def test_missing_id(self) -> None:
        member = MatchedRecord(row_key="r", name="田中", session_id="s1")
        assert describe_match(member, "s1") == "田中（同日程・ID未登録）"

    def test_summary_without_roster(self) -> None:
        assert summarize(DuplicateReport(), 0, "s1") == "参加者リストはまだ登録されていません。"

    def test_summary_without_duplicates(self) -> None:
        assert summarize(DuplicateReport(), 12, "s1") == "登録済みの参加者: 12名"

    def test_summary_with_duplicates(
        self, detector: DuplicateDetector, cache: SessionParticipantCache, make_record
    ) -> None:
        cache.replace_slice("s2", [cached("ev-s2_002", "s2")])
        record = make_record(record_id="ev-s1_001")
        report = detector.detect([record], cache, "s1")

        text = summarize(report, 1, "s1", {"s2": "4月2日"})

        assert text == (
            "登録済みの参加者: 1名 / 重複候補 1件 "
            "(田中太郎（4月2日・ID:002） / 田中太郎（同日程・ID:001）（2件）)"
        )

    def test_summary_limits_preview(
        self, detector: DuplicateDetector, cache: SessionParticipantCache, make_record
    ) -> None:
        names = ["A", "B", "C", "D", "E"]
        cache.replace_slice(
            "s2", [cached(f"x{i}", "s2", name=n) for i, n in enumerate(names)]
        )
        rows = [make_record(record_id=f"y{i}", name=n) for i, n in enumerate(names)]
        report = detector.detect(rows, cache, "s1")

        text = summarize(report, len(rows), "s1", limit=3)

        assert "重複候補 5件" in text
        assert text.endswith(" / 他2件)")
