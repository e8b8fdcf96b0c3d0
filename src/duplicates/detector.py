"""Cross-session duplicate detection for participant rosters.

Records collide when their normalized (name, department) keys match.
The index spans the live roster of the active session and the cached
rosters of every other session, including relocation previews.

Near-miss hints use RapidFuzz on the phonetic reading to point out
likely typos; they are advisory and never form duplicate groups.
"""

from collections.abc import Mapping, Sequence

import structlog
from pydantic import BaseModel, Field
from rapidfuzz import fuzz, utils

from src.cache.session_cache import SessionParticipantCache
from src.models.participant import ParticipantRecord
from src.normalize import format_record_id_display, normalize_duplicate_field

logger = structlog.get_logger()

SUMMARY_PREVIEW_LIMIT = 3


def duplicate_key(name: str, department: str) -> str:
    """Index key for duplicate detection ("" when either part is empty).

    Examples:
        >>> duplicate_key("田中 太郎", "工学部")
        '田中太郎::工学部'
        >>> duplicate_key("田中太郎", "")
        ''
    """
    name_key = normalize_duplicate_field(name)
    department_key = normalize_duplicate_field(department)
    if not name_key or not department_key:
        return ""
    return f"{name_key}::{department_key}"


class MatchedRecord(BaseModel):
    """One member of a duplicate bucket."""

    record_id: str = Field(default="", description="Durable participant ID")
    row_key: str = Field(description="Row key identifying the member")
    name: str = Field(default="")
    department: str = Field(default="")
    session_id: str = Field(description="Session the member belongs to")
    is_current: bool = Field(
        default=False, description="True for rows of the live roster"
    )


class DuplicateMatch(BaseModel):
    """Duplicates reported for one live roster row."""

    group_key: str = Field(description="Duplicate key shared by the bucket")
    total_count: int = Field(ge=2, description="Size of the whole bucket")
    others: list[MatchedRecord] = Field(
        default_factory=list, description="Bucket members other than the row"
    )


class DuplicateGroup(BaseModel):
    """Records sharing one duplicate key, with at least one live member."""

    group_key: str
    total_count: int = Field(ge=2)
    records: list[MatchedRecord] = Field(default_factory=list)


class DuplicateReport(BaseModel):
    """Result of a detection pass."""

    matches: dict[str, DuplicateMatch] = Field(
        default_factory=dict, description="Row key -> duplicates of that row"
    )
    groups: list[DuplicateGroup] = Field(default_factory=list)

    @property
    def has_duplicates(self) -> bool:
        return bool(self.groups)

    def match_for(self, row_key: str) -> DuplicateMatch | None:
        return self.matches.get(row_key)


class NearMissHint(BaseModel):
    """Two records whose readings are similar but not identical."""

    left: MatchedRecord
    right: MatchedRecord
    similarity: float = Field(ge=0.0, le=1.0, description="Similarity (0.0-1.0)")


class DuplicateDetector:
    """Finds records of the same person across the sessions of an event."""

    def detect(
        self,
        roster: Sequence[ParticipantRecord],
        cache: SessionParticipantCache,
        current_session_id: str,
    ) -> DuplicateReport:
        """Group colliding records and list each live row's duplicates.

        Cache entries the cache marks current for the active session are
        skipped, since the live roster supersedes them.

        Args:
            roster: Live roster of the active session
            cache: Cross-session cache (including relocation previews)
            current_session_id: Active session ID

        Returns:
            DuplicateReport with per-row matches and groups
        """
        buckets: dict[str, list[MatchedRecord]] = {}
        for entry in cache.entries():
            if entry.is_current and entry.session_id == current_session_id:
                continue
            key = duplicate_key(entry.name, entry.department)
            if not key:
                continue
            buckets.setdefault(key, []).append(
                MatchedRecord(
                    record_id=entry.record_id,
                    row_key=entry.row_key or entry.record_id,
                    name=entry.name,
                    department=entry.department,
                    session_id=entry.session_id,
                )
            )
        for record in roster:
            key = duplicate_key(record.name, record.department)
            if not key:
                continue
            buckets.setdefault(key, []).append(_live_member(record, current_session_id))

        report = DuplicateReport()
        for group_key, members in buckets.items():
            live = [m for m in members if m.is_current]
            if len(members) < 2 or not live:
                continue
            report.groups.append(
                DuplicateGroup(
                    group_key=group_key,
                    total_count=len(members),
                    records=list(members),
                )
            )
            for member in live:
                others = [
                    other
                    for other in members
                    if not (other.is_current and other.row_key == member.row_key)
                ]
                if others:
                    report.matches[member.row_key] = DuplicateMatch(
                        group_key=group_key,
                        total_count=len(members),
                        others=others,
                    )

        if report.groups:
            logger.debug(
                "duplicates detected",
                session_id=current_session_id,
                groups=len(report.groups),
                rows=len(report.matches),
            )
        return report

    def find_near_misses(
        self,
        roster: Sequence[ParticipantRecord],
        cache: SessionParticipantCache,
        current_session_id: str,
        threshold: float,
    ) -> list[NearMissHint]:
        """Pair live rows with records whose reading is nearly identical.

        Only records in the same department are compared, and pairs that
        are already exact duplicates are left out.

        Args:
            roster: Live roster of the active session
            cache: Cross-session cache
            current_session_id: Active session ID
            threshold: Minimum similarity (0.0-1.0); 0 disables hints

        Returns:
            Hints sorted by descending similarity
        """
        if threshold <= 0:
            return []

        # (member, reading) pairs; cached rows of the active session are
        # superseded by the live roster
        cached = [
            (
                MatchedRecord(
                    record_id=entry.record_id,
                    row_key=entry.row_key or entry.record_id,
                    name=entry.name,
                    department=entry.department,
                    session_id=entry.session_id,
                ),
                entry.phonetic_name or entry.name,
            )
            for entry in cache.entries()
            if entry.session_id != current_session_id
        ]
        live = [
            (_live_member(r, current_session_id), r.phonetic_name or r.name)
            for r in roster
        ]

        hints: list[NearMissHint] = []
        for index, (member, reading) in enumerate(live):
            department_key = normalize_duplicate_field(member.department)
            if not department_key or not reading:
                continue
            for other, other_reading in live[index + 1 :] + cached:
                if normalize_duplicate_field(other.department) != department_key:
                    continue
                if duplicate_key(member.name, member.department) == duplicate_key(
                    other.name, other.department
                ):
                    continue
                score = fuzz.ratio(
                    reading, other_reading, processor=utils.default_process
                )
                if score >= threshold * 100 and score < 100:
                    hints.append(
                        NearMissHint(left=member, right=other, similarity=score / 100)
                    )

        hints.sort(key=lambda hint: hint.similarity, reverse=True)
        return hints


def _live_member(record: ParticipantRecord, session_id: str) -> MatchedRecord:
    return MatchedRecord(
        record_id=record.record_id,
        row_key=record.row_key,
        name=record.name,
        department=record.department,
        session_id=session_id,
        is_current=True,
    )


def describe_match(
    other: MatchedRecord,
    current_session_id: str,
    session_labels: Mapping[str, str] | None = None,
) -> str:
    """Render a duplicate member for operator-facing messages.

    Members of the active session get a "same session" qualifier;
    members elsewhere are qualified with their session label.

    Examples:
        >>> member = MatchedRecord(
        ...     record_id="ev-s1_004", row_key="r", name="田中", session_id="s1"
        ... )
        >>> describe_match(member, "s1")
        '田中（同日程・ID:004）'
    """
    name = other.name.strip()
    display_id = format_record_id_display(other.record_id)
    id_label = f"ID:{display_id or other.record_id}" if other.record_id else "ID未登録"
    session_id = other.session_id.strip()
    if session_id == current_session_id:
        return f"{name or '同日程'}（同日程・{id_label}）"

    session_label = (session_labels or {}).get(session_id, "") or (
        f"日程ID:{session_id}" if session_id else ""
    )
    if name and session_label:
        return f"{name}（{session_label}・{id_label}）"
    if session_label:
        return f"{session_label}（{id_label}）"
    if name:
        return f"{name}（{id_label}）"
    return id_label


def summarize(
    report: DuplicateReport,
    roster_size: int,
    current_session_id: str,
    session_labels: Mapping[str, str] | None = None,
    limit: int = SUMMARY_PREVIEW_LIMIT,
) -> str:
    """Build the roster summary line shown above the participant list.

    Args:
        report: Latest duplicate report
        roster_size: Number of rows in the live roster
        current_session_id: Active session ID
        session_labels: Session ID -> display label
        limit: Number of groups spelled out before "他N件"

    Returns:
        Summary text
    """
    if roster_size:
        text = f"登録済みの参加者: {roster_size}名"
    else:
        text = "参加者リストはまだ登録されていません。"

    entries: list[str] = []
    for group in report.groups:
        detail = " / ".join(
            filter(
                None,
                (
                    describe_match(r, current_session_id, session_labels)
                    for r in group.records
                ),
            )
        )
        if detail:
            entries.append(f"{detail}（{group.total_count}件）")
    if not entries:
        return text

    preview = " / ".join(entries[:limit])
    remainder = f" / 他{len(entries) - limit}件" if len(entries) > limit else ""
    return f"{text} / 重複候補 {len(entries)}件 ({preview}{remainder})"
