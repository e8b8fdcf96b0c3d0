"""IdentityResolver assigns durable record IDs to imported rows.

Resolution pipeline per row (in order):
1. Keep an ID the row already carries (first row only, when rows repeat it)
2. Reuse the ID of an existing roster record with the same identity key
3. Mint a new `<scope-prefix>_<sequence>` ID
"""

import re
from collections.abc import Iterable, Sequence

import structlog

from src.identity.schemas import ResolutionReport, ResolutionScope
from src.models.participant import ParticipantRecord
from src.normalize import normalize_key

logger = structlog.get_logger()


def identity_key(record: ParticipantRecord) -> str:
    """Fuzzy identity of a person: normalized name, reading and department."""
    return "::".join(
        [
            normalize_key(record.name),
            normalize_key(record.phonetic_name),
            normalize_key(record.department),
        ]
    )


class IdentityResolver:
    """Assigns stable, collision-free record IDs.

    Resolution is deterministic: the same rows, roster and scope always
    produce the same IDs. A used-ID set is tracked for the whole pass, so
    no two rows can end up sharing an ID.
    """

    def __init__(self, min_width: int = 3):
        """Initialize resolver.

        Args:
            min_width: Minimum zero-pad width of minted sequence numbers
        """
        self._min_width = min_width

    def resolve_identities(
        self,
        rows: Sequence[ParticipantRecord],
        existing_roster: Iterable[ParticipantRecord],
        scope: ResolutionScope,
    ) -> list[ParticipantRecord]:
        """Return copies of rows that all carry a record ID.

        Args:
            rows: Imported rows (some may lack a record ID)
            existing_roster: Records already known for this session
            scope: Event/session scope used to derive the ID prefix

        Returns:
            New records in input order, each with a record ID
        """
        resolved, _report = self.resolve_with_report(rows, existing_roster, scope)
        return resolved

    def resolve_with_report(
        self,
        rows: Sequence[ParticipantRecord],
        existing_roster: Iterable[ParticipantRecord],
        scope: ResolutionScope,
    ) -> tuple[list[ParticipantRecord], ResolutionReport]:
        """Resolve identities and report how each ID was obtained.

        Args:
            rows: Imported rows (some may lack a record ID)
            existing_roster: Records already known for this session
            scope: Event/session scope used to derive the ID prefix

        Returns:
            Tuple of (resolved records, ResolutionReport)
        """
        report = ResolutionReport()
        used_ids: set[str] = set()
        existing_by_key: dict[str, str] = {}

        for record in existing_roster:
            record_id = normalize_key(record.record_id)
            if not record_id:
                continue
            used_ids.add(record_id)
            existing_by_key.setdefault(identity_key(record), record_id)

        # IDs carried by the rows themselves are never handed to another row
        carried = {normalize_key(r.record_id) for r in rows if r.record_id}
        used_ids |= carried

        assigned: list[str] = []
        reused: set[str] = set()
        kept: set[str] = set()
        for row in rows:
            carried_id = normalize_key(row.record_id)
            if carried_id and carried_id not in kept:
                kept.add(carried_id)
                assigned.append(carried_id)
                report.kept_ids.append(carried_id)
                continue
            if carried_id:
                # Only the first row keeps a repeated ID
                logger.warning("duplicate record id in rows", record_id=carried_id)
            existing_id = existing_by_key.get(identity_key(row), "")
            if existing_id and existing_id not in reused | carried:
                reused.add(existing_id)
                assigned.append(existing_id)
                report.reused_ids.append(existing_id)
            else:
                assigned.append("")

        prefix = scope.prefix
        next_number, width = self._sequence_start(prefix, used_ids)
        for index, record_id in enumerate(assigned):
            if record_id:
                continue
            candidate = ""
            while not candidate or candidate in used_ids:
                candidate = f"{prefix}_{str(next_number).zfill(width)}"
                next_number += 1
            used_ids.add(candidate)
            assigned[index] = candidate
            report.minted_ids.append(candidate)

        resolved = [
            row if row.record_id == record_id else row.evolve(record_id=record_id)
            for row, record_id in zip(rows, assigned, strict=True)
        ]
        logger.debug(
            "identities resolved",
            prefix=prefix,
            kept=len(report.kept_ids),
            reused=len(report.reused_ids),
            minted=len(report.minted_ids),
        )
        return resolved, report

    def _sequence_start(self, prefix: str, used_ids: set[str]) -> tuple[int, int]:
        """Find the first free sequence number and pad width for a prefix.

        Args:
            prefix: ID prefix for the current scope
            used_ids: IDs that must not be reused

        Returns:
            Tuple of (next sequence number, zero-pad width)
        """
        pattern = re.compile(rf"^{re.escape(prefix)}_(\d+)$")
        highest = 0
        width = self._min_width
        for used in used_ids:
            match = pattern.match(used)
            if not match:
                continue
            digits = match.group(1)
            highest = max(highest, int(digits))
            width = max(width, len(digits))
        return highest + 1, width
