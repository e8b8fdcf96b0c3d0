"""Parsing of imported participant and group-assignment rows.

Rows arrive as lists of string cells (CSV decoding happens upstream).
The first row is the header; columns are located by keyword so that
both Japanese and English templates are accepted.
"""

from collections.abc import Sequence

import structlog

from src.errors import ImportValidationError
from src.models.participant import ParticipantRecord, new_row_key
from src.normalize import normalize_group_label, normalize_key, normalize_text

logger = structlog.get_logger()

NAME_KEYWORDS = ("name", "氏名", "名前", "ラジオ", "radio")
PARTICIPANT_COLUMNS: dict[str, tuple[str, ...]] = {
    "uid": ("uid",),
    "record_id": ("id", "参加", "member"),
    "name": NAME_KEYWORDS,
    "phonetic_name": ("フリ", "ふり", "furigana", "yomi", "reading"),
    "gender": ("性別", "gender"),
    "department": ("学部", "department", "学科", "faculty"),
    "phone": ("電話", "tel", "phone"),
    "email": ("mail", "メール", "email"),
    "group_label": ("班", "group", "team"),
}
GROUP_KEYWORDS = PARTICIPANT_COLUMNS["group_label"]


def _header(row: Sequence[str]) -> list[str]:
    return [normalize_key(cell).lower() for cell in row]


def _find_column(header: list[str], keywords: Sequence[str]) -> int:
    """Index of the first header cell containing any keyword, else -1."""
    for keyword in keywords:
        for index, cell in enumerate(header):
            if keyword in cell:
                return index
    return -1


def _cell(row: Sequence[str], index: int) -> str:
    if index < 0 or index >= len(row):
        return ""
    return normalize_key(row[index])


def parse_participant_rows(rows: Sequence[Sequence[str]]) -> list[ParticipantRecord]:
    """Turn imported participant rows into records.

    Blank rows are skipped. A row with any data but no name rejects the
    whole import, since identity cannot be derived without a name.

    Args:
        rows: Header row followed by data rows

    Returns:
        Parsed records (without resolved IDs unless the file carried them)

    Raises:
        ImportValidationError: If the header is missing, a row lacks a
            name, or no usable rows remain
    """
    if not rows:
        raise ImportValidationError("CSVにデータがありません。")

    header = _header(rows[0])
    if _find_column(header, NAME_KEYWORDS) < 0:
        raise ImportValidationError(
            "ヘッダー行が見つかりません。テンプレートを利用してヘッダーを追加してください。"
        )
    columns = {
        field: _find_column(header, keywords)
        for field, keywords in PARTICIPANT_COLUMNS.items()
    }
    # "id" also matches the uid column; only treat it as a legacy ID column
    # when it is a different column
    if columns["record_id"] == columns["uid"]:
        columns["record_id"] = -1

    records: list[ParticipantRecord] = []
    for line_number, row in enumerate(rows[1:], start=2):
        values = {field: _cell(row, index) for field, index in columns.items()}
        if not any(values.values()):
            continue
        if not values["name"]:
            raise ImportValidationError(
                f"氏名のない行があります。CSVを確認してください。(行 {line_number})"
            )
        uid = values.pop("uid")
        record_id = uid or values.pop("record_id")
        values.pop("record_id", None)
        records.append(
            ParticipantRecord(
                record_id=record_id,
                row_key=new_row_key("import"),
                **values,
            )
        )

    if not records:
        raise ImportValidationError("有効な参加者データがありません。")

    logger.debug("participant rows parsed", count=len(records))
    return records


def parse_assignment_rows(rows: Sequence[Sequence[str]]) -> dict[str, str]:
    """Turn a group-assignment import into a record ID -> group label map.

    Prefers a `uid` column and falls back to a legacy ID column.

    Args:
        rows: Header row followed by data rows

    Returns:
        Mapping of record ID to normalized group label

    Raises:
        ImportValidationError: If the ID/group columns are missing or no
            row carries an ID
    """
    if not rows:
        raise ImportValidationError("CSVにデータがありません。")

    header = _header(rows[0])
    group_index = _find_column(header, GROUP_KEYWORDS)
    id_index = _find_column(header, ("uid",))
    if id_index < 0:
        id_index = _find_column(header, ("id", "参加", "member"))
    if id_index < 0 or group_index < 0:
        raise ImportValidationError(
            "ヘッダー行が見つかりません。"
            "テンプレート（学部学科,性別,名前,班番号,uid）を利用してください。"
        )

    assignments: dict[str, str] = {}
    for row in rows[1:]:
        record_id = normalize_text(row[id_index]) if id_index < len(row) else ""
        if not record_id:
            continue
        group = row[group_index] if group_index < len(row) else ""
        assignments[record_id] = normalize_group_label(group)

    if not assignments:
        raise ImportValidationError("有効なuidが含まれていません。")
    return assignments
