"""Tests for roster display ordering."""

from src.session import sort_roster


def test_cancelled_records_go_last(make_record) -> None:
    records = [
        make_record(record_id="c", group_label="キャンセル"),
        make_record(record_id="a", group_label="2"),
        make_record(record_id="b", group_label="別日"),
    ]
    assert [r.record_id for r in sort_roster(records)] == ["a", "b", "c"]


def test_group_labels_sort_numerically(make_record) -> None:
    """Numeric labels by value, then text labels, then blanks."""
    labels = ["", "10", "B", "2", "1.5"]
    records = [make_record(record_id=label or "blank", group_label=label) for label in labels]

    ordered = [r.group_label for r in sort_roster(records)]

    assert ordered == ["1.5", "2", "10", "B", ""]


def test_ties_broken_by_department_and_reading(make_record) -> None:
    records = [
        make_record(record_id="p3", department="文学部", phonetic_name="ア"),
        make_record(record_id="p2", department="工学部", phonetic_name="イ"),
        make_record(record_id="p1", department="工学部", phonetic_name="ア"),
        make_record(record_id="p4", department="", phonetic_name="ア"),
    ]
    assert [r.record_id for r in sort_roster(records)] == ["p1", "p2", "p3", "p4"]
