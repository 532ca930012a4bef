"""Tests for the calendar overlap layout engine."""

from datetime import date

from app.scheduling import Booking, layout_day

DAY = date(2030, 5, 6)


def _booking(id, time, duration, doctor="Dr. Smith"):
    return Booking(id=id, doctor=doctor, date=DAY, time=time, duration=duration)


def _by_id(placements):
    return {p.appointment_id: p for p in placements}


def test_overlapping_pair_and_separate_follower():
    """A and B share a cluster of two columns; C stands alone."""
    bookings = [
        _booking("A", "09:00", 60),
        _booking("B", "09:30", 30, doctor="Dr. Jones"),
        _booking("C", "10:00", 30),
    ]
    placements = _by_id(layout_day(bookings))

    assert placements["A"].column != placements["B"].column
    assert placements["A"].sibling_count == 2
    assert placements["B"].sibling_count == 2
    assert placements["C"].sibling_count == 1
    assert placements["C"].column == 0
    assert placements["C"].width_percent == 100


def test_longer_block_placed_first_on_ties():
    """With equal starts the longer appointment takes the leftmost column."""
    placements = _by_id(layout_day([_booking("short", "09:00", 30), _booking("long", "09:00", 90)]))
    assert placements["long"].column == 0
    assert placements["short"].column == 1


def test_same_column_never_overlaps():
    """No two appointments sharing a column overlap in time."""
    bookings = [
        _booking("a", "08:00", 120),
        _booking("b", "08:30", 30),
        _booking("c", "09:00", 60),
        _booking("d", "09:00", 30),
        _booking("e", "09:30", 90),
        _booking("f", "11:00", 30),
        _booking("g", "11:00", 60),
    ]
    placements = layout_day(bookings)
    intervals = {b.id: b.interval for b in bookings}

    assert len(placements) == len(bookings)
    assert {p.appointment_id for p in placements} == {b.id for b in bookings}

    for first in placements:
        for second in placements:
            if first is second or first.column != second.column:
                continue
            assert not intervals[first.appointment_id].overlaps(intervals[second.appointment_id])


def test_sibling_count_shared_across_transitive_cluster():
    """A chain of overlaps forms one cluster with one shared width."""
    bookings = [
        _booking("a", "09:00", 60),
        _booking("b", "09:30", 60),
        _booking("c", "10:15", 30),
    ]
    placements = layout_day(bookings)
    assert {p.sibling_count for p in placements} == {2}


def test_offsets_follow_columns():
    """Left offset is the column's share of the cluster width."""
    placements = _by_id(
        layout_day([_booking("a", "09:00", 30), _booking("b", "09:00", 30), _booking("c", "09:00", 30)])
    )
    assert sorted(p.left_percent for p in placements.values()) == [0, 100 / 3, 200 / 3]
    assert all(p.width_percent == 100 / 3 for p in placements.values())


def test_empty_day():
    """No appointments, no placements."""
    assert layout_day([]) == []
