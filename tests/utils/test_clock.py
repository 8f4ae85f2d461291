from datetime import datetime, timezone

from messenger_crm.utils.clock import as_utc, from_epoch_millis, hours_between, parse_graph_time


def test_parse_graph_time_formats():
    expected = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)

    assert parse_graph_time("2024-05-01T10:00:00+0000") == expected
    assert parse_graph_time("2024-05-01T13:00:00+0300") == expected
    assert parse_graph_time("2024-05-01T10:00:00Z") == expected
    assert parse_graph_time("not a date") is None
    assert parse_graph_time(None) is None


def test_naive_datetimes_are_read_as_utc():
    assert as_utc(datetime(2024, 5, 1, 10, 0)) == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


def test_epoch_millis():
    assert from_epoch_millis(1714557600000) == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert from_epoch_millis("1714557600000") is None


def test_hours_between():
    start = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)

    assert hours_between(start, datetime(2024, 5, 2, 4, 0, tzinfo=timezone.utc)) == 18.0
