import datetime

from logsink.system import time_helpers as th


def test_parse_epoch_numeric_and_millis():
    """Números grandes são tratados como milissegundos."""
    assert th.parse_epoch(1_700_000_000) == 1_700_000_000.0
    assert th.parse_epoch(1_700_000_000_000) == 1_700_000_000.0
    assert th.parse_epoch("1700000000") == 1_700_000_000.0
    assert th.parse_epoch(True) is None
    assert th.parse_epoch(None) is None


def test_parse_epoch_iso_strings():
    assert th.parse_epoch("2024-01-01T00:00:00Z") == 1_704_067_200.0
    assert th.parse_epoch("2024-01-01 00:00:00") == 1_704_067_200.0
    assert th.parse_epoch("ontem") is None


def test_parse_epoch_datetime():
    dt = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
    assert th.parse_epoch(dt) == 1_704_067_200.0


def test_extract_epoch_uses_first_known_key():
    assert th.extract_epoch({"msg": "x", "time": 1_704_067_200_000}) == 1_704_067_200.0
    assert th.extract_epoch({"@timestamp": "2024-01-01T00:00:00Z"}) == 1_704_067_200.0
    assert th.extract_epoch({"msg": "x"}) is None


def test_format_iso():
    assert th.format_iso(1_704_067_200.5) == "2024-01-01T00:00:00.500Z"
    assert th.format_iso().endswith("Z")
