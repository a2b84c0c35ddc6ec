from datetime import datetime, timezone
from pathlib import Path

import pytest

from logsink.errors import InvalidConfig
from logsink.system import filenames as fn

INSTANT = datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)


def test_generate_filename_without_instant_is_live_file(tmp_path):
    """Sem instante o nome é o do arquivo vivo."""
    assert fn.generate_filename(None, tmp_path, "app") == tmp_path / "app.log"


def test_generate_filename_iso():
    p = fn.generate_filename(INSTANT, "/logs", "app", "iso")
    assert p == Path("/logs") / "app-20240102030405.log"


def test_generate_filename_unix_and_epoch():
    assert fn.generate_filename(INSTANT, "/logs", "app", "unix").name == "app-1704164645678.log"
    # 5.678s arredonda para 6
    assert fn.generate_filename(INSTANT, "/logs", "app", "epoch").name == "app-1704164646.log"


def test_generate_filename_utc_has_no_separators():
    name = fn.generate_filename(INSTANT, "/logs", "app", "utc").name
    assert name == "app-Tue-02-Jan-2024-03-04-05-GMT.log"


def test_generate_filename_rfc2822_is_collapsed():
    name = fn.generate_filename(INSTANT, "/logs", "app", "rfc2822").name
    stamp = name[len("app-") : -len(".log")]
    assert stamp
    assert all(ch.isalnum() or ch == "-" for ch in stamp)
    assert not stamp.startswith("-") and not stamp.endswith("-")


def test_generate_filename_is_deterministic():
    a = fn.generate_filename(INSTANT, "/logs", "svc", "iso")
    b = fn.generate_filename(INSTANT, "/logs", "svc", "iso")
    assert a == b


def test_generate_filename_accepts_epoch_seconds():
    assert fn.generate_filename(INSTANT.timestamp(), "/logs", "app").name == "app-20240102030405.log"


def test_generate_filename_truncates_long_names():
    name = fn.generate_filename(INSTANT, "/logs", "x" * 300, "iso").name
    assert len(name) == fn.MAX_FILENAME_LENGTH
    assert name == ("x" * 300)[: fn.MAX_FILENAME_LENGTH]


def test_render_timestamp_rejects_unknown_format():
    with pytest.raises(InvalidConfig):
        fn.render_timestamp(INSTANT, "julian")
