import pytest

from logsink.system import log_helpers as lh


def test_write_text_appends_and_creates_parent(tmp_path):
    """write_text cria o diretório pai e acrescenta ao final."""
    p = tmp_path / "a" / "b" / "errors.log"
    lh.write_text(p, "um\n")
    lh.write_text(p, "dois\n")
    assert p.read_text(encoding="utf-8") == "um\ndois\n"


def test_write_text_survives_lock_failure(tmp_path, monkeypatch):
    def fail_lock(*a, **k):
        raise lh.portalocker.LockException("ocupado")

    monkeypatch.setattr(lh.portalocker, "lock", fail_lock)
    p = tmp_path / "x.log"
    lh.write_text(p, "ok\n")
    assert p.read_text(encoding="utf-8") == "ok\n"


def test_write_text_never_raises_on_unwritable_path(tmp_path):
    blocker = tmp_path / "arquivo"
    blocker.write_text("x", encoding="utf-8")
    # pai é um arquivo regular: mkdir falha com OSError
    lh.write_text(blocker / "sub" / "x.log", "perdido\n")


@pytest.mark.parametrize(
    "raw,expected",
    [("app", "app"), ("../etc/passwd", "passwd"), ("my app", "my_app"), ("", "app"), (".hidden", "hidden")],
)
def test_sanitize_log_name(raw, expected):
    assert lh.sanitize_log_name(raw) == expected


def test_build_human_line_single_line(monkeypatch):
    monkeypatch.delenv("LOGSINK_HUMAN_MULTILINE", raising=False)
    line = lh.build_human_line("2024-01-01T00:00:00.000Z", "INFO", "olá", {"req": 1})
    assert line == "2024-01-01T00:00:00.000Z [INFO] req=1 olá\n"


def test_build_human_line_multiline_message(monkeypatch):
    monkeypatch.delenv("LOGSINK_HUMAN_MULTILINE", raising=False)
    line = lh.build_human_line("T", "ERROR", "trace\n  at x\n", None)
    assert line == "T [ERROR]\ntrace\n  at x\n\n"


def test_build_json_entry_prefixes_colliding_extras():
    entry = lh.build_json_entry("T", "INFO", "m", {"level": "x", "name": "svc"})
    assert entry == {"ts": "T", "level": "INFO", "msg": "m", "extra_level": "x", "name": "svc"}


def test_atomic_move_renames(tmp_path):
    src = tmp_path / "a.log"
    dst = tmp_path / "b.log"
    src.write_text("x", encoding="utf-8")
    assert lh.atomic_move(src, dst) is True
    assert not src.exists() and dst.read_text(encoding="utf-8") == "x"


def test_atomic_move_gives_up(tmp_path, monkeypatch):
    monkeypatch.setattr(lh, "_attempt_rename", lambda s, d: False)
    monkeypatch.setattr(lh, "_attempt_replace", lambda s, d: False)
    monkeypatch.setattr(lh, "_copy_replace_fallback", lambda s, d: False)
    monkeypatch.setattr(lh.time, "sleep", lambda s: None)
    assert lh.atomic_move(tmp_path / "a", tmp_path / "b", attempts=3) is False


def test_compress_file_failure_removes_tmp(tmp_path):
    dst = tmp_path / "nada.log.gz"
    with pytest.raises(FileNotFoundError):
        lh.compress_file(tmp_path / "nada.log", dst)
    assert not dst.exists()
    assert not dst.with_name(dst.name + ".tmp").exists()


def test_ensure_dir_writable(tmp_path):
    d = tmp_path / "novo" / "dir"
    assert lh.ensure_dir_writable(d) is True
    assert d.is_dir()
    assert list(d.iterdir()) == []


def test_ensure_dir_writable_on_file(tmp_path):
    f = tmp_path / "arquivo"
    f.write_text("x", encoding="utf-8")
    assert lh.ensure_dir_writable(f) is False
