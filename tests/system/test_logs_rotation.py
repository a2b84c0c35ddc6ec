from functools import partial

import pytest

from logsink.system import logs as logs_mod
from logsink.system.filenames import MAX_FILENAME_LENGTH, generate_filename


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now


def _stream(tmp_path, clock, **kw):
    namer = partial(generate_filename, directory=tmp_path, filename="app", timestamp_format="iso")
    return logs_mod.RotatingFileStream(namer, clock=clock, **kw)


def test_immutable_opens_timestamped_file(tmp_path):
    """No modo imutável o arquivo já nasce com o nome final."""
    clock = FakeClock()
    s = _stream(tmp_path, clock, size=1024)
    try:
        assert s.current_path == generate_filename(clock.now, tmp_path, "app")
        assert s.current_path.exists()
    finally:
        s.end()


def test_size_rotation_after_threshold_write(tmp_path):
    """A escrita que atinge o limite fica no arquivo antigo; a próxima vai para um novo."""
    clock = FakeClock()
    rotated = []
    s = _stream(tmp_path, clock, size=10)
    s.on_rotated(rotated.append)
    first = s.current_path
    s.write("12345")
    assert rotated == []
    s.write("678901")
    assert rotated == [first]
    assert first.read_text() == "12345678901"
    assert s.current_path != first
    s.write("z")
    s.end()
    assert s.current_path.read_text() == "z"
    assert s.rotations == 1


def test_same_second_rotation_gets_unique_name(tmp_path):
    clock = FakeClock()
    s = _stream(tmp_path, clock, size=1)
    first = s.current_path
    s.write("a")
    second = s.current_path
    s.end()
    assert second != first
    assert second.name == first.name[: -len(".log")] + "-1.log"


def test_unique_name_skips_compressed_sibling(tmp_path):
    clock = FakeClock()
    taken = generate_filename(clock.now, tmp_path, "app")
    taken.with_name(taken.name + ".gz").write_bytes(b"")
    s = _stream(tmp_path, clock, size=100)
    try:
        assert s.current_path.name.endswith("-1.log")
    finally:
        s.end()


def test_interval_rotation_checked_before_write(tmp_path):
    clock = FakeClock()
    rotated = []
    s = _stream(tmp_path, clock, interval=60)
    s.on_rotated(rotated.append)
    first = s.current_path
    s.write("antes\n")
    clock.now += 61
    s.write("depois\n")
    s.end()
    assert rotated == [first]
    assert first.read_text() == "antes\n"
    assert s.current_path.read_text() == "depois\n"


def test_empty_file_is_never_rotated(tmp_path):
    clock = FakeClock()
    rotated = []
    s = _stream(tmp_path, clock, interval=60)
    s.on_rotated(rotated.append)
    clock.now += 120
    assert s.rotate() is None
    s.write("x")
    s.end()
    assert rotated == []


def test_mutable_mode_moves_live_file(tmp_path):
    """No modo mutável a escrita vai para app.log, renomeado na rotação."""
    clock = FakeClock()
    rotated = []
    s = _stream(tmp_path, clock, size=4, immutable=False)
    s.on_rotated(rotated.append)
    live = tmp_path / "app.log"
    assert s.current_path == live
    s.write("abcd")
    s.end()
    expected = generate_filename(clock.now, tmp_path, "app")
    assert rotated == [expected]
    assert expected.read_text() == "abcd"
    assert live.exists() and live.read_text() == ""


def test_mutable_mode_move_failure_keeps_live_file(tmp_path, monkeypatch):
    clock = FakeClock()
    rotated = []
    monkeypatch.setattr(logs_mod, "atomic_move", lambda s, d: False)
    s = _stream(tmp_path, clock, size=2, immutable=False)
    s.on_rotated(rotated.append)
    s.write("ab")
    s.write("cd")
    s.end()
    assert rotated == []
    assert (tmp_path / "app.log").read_text() == "abcd"


def test_listener_failure_does_not_break_writes(tmp_path):
    clock = FakeClock()

    def bad(_):
        raise RuntimeError("ouvinte quebrado")

    s = _stream(tmp_path, clock, size=1)
    s.on_rotated(bad)
    s.write("a")
    s.write("b")
    s.end()
    assert s.rotations == 2


def test_write_after_end_raises(tmp_path):
    s = _stream(tmp_path, FakeClock())
    s.end()
    s.end()
    assert s.closed
    try:
        s.write("x")
    except ValueError:
        pass
    else:
        raise AssertionError("write após end deveria falhar")


def test_bytes_written_tracks_current_file(tmp_path):
    clock = FakeClock()
    s = _stream(tmp_path, clock, size=10)
    s.write("12345")
    assert s.bytes_written == 5
    s.write("67890")
    assert s.bytes_written == 0
    s.write("ab")
    s.end()
    assert s.bytes_written == 2


def test_failed_reopen_is_retried_on_next_write(tmp_path, monkeypatch):
    """Se o próximo arquivo não abre, o rotacionado ainda é notificado e a escrita seguinte reabre."""
    clock = FakeClock()
    rotated = []
    s = _stream(tmp_path, clock, size=10)
    s.on_rotated(rotated.append)
    first = s.current_path
    real_open = s._open
    failures = [OSError("sem descritores")]

    def flaky(now):
        if failures:
            raise failures.pop()
        real_open(now)

    monkeypatch.setattr(s, "_open", flaky)
    s.write("x" * 10)
    assert rotated == [first]
    assert first.read_text() == "x" * 10

    clock.now += 1
    s.write("depois\n")
    assert s.current_path != first
    s.end()
    assert s.current_path.read_text() == "depois\n"


def test_persistent_reopen_failure_reaches_caller_and_end_still_works(tmp_path, monkeypatch):
    clock = FakeClock()
    s = _stream(tmp_path, clock, size=4)

    def broken(now):
        raise OSError("disco indisponível")

    monkeypatch.setattr(s, "_open", broken)
    s.write("abcd")
    with pytest.raises(OSError):
        s.write("perdida")
    s.end()
    assert s.closed


def test_check_interval_rotates_idle_file(tmp_path):
    """Um arquivo com dados rotaciona quando o intervalo vence, sem nova escrita."""
    clock = FakeClock()
    rotated = []
    s = _stream(tmp_path, clock, interval=60)
    s.on_rotated(rotated.append)
    first = s.current_path
    s.write("ocioso\n")
    assert s.check_interval() is None
    clock.now += 61
    assert s.check_interval() == first
    assert rotated == [first]
    assert s.current_path != first
    assert s.check_interval() is None
    s.end()
    assert s.check_interval() is None


def test_check_interval_skips_empty_file(tmp_path):
    clock = FakeClock()
    s = _stream(tmp_path, clock, interval=60)
    clock.now += 120
    assert s.check_interval() is None
    assert s.rotations == 0
    s.end()


def test_check_interval_without_interval_is_noop(tmp_path):
    clock = FakeClock()
    s = _stream(tmp_path, clock, size=100)
    s.write("x")
    clock.now += 10**6
    assert s.check_interval() is None
    s.end()


def test_unique_name_respects_length_limit(tmp_path):
    """Colisões no mesmo segundo não fazem o nome passar de MAX_FILENAME_LENGTH."""
    clock = FakeClock()
    namer = partial(generate_filename, directory=tmp_path, filename="a" * 181, timestamp_format="iso")
    s = logs_mod.RotatingFileStream(namer, size=1, clock=clock)
    first = s.current_path
    assert len(first.name) <= MAX_FILENAME_LENGTH
    s.write("a")
    second = s.current_path
    s.end()
    assert second != first
    assert len(second.name) <= MAX_FILENAME_LENGTH
    assert second.name.endswith("-1.log")
