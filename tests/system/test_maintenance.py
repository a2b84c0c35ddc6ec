import io
import os
import threading
import time

from logsink.system import maintenance as mt
from logsink.system.error_log import ErrorLogger


def _old(path, days):
    ts = time.time() - days * mt.DAY_SECS
    os.utime(path, (ts, ts))


def _diag():
    out = io.StringIO()
    logger = ErrorLogger(stream=out)
    logger.output = out
    return logger


def test_sweep_removes_only_old_managed_files(tmp_path):
    """Somente `<filename>*.log` e `<filename>*.log.gz` antigos são removidos."""
    old_log = tmp_path / "app-20200101000000.log"
    old_gz = tmp_path / "app-20200102000000.log.gz"
    recent = tmp_path / "app-20991231000000.log"
    other = tmp_path / "other-20200101000000.log"
    unrelated = tmp_path / "app-notes.txt"
    for p in (old_log, old_gz, recent, other, unrelated):
        p.write_text("x", encoding="utf-8")
    for p in (old_log, old_gz, other, unrelated):
        _old(p, 10)

    diag = _diag()
    removed = mt.sweep_old_files(tmp_path, "app", 7, diag)
    diag.destroy()

    assert sorted(removed) == sorted([old_log, old_gz])
    assert recent.exists() and other.exists() and unrelated.exists()
    assert f"Arquivo de log antigo removido: {old_log}" in diag.output.getvalue()


def test_sweep_skips_active_file(tmp_path):
    active = tmp_path / "app.log"
    active.write_text("x", encoding="utf-8")
    _old(active, 30)
    diag = _diag()
    removed = mt.sweep_old_files(tmp_path, "app", 1, diag, skip=lambda: active)
    diag.destroy()
    assert removed == []
    assert active.exists()


def test_sweep_missing_directory_is_reported(tmp_path):
    diag = _diag()
    assert mt.sweep_old_files(tmp_path / "nao-existe", "app", 1, diag) == []
    diag.destroy()
    assert "Erro durante a limpeza de logs em" in diag.output.getvalue()


def test_sweep_ignores_vanished_files(tmp_path, monkeypatch):
    """Arquivo que some entre listagem e remoção não gera erro."""
    gone = tmp_path / "app-1.log"
    gone.write_text("x", encoding="utf-8")
    _old(gone, 10)
    real_listdir = os.listdir

    def listdir_then_delete(path):
        names = real_listdir(path)
        gone.unlink()
        return names

    monkeypatch.setattr(mt.os, "listdir", listdir_then_delete)
    diag = _diag()
    assert mt.sweep_old_files(tmp_path, "app", 1, diag) == []
    diag.destroy()
    assert "Erro" not in diag.output.getvalue()


def test_retention_disabled_touches_nothing(tmp_path):
    f = tmp_path / "app-1.log"
    f.write_text("x", encoding="utf-8")
    _old(f, 400)
    diag = _diag()
    sweeper = mt.RetentionSweeper(tmp_path, "app", 0, diag)
    assert sweeper.start() is False
    assert not sweeper.running
    diag.destroy()
    assert f.exists()


def test_retention_start_sweeps_immediately_and_schedules(tmp_path):
    f = tmp_path / "app-1.log"
    f.write_text("x", encoding="utf-8")
    _old(f, 10)
    diag = _diag()
    sweeper = mt.RetentionSweeper(tmp_path, "app", 1, diag, interval=3600)
    try:
        assert sweeper.start() is True
        assert not f.exists()
        assert sweeper.running
    finally:
        sweeper.stop()
        diag.destroy()
    assert not sweeper.running


def test_periodic_task_runs_and_cancels(wait_for):
    calls = []
    task = mt.PeriodicTask(0.01, lambda: calls.append(1), name="teste").start()
    assert wait_for(lambda: len(calls) >= 2)
    task.cancel()
    assert not task.running
    n = len(calls)
    time.sleep(0.05)
    assert len(calls) == n


def test_periodic_task_survives_exceptions(wait_for):
    calls = []

    def flaky():
        calls.append(1)
        raise RuntimeError("falha")

    task = mt.PeriodicTask(0.01, flaky).start()
    try:
        assert wait_for(lambda: len(calls) >= 2)
    finally:
        task.cancel()


def test_periodic_task_cancel_from_own_thread(wait_for):
    holder = {}
    done = threading.Event()

    def cancel_self():
        holder["task"].cancel()
        done.set()

    holder["task"] = mt.PeriodicTask(0.01, cancel_self)
    holder["task"].start()
    assert done.wait(5)
    assert wait_for(lambda: not holder["task"].running)
