"""Helpers de manutenção (tarefas periódicas e remoção por retenção).

Centraliza as rotinas que rodam fora do caminho de escrita: o agendador
``PeriodicTask`` (usado pelo flush do canal de diagnóstico, pela varredura de
retenção e pela limpeza do ledger de compressão) e a varredura de retenção.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path
from typing import Callable

from ..config.settings import RETENTION_SWEEP_INTERVAL

logger = logging.getLogger(__name__)

DAY_SECS = 24 * 60 * 60
MANAGED_SUFFIXES = (".log", ".log.gz")


class PeriodicTask:
    """Executa `func` a cada `interval` segundos em uma thread daemon.

    A espera usa ``threading.Event.wait`` para que ``cancel()`` interrompa o
    agendamento imediatamente. Exceções de `func` são registradas e não
    encerram a thread.
    """

    def __init__(self, interval: float, func: Callable[[], object], name: str = "logsink-periodic"):
        self.interval = float(interval)
        self.func = func
        self.name = name
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "PeriodicTask":
        if self._thread is None:
            self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
            self._thread.start()
        return self

    def cancel(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.func()
            except OSError as exc:
                logger.warning("%s: falha na tarefa periódica: %s", self.name, exc)
            except Exception as exc:
                logger.debug("%s: erro inesperado: %s", self.name, exc, exc_info=True)


# ========================
# Retenção
# ========================


def is_managed_log(name: str, filename: str) -> bool:
    """True para `<filename>*.log` e `<filename>*.log.gz`."""
    return name.startswith(filename) and name.endswith(MANAGED_SUFFIXES)


def sweep_old_files(
    directory: Path | str,
    filename: str,
    retention_days: int,
    error_logger,
    now: float | None = None,
    skip: Callable[[], Path | None] | None = None,
) -> list[Path]:
    """Remove arquivos gerenciados cuja mtime é anterior a ``now - retention_days``.

    Falhas de listagem, stat ou remoção são reportadas via `error_logger` e não
    interrompem a varredura dos demais arquivos. Um arquivo que some entre a
    listagem e o stat/remoção (corrida com a compressão) é ignorado.
    `skip` devolve o arquivo atualmente aberto pelo motor de rotação, que
    nunca é removido. Retorna a lista de arquivos removidos.
    """
    directory = Path(directory)
    try:
        entries = sorted(os.listdir(directory))
    except OSError as exc:
        error_logger.log(f"Erro durante a limpeza de logs em {directory}", exc)
        return []

    if now is None:
        now = time.time()
    cutoff = now - retention_days * DAY_SECS
    active = skip() if skip is not None else None
    removed: list[Path] = []

    for name in entries:
        if not is_managed_log(name, filename):
            continue
        path = directory / name
        if active is not None and path == Path(active):
            continue
        try:
            if path.stat().st_mtime >= cutoff:
                continue
            path.unlink()
        except FileNotFoundError:
            logger.debug("sweep_old_files: %s já removido", path)
            continue
        except OSError as exc:
            error_logger.log(f"Erro ao remover arquivo de log antigo {path}", exc)
            continue
        removed.append(path)
        error_logger.log(f"Arquivo de log antigo removido: {path}")
    return removed


class RetentionSweeper:
    """Varredura de retenção: uma execução imediata e depois a cada 24h.

    Com ``retention_days == 0`` a retenção fica desabilitada: ``start()`` não
    toca em nenhum arquivo e nenhum timer é criado.
    """

    def __init__(
        self,
        directory: Path | str,
        filename: str,
        retention_days: int,
        error_logger,
        interval: float = RETENTION_SWEEP_INTERVAL,
        skip: Callable[[], Path | None] | None = None,
    ):
        self.directory = Path(directory)
        self.filename = filename
        self.retention_days = int(retention_days)
        self.error_logger = error_logger
        self.interval = interval
        self.skip = skip
        self._task: PeriodicTask | None = None

    @property
    def enabled(self) -> bool:
        return self.retention_days > 0

    @property
    def running(self) -> bool:
        return self._task is not None and self._task.running

    def sweep(self) -> list[Path]:
        return sweep_old_files(self.directory, self.filename, self.retention_days, self.error_logger, skip=self.skip)

    def start(self) -> bool:
        if not self.enabled:
            return False
        self.sweep()
        self._task = PeriodicTask(self.interval, self.sweep, name="logsink-retention").start()
        return True

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
