"""Compressão assíncrona dos arquivos rotacionados.

Cada notificação de rotação vira um ``RotationEvent`` numa fila consumida por
threads dedicadas; o escritor de logs nunca espera pela compressão.
Notificações repetidas para o mesmo arquivo são colapsadas pelo
``CompressionLedger`` (cache com expiração de 24h) e pelo conjunto de
arquivos em processamento.
"""

from __future__ import annotations

import logging
import os
import queue
import stat
import threading
import time
import zlib
from dataclasses import dataclass, field
from pathlib import Path

from ..config.settings import (
    COMPRESSION_LEDGER_MAX_AGE,
    COMPRESSION_LEDGER_SWEEP_INTERVAL,
    CompressionOptions,
)
from ..errors import CompressionError
from .log_helpers import compress_file
from .maintenance import PeriodicTask

logger = logging.getLogger(__name__)

GZ_SUFFIX = ".gz"


@dataclass(frozen=True)
class RotationEvent:
    """Arquivo recém-fechado pelo motor de rotação."""

    path: Path
    rotated_at: float = field(default_factory=time.time)


class CompressionLedger:
    """Mapa caminho -> instante da compressão, usado só para deduplicação.

    Entradas com mais de `max_age` segundos são removidas por ``evict_expired``,
    chamado periodicamente pelo worker.
    """

    def __init__(self, max_age: float = COMPRESSION_LEDGER_MAX_AGE, clock=time.time):
        self.max_age = max_age
        self._clock = clock
        self._entries: dict[str, float] = {}
        self._lock = threading.Lock()

    def __contains__(self, path) -> bool:
        with self._lock:
            return str(path) in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def record(self, path, when: float | None = None) -> None:
        with self._lock:
            self._entries[str(path)] = self._clock() if when is None else when

    def evict_expired(self, now: float | None = None) -> int:
        """Remove entradas mais antigas que `max_age`; retorna quantas saíram."""
        now = self._clock() if now is None else now
        with self._lock:
            expired = [p for p, ts in self._entries.items() if now - ts >= self.max_age]
            for p in expired:
                del self._entries[p]
        if expired:
            logger.debug("CompressionLedger: %d entradas expiradas", len(expired))
        return len(expired)


def compress_rotated_file(src: Path | str, options: CompressionOptions, error_logger) -> Path | None:
    """Comprime `src` em `src.gz` e remove o original.

    Retorna o caminho `.gz` ou None quando não havia o que comprimir (arquivo
    inexistente ou diretório). Falhas são registradas em `error_logger` com o
    erro original e relançadas.
    """
    src = Path(src)
    dst = src.with_name(src.name + GZ_SUFFIX)
    try:
        try:
            st = os.stat(src)
        except FileNotFoundError:
            error_logger.log(f"Compressão ignorada, arquivo não existe: {src}")
            return None
        if stat.S_ISDIR(st.st_mode):
            error_logger.log(f"Compressão ignorada, origem é um diretório: {src}")
            return None

        try:
            compress_file(src, dst, level=options.level, strategy=options.strategy)
        except FileNotFoundError:
            # removido pela retenção entre o stat e a leitura
            error_logger.log(f"Compressão ignorada, arquivo não existe: {src}")
            return None

        if not dst.exists():
            raise CompressionError(f"Falha na compressão: destino {dst} não encontrado")

        src.unlink(missing_ok=True)
        return dst
    except (OSError, zlib.error, CompressionError) as exc:
        error_logger.log(f"Erro ao comprimir arquivo {src}", exc)
        raise


class CompressionWorker:
    """Consome eventos de rotação e comprime cada arquivo uma única vez.

    ``submit`` é o ouvinte registrado no motor de rotação: apenas enfileira,
    nunca bloqueia nem levanta. ``stop`` drena a fila antes de encerrar.
    """

    def __init__(
        self,
        options: CompressionOptions,
        error_logger,
        ledger: CompressionLedger | None = None,
        workers: int = 1,
        ledger_sweep_interval: float = COMPRESSION_LEDGER_SWEEP_INTERVAL,
    ):
        self.options = options
        self.error_logger = error_logger
        self.ledger = ledger if ledger is not None else CompressionLedger()
        self.workers = max(1, int(workers))
        self.ledger_sweep_interval = ledger_sweep_interval
        self._queue: queue.Queue[RotationEvent | None] = queue.Queue()
        self._pending: set[str] = set()
        self._lock = threading.Lock()
        self._threads: list[threading.Thread] = []
        self._ledger_task: PeriodicTask | None = None
        self._accepting = False

    def start(self) -> "CompressionWorker":
        with self._lock:
            if self._threads:
                return self
            self._accepting = True
            for i in range(self.workers):
                t = threading.Thread(target=self._run, name=f"logsink-compress-{i}", daemon=True)
                t.start()
                self._threads.append(t)
        self._ledger_task = PeriodicTask(
            self.ledger_sweep_interval, self.ledger.evict_expired, name="logsink-ledger-evict"
        ).start()
        return self

    def submit(self, path) -> bool:
        """Enfileira a compressão de `path`; False se duplicada ou worker parado."""
        key = str(path)
        with self._lock:
            if not self._accepting:
                logger.debug("CompressionWorker.submit: worker parado, ignorando %s", key)
                return False
            if key in self._pending or key in self.ledger:
                logger.debug("CompressionWorker.submit: notificação duplicada para %s", key)
                return False
            self._pending.add(key)
        self._queue.put(RotationEvent(Path(path)))
        return True

    def join(self) -> None:
        """Bloqueia até que todos os eventos enfileirados sejam processados."""
        self._queue.join()

    def stop(self, timeout: float | None = None) -> None:
        with self._lock:
            if not self._accepting:
                return
            self._accepting = False
            threads = list(self._threads)
        for _ in threads:
            self._queue.put(None)
        for t in threads:
            t.join(timeout)
        if self._ledger_task is not None:
            self._ledger_task.cancel()
            self._ledger_task = None

    def _run(self) -> None:
        while True:
            event = self._queue.get()
            try:
                if event is None:
                    return
                self._handle(event)
            finally:
                self._queue.task_done()

    def _handle(self, event: RotationEvent) -> None:
        key = str(event.path)
        try:
            compress_rotated_file(event.path, self.options, self.error_logger)
        except (OSError, zlib.error, CompressionError) as exc:
            self.error_logger.log(f"Erro ao comprimir arquivo rotacionado {key}", exc)
        except Exception as exc:
            logger.debug("CompressionWorker: erro inesperado em %s", key, exc_info=True)
            self.error_logger.log(f"Erro inesperado ao comprimir arquivo rotacionado {key}", exc)
        else:
            self.ledger.record(key)
            logger.debug("CompressionWorker: %s comprimido %.3fs após a rotação", key, time.time() - event.rotated_at)
        finally:
            with self._lock:
                self._pending.discard(key)
