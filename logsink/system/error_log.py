"""Canal de diagnóstico bufferizado do transporte.

Componentes reportam problemas não fatais via ``ErrorLogger.log``; as linhas
ficam em memória e são descarregadas em lote no arquivo de erros (modo
append) ou no stderr. Este canal nunca levanta exceções.
"""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

from ..config.settings import DEFAULT_OPTIONS, ERROR_BUFFER_SIZE
from .log_helpers import write_text
from .maintenance import PeriodicTask
from .time_helpers import format_iso

logger = logging.getLogger(__name__)


def _describe(error) -> str:
    if isinstance(error, BaseException):
        text = str(error)
        return f"{type(error).__name__}: {text}" if text else type(error).__name__
    return str(error)


class ErrorLogger:
    """Buffer de linhas de diagnóstico com flush por capacidade e por intervalo.

    - ``log`` acrescenta ``<ISO> - mensagem[: causa]\\n`` e faz flush ao atingir
      `buffer_size` linhas.
    - uma tarefa periódica faz flush a cada `flush_interval_ms`.
    - ``destroy`` faz o flush final e cancela a tarefa; depois disso cada
      ``log`` é escrito imediatamente.
    """

    def __init__(
        self,
        error_log_file: Path | str | None = None,
        buffer_size: int = ERROR_BUFFER_SIZE,
        flush_interval_ms: int = DEFAULT_OPTIONS["error_flush_interval_ms"],
        stream=None,
    ):
        self.error_log_file = Path(error_log_file) if error_log_file else None
        self.buffer_size = buffer_size
        self.flush_interval_ms = flush_interval_ms
        self._stream = stream
        self._buffer: list[str] = []
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._destroyed = False
        self._task = PeriodicTask(flush_interval_ms / 1000.0, self.flush, name="logsink-error-flush").start()

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._buffer)

    def log(self, message: str, error=None) -> None:
        cause = f": {_describe(error)}" if error is not None else ""
        line = f"{format_iso()} - {message}{cause}\n"
        with self._lock:
            self._buffer.append(line)
            should_flush = self._destroyed or len(self._buffer) >= self.buffer_size
        if should_flush:
            self.flush()

    def flush(self) -> None:
        # _write_lock mantém a ordem entre payloads de flushes concorrentes
        with self._write_lock:
            with self._lock:
                if not self._buffer:
                    return
                payload = "".join(self._buffer)
                self._buffer = []
            self._write(payload)

    def _write(self, payload: str) -> None:
        if self.error_log_file is not None:
            write_text(self.error_log_file, payload)
            return
        stream = self._stream if self._stream is not None else sys.stderr
        try:
            stream.write(payload)
            stream.flush()
        except (OSError, ValueError) as exc:
            logger.debug("ErrorLogger: falha ao escrever no console: %s", exc)

    def destroy(self) -> None:
        with self._lock:
            if self._destroyed:
                return
            self._destroyed = True
        self._task.cancel()
        self.flush()
