"""Subsistema de logs: escrita sequencial e rotação por tamanho/intervalo.

``RotatingFileStream`` é o motor de rotação do transporte. Ele recebe uma
estratégia de nomes (normalmente ``generate_filename`` parcialmente
aplicada), decide quando fechar o arquivo corrente e notifica os ouvintes
com o caminho do arquivo recém-rotacionado.
"""

import logging
import os
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from .filenames import LOG_SUFFIX, MAX_FILENAME_LENGTH
from .log_helpers import atomic_move

logger = logging.getLogger(__name__)

Namer = Callable[[datetime | None], Path]
RotatedListener = Callable[[Path], object]


class RotatingFileStream:
    """Arquivo de log com rotação por tamanho e/ou intervalo.

    Modo imutável: cada arquivo é aberto já com o nome final
    ``namer(instante_de_abertura)`` e nunca é renomeado.
    Modo mutável: a escrita vai para o arquivo vivo ``namer(None)``; na
    rotação ele é movido para ``namer(instante_de_abertura)``.

    A rotação por tamanho acontece depois da escrita que atinge `size` bytes;
    a por intervalo é verificada antes de cada escrita. Arquivos vazios nunca
    são rotacionados.
    """

    def __init__(
        self,
        namer: Namer,
        size: int | None = None,
        interval: float | None = None,
        immutable: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.namer = namer
        self.size = size
        self.interval = interval
        self.immutable = immutable
        self._clock = clock
        self._listeners: list[RotatedListener] = []
        self._lock = threading.RLock()
        self._fh = None
        self._path: Path | None = None
        self._bytes = 0
        self._opened_at = 0.0
        self._closed = False
        self.rotations = 0
        self._open(self._clock())

    # ========================
    # Ouvintes
    # ========================

    def on_rotated(self, listener: RotatedListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: RotatedListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            logger.debug("remove_listener: ouvinte não registrado")

    def _emit_rotated(self, path: Path) -> None:
        for listener in list(self._listeners):
            try:
                listener(path)
            except Exception as exc:
                logger.error("rotated: ouvinte falhou para %s: %s", path, exc, exc_info=True)

    # ========================
    # Estado
    # ========================

    @property
    def current_path(self) -> Path | None:
        return self._path

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def bytes_written(self) -> int:
        return self._bytes

    # ========================
    # Abertura / nomes
    # ========================

    def _instant(self, ts: float) -> datetime:
        return datetime.fromtimestamp(ts, tz=timezone.utc)

    def _unique(self, path: Path) -> Path:
        """Evita colisões com arquivos existentes ou já comprimidos (`.gz`)."""

        def taken(p: Path) -> bool:
            return p.exists() or p.with_name(p.name + ".gz").exists()

        if not taken(path):
            return path
        name = path.name
        base, ext = (name[: -len(LOG_SUFFIX)], LOG_SUFFIX) if name.endswith(LOG_SUFFIX) else (name, "")
        n = 1
        while True:
            suffix = f"-{n}{ext}"
            # o sufixo não pode levar o nome além do limite do gerador
            candidate = path.with_name(base[: MAX_FILENAME_LENGTH - len(suffix)] + suffix)
            if not taken(candidate):
                return candidate
            n += 1

    def _open(self, now: float) -> None:
        if self.immutable:
            path = self._unique(self.namer(self._instant(now)))
        else:
            path = self.namer(None)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = open(path, "ab")
        self._path = path
        self._bytes = self._fh.tell()
        self._opened_at = now

    # ========================
    # Escrita / rotação
    # ========================

    def write(self, data) -> int:
        """Escreve `data` (str ou bytes) no arquivo corrente, rotacionando se preciso.

        Se a abertura do próximo arquivo falhou numa rotação anterior, ela é
        tentada de novo aqui; um ``OSError`` persistente chega ao chamador.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        with self._lock:
            if self._closed:
                raise ValueError("write após end() do stream de rotação")
            now = self._clock()
            if self._fh is None:
                self._open(now)
            if self.interval and now - self._opened_at >= self.interval:
                self._rotate(now)
                if self._fh is None:
                    self._open(now)
            self._fh.write(data)
            self._fh.flush()
            self._bytes += len(data)
            if self.size and self._bytes >= self.size:
                self._rotate(now)
        return len(data)

    def rotate(self) -> Path | None:
        """Força a rotação do arquivo corrente; retorna o caminho rotacionado."""
        with self._lock:
            if self._closed:
                return None
            return self._rotate(self._clock())

    def check_interval(self) -> Path | None:
        """Rotaciona o arquivo corrente se o intervalo expirou, mesmo sem escritas."""
        with self._lock:
            if self._closed or self._fh is None or not self.interval:
                return None
            now = self._clock()
            if now - self._opened_at < self.interval:
                return None
            return self._rotate(now)

    # Auxilia _rotate; falha ao abrir fica registrada e a próxima escrita tenta de novo
    def _reopen(self, now: float) -> None:
        try:
            self._open(now)
        except OSError as exc:
            logger.error("_rotate: falha ao abrir novo arquivo de log: %s", exc, exc_info=True)

    def _rotate(self, now: float) -> Path | None:
        if self._fh is None:
            return None
        if self._bytes == 0:
            # nada a rotacionar; só reinicia o período
            self._opened_at = now
            return None
        fh, self._fh = self._fh, None
        try:
            fh.close()
        except OSError as exc:
            logger.error("_rotate: falha ao fechar %s: %s", self._path, exc, exc_info=True)
        live = self._path
        rotated = live
        if not self.immutable:
            rotated = self._unique(self.namer(self._instant(self._opened_at)))
            if not atomic_move(live, rotated):
                # mantém o arquivo vivo; a próxima rotação tenta novamente
                logger.error("_rotate: falha ao mover %s para %s", live, rotated)
                self._reopen(self._opened_at)
                return None
        self.rotations += 1
        self._emit_rotated(rotated)
        self._reopen(now)
        return rotated

    def end(self) -> None:
        """Descarrega e fecha o arquivo corrente; escritas posteriores falham."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            fh, self._fh = self._fh, None
            if fh is None:
                return
            try:
                fh.flush()
                os.fsync(fh.fileno())
            finally:
                fh.close()
