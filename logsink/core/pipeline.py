"""Pipeline do transporte: composição e ciclo de vida.

Liga a transformação de formatação, o motor de rotação, o canal de
diagnóstico, o worker de compressão e a varredura de retenção em um único
destino de linhas. Problemas de I/O, formatação, compressão ou retenção
nunca chegam a quem escreve; apenas erros de configuração (na construção) e
falhas ao encerrar o motor (em ``close``) são visíveis ao chamador.
"""

import logging
import threading
from functools import partial
from typing import Iterable, Mapping

from ..config.settings import ROTATION_CHECK_INTERVAL, TransportConfig, build_config
from ..errors import FormattingError, InvalidConfig
from ..system.compression import CompressionWorker
from ..system.error_log import ErrorLogger
from ..system.filenames import generate_filename
from ..system.log_helpers import ensure_dir_writable
from ..system.logs import RotatingFileStream
from ..system.maintenance import PeriodicTask, RetentionSweeper
from .formatters import pretty_line

logger = logging.getLogger(__name__)

# ========================
# 0. Estados do pipeline
# ========================

STATE_DISABLED = "DISABLED"
STATE_ACTIVE = "ACTIVE"
STATE_CLOSING = "CLOSING"
STATE_CLOSED = "CLOSED"


class TransportPipeline:
    """Destino de linhas de log com rotação, compressão e retenção.

    Desabilitado (``enabled=False``): repassa cada linha sem alteração e não
    toca no filesystem. Ativo: cada linha passa pela formatação (identidade
    com ``skip_pretty``) e segue para o motor de rotação.
    """

    def __init__(self, config: TransportConfig, compression_workers: int = 1):
        self.config = config
        self.compression_workers = compression_workers
        self.error_logger: ErrorLogger | None = None
        self.stream: RotatingFileStream | None = None
        self.compressor: CompressionWorker | None = None
        self.sweeper: RetentionSweeper | None = None
        self.rotation_timer: PeriodicTask | None = None
        self._lock = threading.Lock()
        if not config.enabled:
            self.state = STATE_DISABLED
            return
        self.state = STATE_CLOSED
        self._start()

    # ========================
    # 1. Inicialização
    # ========================

    def _start(self) -> None:
        cfg = self.config
        if not ensure_dir_writable(cfg.dir):
            raise InvalidConfig("dir", f"diretório não gravável: {cfg.dir}")

        self.error_logger = ErrorLogger(cfg.error_log_file, flush_interval_ms=cfg.error_flush_interval_ms)
        try:
            self.stream = RotatingFileStream(
                partial(generate_filename, directory=cfg.dir, filename=cfg.filename, timestamp_format=cfg.timestamp_format),
                size=cfg.size_bytes,
                interval=cfg.interval_seconds,
                immutable=cfg.immutable,
            )
            if cfg.compress:
                self.compressor = CompressionWorker(
                    cfg.compression, self.error_logger, workers=self.compression_workers
                ).start()
                self.stream.on_rotated(self._on_rotated)
            # arquivos ociosos também rotacionam quando o intervalo expira
            self.rotation_timer = PeriodicTask(
                min(cfg.interval_seconds, ROTATION_CHECK_INTERVAL),
                self.stream.check_interval,
                name="logsink-rotation-check",
            ).start()
            if cfg.retention_enabled:
                self.sweeper = RetentionSweeper(
                    cfg.dir,
                    cfg.filename,
                    cfg.retention_days,
                    self.error_logger,
                    skip=lambda: self.stream.current_path if self.stream else None,
                )
                self.sweeper.start()
        except BaseException:
            self._teardown()
            raise
        self.state = STATE_ACTIVE
        logger.debug("TransportPipeline ativo em %s", cfg.dir)

    # Auxilia _start; desfaz uma inicialização parcial
    def _teardown(self) -> None:
        if self.rotation_timer is not None:
            self.rotation_timer.cancel()
        if self.sweeper is not None:
            self.sweeper.stop()
        if self.stream is not None and not self.stream.closed:
            try:
                self.stream.end()
            except OSError as exc:
                logger.debug("_teardown: falha ao fechar stream: %s", exc, exc_info=True)
        if self.compressor is not None:
            self.compressor.stop()
        if self.error_logger is not None:
            self.error_logger.destroy()

    # ========================
    # 2. Caminho de escrita
    # ========================

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def _on_rotated(self, path) -> None:
        try:
            self.compressor.submit(path)
        except Exception as exc:
            self.error_logger.log(f"Erro ao agendar compressão de {path}", exc)

    def _format(self, line: str) -> str:
        if self.config.skip_pretty:
            return line
        try:
            return pretty_line(line)
        except FormattingError as exc:
            self.error_logger.log("Falha ao formatar linha de log", exc)
            return line

    def write(self, line):
        """Escreve uma linha; retorna o que foi repassado adiante (ou None).

        Nunca levanta por problemas de I/O ou formatação: eles vão para o
        canal de diagnóstico. Escritas após ``close()`` são ignoradas.
        """
        if self.state == STATE_DISABLED:
            return line
        if self.state != STATE_ACTIVE:
            logger.warning("write: transporte encerrado, linha descartada")
            return None
        if isinstance(line, (bytes, bytearray)):
            line = bytes(line).decode("utf-8", errors="replace")
        out = self._format(line)
        if not out:
            return out
        if not out.endswith("\n"):
            out += "\n"
        try:
            self.stream.write(out)
        except (OSError, ValueError) as exc:
            self.error_logger.log("Falha ao escrever log no transporte", exc)
        return out

    def write_lines(self, lines: Iterable) -> int:
        """Escreve cada linha de `lines`; retorna quantas foram aceitas."""
        accepted = 0
        for line in lines:
            if self.write(line) is not None:
                accepted += 1
        return accepted

    # ========================
    # 3. Encerramento
    # ========================

    def close(self) -> None:
        """Encerra o transporte drenando tudo o que estava pendente.

        Ordem: recusa novas escritas, para a retenção e a verificação de
        intervalo, encerra o motor de rotação (flush final), desliga o ouvinte
        de rotação, drena o worker de compressão e por último destrói o canal
        de diagnóstico.
        """
        with self._lock:
            if self.state in (STATE_DISABLED, STATE_CLOSING, STATE_CLOSED):
                return
            self.state = STATE_CLOSING
        try:
            if self.sweeper is not None:
                self.sweeper.stop()
            self.rotation_timer.cancel()
            self.stream.end()
            logger.debug("close: %d bytes no arquivo corrente %s", self.stream.bytes_written, self.stream.current_path)
        finally:
            self.stream.remove_listener(self._on_rotated)
            if self.compressor is not None:
                self.compressor.stop()
            self.error_logger.destroy()
            self.state = STATE_CLOSED

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


# Função principal do módulo; equivalente à fábrica do transporte
def open_transport(options: Mapping | None = None, **overrides) -> TransportPipeline:
    """Valida as opções e devolve um ``TransportPipeline`` pronto para escrita.

    Levanta ``InvalidConfig`` antes de abrir qualquer arquivo.
    """
    merged = {**(options or {}), **overrides}
    return TransportPipeline(build_config(merged))
