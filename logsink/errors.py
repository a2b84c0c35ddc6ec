"""Exceções do transporte de logs.

Apenas ``InvalidConfig`` chega ao chamador (na construção do transporte); as
demais são capturadas na origem e reportadas pelo canal de diagnóstico.
"""


class LogSinkError(Exception):
    """Base para erros levantados pelo pacote."""


class InvalidConfig(LogSinkError, ValueError):
    """Configuração inválida; identifica o campo e o motivo."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class CompressionError(LogSinkError):
    """Falha ao comprimir um arquivo rotacionado."""


class FormattingError(LogSinkError):
    """Linha de log que não pôde ser formatada."""
