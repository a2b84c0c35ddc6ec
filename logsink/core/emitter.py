"""Adaptador entre o módulo ``logging`` e o pipeline do transporte.

``TransportHandler`` serializa cada ``LogRecord`` como uma linha JSON e a
entrega ao pipeline, de modo que aplicações Python possam usar o transporte
como um handler comum.
"""

import json as _json
import logging
import traceback as _tb
from typing import Mapping

from ..system.log_helpers import build_json_entry
from ..system.time_helpers import format_iso
from .pipeline import TransportPipeline, open_transport


class TransportHandler(logging.Handler):
    """Handler que escreve registros JSON no ``TransportPipeline``.

    Qualquer falha dentro de ``emit`` é entregue a ``handleError``; o
    chamador do logger nunca recebe exceções do transporte.
    """

    def __init__(self, transport: TransportPipeline, level=logging.NOTSET, owns_transport: bool = True):
        super().__init__(level)
        self.transport = transport
        self.owns_transport = owns_transport

    def serialize(self, record: logging.LogRecord) -> str:
        extra = {"name": record.name}
        if record.exc_info:
            extra["exc"] = "".join(_tb.format_exception(*record.exc_info))
        entry = build_json_entry(format_iso(record.created), record.levelname, record.getMessage(), extra)
        return _json.dumps(entry, ensure_ascii=False, default=str)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.transport.write(self.serialize(record))
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        try:
            if self.owns_transport:
                self.transport.close()
        finally:
            super().close()


def attach_transport(target: logging.Logger | None, options: Mapping, level=logging.NOTSET) -> TransportHandler:
    """Cria um transporte a partir de `options` e o acopla a `target` (root se None)."""
    handler = TransportHandler(open_transport(options), level=level)
    (target or logging.getLogger()).addHandler(handler)
    return handler
