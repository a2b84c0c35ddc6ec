"""Pacote core: pipeline do transporte, formatação e parsing de argumentos.

Re-exports dos pontos de entrada usados pela CLI e pelas aplicações.
"""

from .emitter import TransportHandler, attach_transport
from .pipeline import TransportPipeline, open_transport

__all__ = ["TransportHandler", "attach_transport", "TransportPipeline", "open_transport"]
