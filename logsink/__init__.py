"""Transporte de logs com rotação, compressão gzip assíncrona e retenção.

Uso típico::

    from logsink import open_transport

    with open_transport({"dir": "logs", "size": "10M"}) as transport:
        transport.write('{"level": 30, "msg": "ok"}')
"""

from .config.settings import DEFAULT_OPTIONS, TransportConfig, build_config, load_settings
from .core.emitter import TransportHandler, attach_transport
from .core.pipeline import TransportPipeline, open_transport
from .errors import CompressionError, FormattingError, InvalidConfig, LogSinkError
from .system.filenames import generate_filename

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_OPTIONS",
    "TransportConfig",
    "build_config",
    "load_settings",
    "TransportHandler",
    "attach_transport",
    "TransportPipeline",
    "open_transport",
    "CompressionError",
    "FormattingError",
    "InvalidConfig",
    "LogSinkError",
    "generate_filename",
]
