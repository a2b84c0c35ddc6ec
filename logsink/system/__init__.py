"""Pacote system: helpers de arquivo, rotação, compressão e manutenção.

Re-exports limitados a ``log_helpers``; os demais módulos dependem de
``config`` e são importados diretamente.
"""

from .log_helpers import atomic_move, build_human_line, compress_file, write_text

__all__ = ["atomic_move", "build_human_line", "compress_file", "write_text"]
