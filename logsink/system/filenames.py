"""Geração determinística dos nomes de arquivo de log.

Função pura usada pelo motor de rotação para nomear o arquivo vivo e cada
arquivo rotacionado. Nenhum acesso ao filesystem acontece aqui.
"""

import re
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from pathlib import Path

from ..errors import InvalidConfig

MAX_FILENAME_LENGTH = 200
LOG_SUFFIX = ".log"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]+")


# Auxilia render_timestamp; instantes ingênuos são interpretados no fuso local
def _to_aware(instant) -> datetime:
    if isinstance(instant, datetime):
        return instant if instant.tzinfo is not None else instant.astimezone()
    return datetime.fromtimestamp(float(instant), tz=timezone.utc)


def _collapse(text: str) -> str:
    return _NON_ALNUM_RE.sub("-", text).strip("-")


def render_timestamp(instant, timestamp_format: str = "iso") -> str:
    """Renderiza `instant` (datetime ou epoch em segundos) no formato pedido.

    - ``iso``: ``YYYYMMDDHHMMSS`` em UTC, sem separadores nem fração.
    - ``unix``: milissegundos inteiros desde a época.
    - ``utc``: data de calendário UTC (RFC 1123) com separadores colapsados em hífen.
    - ``rfc2822``: data de calendário local (RFC 2822), mesmo colapso.
    - ``epoch``: segundos inteiros desde a época (arredondados).
    """
    aware = _to_aware(instant)
    if timestamp_format == "iso":
        return aware.astimezone(timezone.utc).strftime("%Y%m%d%H%M%S")
    millis = (aware - _EPOCH) // timedelta(milliseconds=1)
    if timestamp_format == "unix":
        return str(millis)
    if timestamp_format == "epoch":
        return str((millis + 500) // 1000)
    if timestamp_format == "utc":
        return _collapse(format_datetime(aware.astimezone(timezone.utc), usegmt=True))
    if timestamp_format == "rfc2822":
        return _collapse(format_datetime(aware.astimezone()))
    raise InvalidConfig("timestamp_format", f"valor inválido {timestamp_format!r}")


def generate_filename(instant, directory, filename: str, timestamp_format: str = "iso") -> Path:
    """Retorna o caminho do arquivo de log para `instant`.

    Sem instante (``None``) devolve o arquivo vivo ``<dir>/<filename>.log``.
    Caso contrário ``<dir>/<filename>-<timestamp>.log``, com o nome cortado em
    ``MAX_FILENAME_LENGTH`` caracteres depois de composto.
    """
    if instant is None:
        return Path(directory) / f"{filename}{LOG_SUFFIX}"
    full_name = f"{filename}-{render_timestamp(instant, timestamp_format)}{LOG_SUFFIX}"
    if len(full_name) > MAX_FILENAME_LENGTH:
        full_name = full_name[:MAX_FILENAME_LENGTH]
    return Path(directory) / full_name
