"""Formatação de registros estruturados para leitura humana.

Converte linhas JSON (uma por registro, no formato dos loggers estruturados
mais comuns) em linhas legíveis, reutilizando ``build_human_line``.
"""

from typing import Any, Dict
import json
import logging

from ..errors import FormattingError
from ..system.log_helpers import build_human_line, normalize_message_for_human
from ..system.time_helpers import TIMESTAMP_KEYS, extract_epoch, format_iso

logger = logging.getLogger(__name__)

# níveis numéricos usados por loggers estruturados (10 = trace ... 60 = fatal)
NUMERIC_LEVELS = {
    10: "TRACE",
    20: "DEBUG",
    30: "INFO",
    40: "WARN",
    50: "ERROR",
    60: "FATAL",
}

MESSAGE_KEYS = ("msg", "message")
# campos consumidos pelo cabeçalho ou ruído de processo que não vira extra
_HIDDEN_KEYS = frozenset(TIMESTAMP_KEYS) | frozenset(MESSAGE_KEYS) | {"level", "levelname", "pid", "hostname", "v"}


def level_name(raw) -> str:
    """Normaliza o nível (numérico ou textual) para o rótulo em maiúsculas."""
    if raw is None:
        return "INFO"
    if isinstance(raw, bool):
        return str(raw).upper()
    if isinstance(raw, (int, float)):
        return NUMERIC_LEVELS.get(int(raw), f"LEVEL{int(raw)}")
    return str(raw).upper()


def _message_of(record: Dict[str, Any]) -> str:
    for key in MESSAGE_KEYS:
        if key in record:
            return normalize_message_for_human(record[key])
    return ""


def _timestamp_of(record: Dict[str, Any]) -> str:
    epoch = extract_epoch(record)
    try:
        return format_iso(epoch)
    except (OverflowError, OSError, ValueError):
        logger.debug("_timestamp_of: timestamp fora de faixa: %r", epoch)
        return format_iso()


def pretty_line(line) -> str:
    """Converte uma linha JSON em linha humana terminada em ``\\n``.

    Linhas em branco resultam em string vazia. Levanta ``FormattingError``
    quando a linha não é um objeto JSON.
    """
    if isinstance(line, (bytes, bytearray)):
        line = bytes(line).decode("utf-8", errors="replace")
    raw = line.strip()
    if not raw:
        return ""
    try:
        record = json.loads(raw)
    except ValueError as exc:
        raise FormattingError(f"linha não é JSON válido: {exc}") from exc
    if not isinstance(record, dict):
        raise FormattingError(f"registro deve ser um objeto JSON, recebido {type(record).__name__}")

    extras = {k: v for k, v in record.items() if k not in _HIDDEN_KEYS}
    level = level_name(record.get("level", record.get("levelname")))
    return build_human_line(_timestamp_of(record), level, _message_of(record), extras)
