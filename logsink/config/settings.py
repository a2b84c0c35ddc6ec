"""Configurações do transporte de logs rotativos.

Este módulo centraliza os valores padrão (``DEFAULT_OPTIONS``), a validação
das strings de tamanho/intervalo/formato de timestamp e a construção da
``TransportConfig`` imutável. Permite overrides via arquivo ``.env`` ou
variáveis de ambiente (prefixo ``LOGSINK_*``).
As funções públicas principais são:

- ``build_config(options)`` -> ``TransportConfig`` validada (ou ``InvalidConfig``).
- ``load_settings()`` -> dicionário de opções lido de ``.env`` + ambiente.

Toda validação acontece antes de qualquer arquivo ser aberto.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from ..errors import InvalidConfig
from ..system.log_helpers import sanitize_log_name


# ========================
# Constantes e padrões globais
# ========================

SIZE_UNITS = {
    "B": 1,
    "K": 1024,
    "M": 1024**2,
    "G": 1024**3,
}

# em segundos; mês de calendário tratado como 30 dias
TIME_UNITS = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
    "M": 30 * 24 * 60 * 60,
}

TIMESTAMP_FORMATS = ("iso", "unix", "utc", "rfc2822", "epoch")

# Z_DEFAULT_STRATEGY, Z_FILTERED, Z_HUFFMAN_ONLY, Z_RLE, Z_FIXED
COMPRESSION_STRATEGIES = (0, 1, 2, 3, 4)

ERROR_BUFFER_SIZE = 100
COMPRESSION_LEDGER_MAX_AGE = 24 * 60 * 60
COMPRESSION_LEDGER_SWEEP_INTERVAL = 60 * 60
RETENTION_SWEEP_INTERVAL = 24 * 60 * 60
# limite da espera entre verificações de rotação por intervalo em arquivos ociosos
ROTATION_CHECK_INTERVAL = 60

DEFAULT_OPTIONS = {
    "dir": None,
    "filename": "app",
    "enabled": True,
    "size": "100K",
    "interval": "1d",
    "compress": True,
    "immutable": True,
    "retention_days": 30,
    "compression_options": {"level": 6, "strategy": 0},
    "error_log_file": None,
    "timestamp_format": "iso",
    "skip_pretty": False,
    "error_flush_interval_ms": 60 * 1000,
}

_SIZE_RE = re.compile(r"([0-9]+)([BKMG])")
_INTERVAL_RE = re.compile(r"([0-9]+)(month|[smhdM])")

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


# ========================
# 1. Validação das strings de configuração
# ========================


def parse_size(size) -> int:
    """Converte ``<n><B|K|M|G>`` em bytes; levanta ``InvalidConfig`` se malformado."""
    match = _SIZE_RE.fullmatch(size) if isinstance(size, str) else None
    if not match:
        raise InvalidConfig("size", f"formato inválido {size!r}, esperado <número><B|K|M|G>")
    num, unit = match.groups()
    if int(num) <= 0:
        raise InvalidConfig("size", f"deve ser positivo: {size!r}")
    return int(num) * SIZE_UNITS[unit]


def parse_interval(interval) -> int:
    """Converte ``<n><s|m|h|d|M>`` em segundos; levanta ``InvalidConfig`` se malformado."""
    match = _INTERVAL_RE.fullmatch(interval) if isinstance(interval, str) else None
    if not match:
        raise InvalidConfig("interval", f"formato inválido {interval!r}, esperado <número><s|m|h|d|M>")
    num, unit = match.groups()
    if int(num) <= 0:
        raise InvalidConfig("interval", f"deve ser positivo: {interval!r}")
    if unit == "month":
        unit = "M"
    return int(num) * TIME_UNITS[unit]


def validate_size(size) -> None:
    """Valida a opção de tamanho de rotação."""
    parse_size(size)


def validate_interval(interval) -> None:
    """Valida a opção de intervalo de rotação."""
    parse_interval(interval)


def validate_timestamp_format(timestamp_format) -> None:
    """Valida o formato de timestamp usado nos nomes dos arquivos rotacionados."""
    if timestamp_format not in TIMESTAMP_FORMATS:
        raise InvalidConfig(
            "timestamp_format",
            f"valor inválido {timestamp_format!r}, esperado um de: {', '.join(TIMESTAMP_FORMATS)}",
        )


# ========================
# 2. Configuração imutável
# ========================


@dataclass(frozen=True)
class CompressionOptions:
    """Parâmetros do compressor gzip (nível e estratégia zlib)."""

    level: int = DEFAULT_OPTIONS["compression_options"]["level"]
    strategy: int = DEFAULT_OPTIONS["compression_options"]["strategy"]


@dataclass(frozen=True)
class TransportConfig:
    """Configuração validada do transporte; construída uma vez, nunca alterada.

    Use ``build_config`` para obter instâncias: ele aplica os defaults de
    ``DEFAULT_OPTIONS`` e rejeita entradas malformadas.
    """

    dir: Path | None
    filename: str
    enabled: bool
    size: str
    interval: str
    compress: bool
    immutable: bool
    retention_days: int
    compression: CompressionOptions
    error_log_file: Path | None
    timestamp_format: str
    skip_pretty: bool
    error_flush_interval_ms: int

    @property
    def size_bytes(self) -> int:
        return parse_size(self.size)

    @property
    def interval_seconds(self) -> int:
        return parse_interval(self.interval)

    @property
    def retention_enabled(self) -> bool:
        return self.retention_days > 0


# Auxilia build_config; criado para validar os parâmetros do compressor
def _coerce_compression(raw) -> CompressionOptions:
    """Normaliza ``compression_options`` (dict ou ``CompressionOptions``)."""
    if isinstance(raw, CompressionOptions):
        level, strategy = raw.level, raw.strategy
    elif isinstance(raw, Mapping):
        defaults = DEFAULT_OPTIONS["compression_options"]
        unknown = set(raw) - set(defaults)
        if unknown:
            raise InvalidConfig("compression_options", f"chaves desconhecidas: {sorted(unknown)}")
        level = raw.get("level", defaults["level"])
        strategy = raw.get("strategy", defaults["strategy"])
    else:
        raise InvalidConfig("compression_options", "deve ser um dict com 'level' e 'strategy'")

    if isinstance(level, bool) or not isinstance(level, int) or not -1 <= level <= 9:
        raise InvalidConfig("compression_options", f"level deve ser inteiro entre -1 e 9: {level!r}")
    if isinstance(strategy, bool) or strategy not in COMPRESSION_STRATEGIES:
        raise InvalidConfig("compression_options", f"strategy deve ser um de {COMPRESSION_STRATEGIES}: {strategy!r}")
    return CompressionOptions(level=level, strategy=strategy)


# Auxilia build_config; criado para validar inteiros não negativos/positivos
def _coerce_int(field: str, raw, minimum: int) -> int:
    if isinstance(raw, bool):
        raise InvalidConfig(field, f"deve ser inteiro: {raw!r}")
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidConfig(field, f"deve ser inteiro: {raw!r}") from exc
    if value < minimum:
        raise InvalidConfig(field, f"deve ser >= {minimum}: {raw!r}")
    return value


def _validate_filename(filename) -> str:
    if not isinstance(filename, str) or not filename:
        raise InvalidConfig("filename", "obrigatório")
    if sanitize_log_name(filename, fallback="") != filename:
        raise InvalidConfig("filename", f"contém caracteres inválidos: {filename!r}")
    return filename


# Função principal de validação; normaliza e valida opções
def build_config(options: Mapping | None = None) -> TransportConfig:
    """Combina ``options`` com ``DEFAULT_OPTIONS`` e devolve a configuração validada.

    Com ``enabled=False`` nenhuma validação é feita: um transporte desabilitado
    nunca deve falhar ao iniciar. Caso contrário, qualquer campo inválido
    levanta ``InvalidConfig`` identificando o campo e o motivo.
    """
    options = dict(options or {})
    unknown = set(options) - set(DEFAULT_OPTIONS)
    if unknown:
        raise InvalidConfig(sorted(unknown)[0], "opção desconhecida")

    merged = {**DEFAULT_OPTIONS, **{k: v for k, v in options.items() if v is not None}}
    enabled = bool(merged["enabled"])

    raw_dir = merged["dir"]
    raw_error_file = merged["error_log_file"]

    if not enabled:
        return TransportConfig(
            dir=Path(raw_dir) if raw_dir else None,
            filename=str(merged["filename"]),
            enabled=False,
            size=merged["size"],
            interval=merged["interval"],
            compress=bool(merged["compress"]),
            immutable=bool(merged["immutable"]),
            retention_days=0,
            compression=CompressionOptions(),
            error_log_file=Path(raw_error_file) if raw_error_file else None,
            timestamp_format=merged["timestamp_format"],
            skip_pretty=bool(merged["skip_pretty"]),
            error_flush_interval_ms=DEFAULT_OPTIONS["error_flush_interval_ms"],
        )

    if not raw_dir:
        raise InvalidConfig("dir", "opção obrigatória ausente")
    filename = _validate_filename(merged["filename"])
    validate_size(merged["size"])
    validate_interval(merged["interval"])
    validate_timestamp_format(merged["timestamp_format"])
    retention_days = _coerce_int("retention_days", merged["retention_days"], 0)
    flush_ms = _coerce_int("error_flush_interval_ms", merged["error_flush_interval_ms"], 1)
    compression = _coerce_compression(merged["compression_options"])

    return TransportConfig(
        dir=Path(raw_dir),
        filename=filename,
        enabled=True,
        size=merged["size"],
        interval=merged["interval"],
        compress=bool(merged["compress"]),
        immutable=bool(merged["immutable"]),
        retention_days=retention_days,
        compression=compression,
        error_log_file=Path(raw_error_file) if raw_error_file else None,
        timestamp_format=merged["timestamp_format"],
        skip_pretty=bool(merged["skip_pretty"]),
        error_flush_interval_ms=flush_ms,
    )


# ========================
# 3. Carregamento a partir de .env / ambiente
# ========================

# variável de ambiente -> (opção, tipo)
ENV_OPTIONS = {
    "LOGSINK_DIR": ("dir", str),
    "LOGSINK_FILENAME": ("filename", str),
    "LOGSINK_ENABLED": ("enabled", bool),
    "LOGSINK_SIZE": ("size", str),
    "LOGSINK_INTERVAL": ("interval", str),
    "LOGSINK_COMPRESS": ("compress", bool),
    "LOGSINK_IMMUTABLE": ("immutable", bool),
    "LOGSINK_RETENTION_DAYS": ("retention_days", int),
    "LOGSINK_ERROR_LOG_FILE": ("error_log_file", str),
    "LOGSINK_TIMESTAMP_FORMAT": ("timestamp_format", str),
    "LOGSINK_SKIP_PRETTY": ("skip_pretty", bool),
    "LOGSINK_ERROR_FLUSH_INTERVAL_MS": ("error_flush_interval_ms", int),
}


# Auxilia load_settings; criado para centralizar leitura do .env
def _read_env_file(path: Path | str) -> dict:
    """Lê um arquivo `.env` e devolve um dicionário chave->valor.

    Linhas vazias e comentários (começando com '#') são ignorados.
    """
    import logging

    logger = logging.getLogger(__name__)
    result: dict[str, str] = {}
    p = Path(path)
    if not p.exists():
        return result
    try:
        with p.open("r", encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" not in line:
                    continue
                key, val = line.split("=", 1)
                key = key.strip()
                val = val.strip().strip('"').strip("'")
                result[key] = val
    except OSError as exc:
        logger.debug("Falha ao ler .env em %s: %s", p, exc)
        return {}
    return result


# Auxilia load_settings; criado para unir variáveis do ambiente e .env
def _merge_env_items(env_path: Path, logger) -> dict:
    """Retorna um mapeamento combinado de `.env` e env vars do processo.

    As variáveis do processo sobrescrevem o arquivo `.env`.
    """
    env_items = _read_env_file(env_path)
    if env_items == {} and env_path.exists():
        logger.warning("Erro ou ficheiro .env vazio em %s", env_path)
    env_items.update(os.environ)
    return env_items


def _coerce_env_value(kind, raw: str):
    if kind is bool:
        low = raw.strip().lower()
        if low in _TRUE_VALUES:
            return True
        if low in _FALSE_VALUES:
            return False
        raise ValueError(f"booleano inválido: {raw!r}")
    if kind is int:
        return int(raw)
    return raw


# Auxilia load_settings; criado para aplicar overrides nas opções de compressão
def _apply_compression_overrides(env_items: dict, options: dict, logger) -> None:
    compression = {}
    for key, field in (("LOGSINK_COMPRESSION_LEVEL", "level"), ("LOGSINK_COMPRESSION_STRATEGY", "strategy")):
        if key not in env_items:
            continue
        try:
            compression[field] = int(env_items[key])
        except (TypeError, ValueError):
            logger.warning("%s inválido: %s", key, env_items.get(key))
    if compression:
        options["compression_options"] = {**DEFAULT_OPTIONS["compression_options"], **compression}


# Função principal do módulo; carrega opções do ambiente
def load_settings(env_path: Path | str | None = None) -> dict:
    """Carrega opções do transporte combinando `.env` + ambiente.

    Retorna apenas as opções efetivamente definidas (as ausentes ficam a cargo
    de ``DEFAULT_OPTIONS`` em ``build_config``) e a chave extra ``log_level``.
    Valores inteiros/booleanos inválidos são ignorados com um warning.
    """
    import logging

    logger = logging.getLogger(__name__)

    if env_path is None:
        env_path = os.getenv("LOGSINK_ENV_FILE", Path.cwd() / ".env")
    env_items = _merge_env_items(Path(env_path), logger)

    options: dict = {}
    for key, (field, kind) in ENV_OPTIONS.items():
        raw = env_items.get(key)
        if raw is None or raw == "":
            continue
        try:
            options[field] = _coerce_env_value(kind, raw)
        except (TypeError, ValueError):
            logger.warning("%s inválido: %s", key, raw)
    _apply_compression_overrides(env_items, options, logger)

    log_level = env_items.get("LOGSINK_LOG_LEVEL")
    if log_level:
        options["log_level"] = str(log_level).upper()
    return options
