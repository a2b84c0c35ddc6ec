"""Parser de argumentos da linha de comando.

Este módulo fornece um parser que expõe todas as opções do transporte
(diretório, nome base, tamanho/intervalo de rotação, compressão, retenção,
arquivo de erros, formato de timestamp) e o nível de logging interno.

Precedência: CLI > ambiente/.env (``LOGSINK_*``) > ``DEFAULT_OPTIONS``.
"""

import argparse
import logging
from typing import Sequence

from ..config.settings import DEFAULT_OPTIONS, TIMESTAMP_FORMATS, load_settings

# ========================
# 0. Configuração do parser e argumentos padrão
# ========================


# Função principal do módulo; cria e retorna o ArgumentParser configurado
def configure_argparser() -> argparse.ArgumentParser:
    """Cria e retorna ArgumentParser configurado para o transporte."""
    parser = argparse.ArgumentParser(
        prog="logsink",
        description="Lê linhas de log do stdin e grava em arquivos rotativos com compressão e retenção",
    )
    # defaults None: permite distinguir valor vindo da CLI de valor ausente
    parser.add_argument("--dir", dest="dir", type=str, default=None, help="Diretório dos arquivos de log (obrigatório)")
    parser.add_argument(
        "--filename", type=str, default=None, help=f"Nome base dos arquivos (padrão: {DEFAULT_OPTIONS['filename']})"
    )
    parser.add_argument(
        "--size", type=str, default=None, help=f"Tamanho de rotação <n><B|K|M|G> (padrão: {DEFAULT_OPTIONS['size']})"
    )
    parser.add_argument(
        "--interval",
        type=str,
        default=None,
        help=f"Intervalo de rotação <n><s|m|h|d|M> (padrão: {DEFAULT_OPTIONS['interval']})",
    )
    parser.add_argument(
        "--no-compress", dest="compress", action="store_const", const=False, default=None, help="Não comprimir"
    )
    parser.add_argument(
        "--mutable",
        dest="immutable",
        action="store_const",
        const=False,
        default=None,
        help="Escreve em <filename>.log e renomeia na rotação",
    )
    parser.add_argument(
        "--retention-days",
        dest="retention_days",
        type=int,
        default=None,
        help=f"Dias de retenção, 0 desabilita (padrão: {DEFAULT_OPTIONS['retention_days']})",
    )
    parser.add_argument("--compression-level", dest="compression_level", type=int, default=None)
    parser.add_argument("--compression-strategy", dest="compression_strategy", type=int, default=None)
    parser.add_argument("--error-log-file", dest="error_log_file", type=str, default=None)
    parser.add_argument("--timestamp-format", dest="timestamp_format", choices=TIMESTAMP_FORMATS, default=None)
    parser.add_argument("--skip-pretty", dest="skip_pretty", action="store_const", const=True, default=None)
    parser.add_argument("--error-flush-interval-ms", dest="error_flush_interval_ms", type=int, default=None)
    parser.add_argument(
        "--disabled", dest="enabled", action="store_const", const=False, default=None, help="Apenas repassa as linhas"
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Aumenta a verbosidade (-v, -vv)",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        type=str,
        default=None,
        help="Nível de logging interno (DEBUG/INFO/WARNING/ERROR). Se ausente, definido por -v",
    )
    parser.add_argument("--env-file", dest="env_file", type=str, default=None, help="Arquivo .env alternativo")
    return parser


# ========================
# 1. Funções auxiliares para análise e validação de argumentos
# ========================

_OPTION_ARGS = (
    "dir",
    "filename",
    "size",
    "interval",
    "compress",
    "immutable",
    "retention_days",
    "error_log_file",
    "timestamp_format",
    "skip_pretty",
    "error_flush_interval_ms",
    "enabled",
)


# Auxilia logsink.main; criado para analisar argv e aplicar overrides do ambiente
def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Analisa argv e preenche com ambiente/.env o que a CLI não definiu."""
    parser = configure_argparser()
    ns = parser.parse_args(argv)
    env = load_settings(ns.env_file)

    for arg in _OPTION_ARGS:
        if getattr(ns, arg, None) is None and arg in env:
            setattr(ns, arg, env[arg])
    if ns.log_level is None and env.get("log_level"):
        ns.log_level = env["log_level"]

    env_compression = env.get("compression_options", {})
    if ns.compression_level is None and "level" in env_compression:
        ns.compression_level = env_compression["level"]
    if ns.compression_strategy is None and "strategy" in env_compression:
        ns.compression_strategy = env_compression["strategy"]
    validate_args(ns)
    return ns


# Auxilia parse_args; criado para rejeitar valores numéricos impossíveis cedo
def validate_args(args: argparse.Namespace) -> None:
    """Valida argumentos numéricos simples; o restante é validado por build_config."""
    retention = getattr(args, "retention_days", None)
    if retention is not None and retention < 0:
        raise ValueError("retention-days deve ser >= 0")
    flush_ms = getattr(args, "error_flush_interval_ms", None)
    if flush_ms is not None and flush_ms <= 0:
        raise ValueError("error-flush-interval-ms deve ser > 0")


def get_transport_options(args: argparse.Namespace) -> dict:
    """Extrai do Namespace apenas as opções definidas, prontas para build_config."""
    options = {arg: getattr(args, arg) for arg in _OPTION_ARGS if getattr(args, arg, None) is not None}
    compression = {}
    if getattr(args, "compression_level", None) is not None:
        compression["level"] = args.compression_level
    if getattr(args, "compression_strategy", None) is not None:
        compression["strategy"] = args.compression_strategy
    if compression:
        options["compression_options"] = {**DEFAULT_OPTIONS["compression_options"], **compression}
    return options


# ========================
# 2. Função auxiliar para configuração de logging
# ========================


# Auxilia logsink.main; criado para extrair configuração de logging dos argumentos
def get_log_config(args: argparse.Namespace) -> dict:
    """Retorna dict com a configuração de logging interno ('level')."""
    if getattr(args, "log_level", None):
        level = str(args.log_level).upper()
    else:
        v = getattr(args, "verbose", 0) or 0
        if v >= 2:
            level = "DEBUG"
        elif v == 1:
            level = "INFO"
        else:
            level = "WARNING"
    if not isinstance(logging.getLevelName(level), int):
        level = "WARNING"
    return {"level": level}
