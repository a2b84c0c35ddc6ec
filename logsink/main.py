"""Ponto de entrada do transporte de logs rotativos.

Lê linhas do stdin (uma por registro, normalmente JSON) e as entrega ao
``TransportPipeline``: parsing de argumentos, configuração do logging interno,
criação do transporte e encerramento ordenado ao fim da entrada ou em Ctrl+C.
"""

import logging as _logging
import sys

from .core.args import get_log_config, get_transport_options, parse_args
from .core.pipeline import open_transport
from .errors import InvalidConfig

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2


def main(argv: list[str] | None = None, stdin=None) -> int:
    """Inicializa o transporte e bombeia o stdin até EOF.

    Args:
        argv: Lista de argumentos (usada em testes). Quando ``None`` a função
            utiliza os argumentos de linha de comando do processo.
        stdin: Fonte de linhas alternativa (usada em testes).

    Returns:
        Código de saída: 0 em sucesso, 2 para configuração inválida.
    """
    try:
        args = parse_args(argv)
    except ValueError as exc:
        print(f"logsink: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    log_conf = get_log_config(args)

    level = getattr(_logging, log_conf.get("level", "WARNING"), _logging.WARNING)
    _logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    log = _logging.getLogger(__name__)

    try:
        transport = open_transport(get_transport_options(args))
    except InvalidConfig as exc:
        log.error("Configuração inválida: %s", exc)
        print(f"logsink: configuração inválida: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    source = stdin if stdin is not None else sys.stdin
    try:
        for line in source:
            out = transport.write(line)
            if not transport.enabled and out:
                # desabilitado: o transporte apenas repassa as linhas
                sys.stdout.write(out)
    except KeyboardInterrupt:
        log.info("Interrompido, encerrando transporte")
    finally:
        transport.close()
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
