# vulture: ignore
"""Helpers de baixo nível para o transporte de logs.

Fornece compressão gzip em streaming, movimentações atômicas, escrita
durável (com lock) para o canal de diagnóstico e montagem de linhas humanas.
"""

from pathlib import Path
import os
import logging
import shutil
import time
import re
import zlib

import portalocker

logger = logging.getLogger(__name__)

# wbits 16 + MAX_WBITS faz o zlib emitir cabeçalho/trailer gzip
GZIP_WBITS = 16 + zlib.MAX_WBITS
COPY_CHUNK_SIZE = 64 * 1024

DURABLE_WRITES = os.environ.get("LOGSINK_DURABLE_WRITES", "1").lower() in ("1", "true", "yes", "on")


# -----------------------
# Escrita segura
# -----------------------
def write_text(path: Path, text: str) -> None:
    """Anexe texto a `path` de forma segura, usando lock e fsync quando possível.

    Esta função tenta criar o diretório pai e aplica um lock exclusivo via
    `portalocker`. Em caso de falha grava uma mensagem de erro no logger do
    módulo e segue em modo best-effort (nunca levanta).
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as fh:
            locked = False
            try:
                try:
                    portalocker.lock(fh, portalocker.LOCK_EX)
                    locked = True
                except (portalocker.LockException, OSError) as exc:
                    logger.debug("write_text: portalocker.lock falhou em %s: %s", path, exc)

                fh.write(text)
                fh.flush()

                if DURABLE_WRITES:
                    try:
                        os.fsync(fh.fileno())
                    except OSError as exc:
                        logger.debug("write_text: fsync falhou em %s: %s", path, exc)
            finally:
                if locked:
                    try:
                        portalocker.unlock(fh)
                    except (portalocker.LockException, OSError) as exc:
                        logger.debug("write_text: portalocker.unlock falhou em %s: %s", path, exc)
    except OSError as exc:
        logger.error("write_text: falhou em %s: %s", path, exc, exc_info=True)


# -----------------------
# Normalização e formatação
# -----------------------
def sanitize_log_name(raw_name: str, fallback: str = "app") -> str:
    """Sanitize o nome base de um ficheiro de log para uso seguro no filesystem.

    Remove caracteres potencialmente perigosos e limita o comprimento.
    """
    rn = Path(raw_name or fallback).name.lstrip(".")
    name = re.sub(r"[^A-Za-z0-9._-]+", "_", rn)
    if not name:
        name = fallback
    if len(name) > 200:
        name = name[:200]
    return name


def normalize_message_for_human(msg, max_len: int | None = 10000) -> str:
    """Normalize uma mensagem para apresentação humana.

    Converte para string e corta a mensagem para `max_len` quando definido.
    Quebras de linha são preservadas; quem decide o layout é `build_human_line`.
    """
    try:
        s = "" if msg is None else str(msg)
    except (TypeError, ValueError):
        s = "<unrepr>"
    return s[:max_len] if max_len and len(s) > max_len else s


def build_json_entry(ts: str, level: str, msg, extra: dict | None = None) -> dict:
    """Construa um dicionário pronto para ser serializado em JSONL.

    Insere campos `ts`, `level`, `msg` e mescla `extra` quando fornecido.
    """
    entry = {"ts": ts, "level": level, "msg": msg}
    if extra and isinstance(extra, dict):
        for k, v in extra.items():
            entry[k if k not in entry else f"extra_{k}"] = v
    elif extra:
        entry["meta"] = extra
    return entry


def build_human_line(ts: str, level: str, msg_str: str, extras: dict | None = None) -> str:
    r"""Compõe linha legível por humanos.

    O formato padrão é uma única linha com timestamp, nível, extras e a
    mensagem flattenada. O formato multilinha (header + body) pode ser
    ativado via variavel de ambiente `LOGSINK_HUMAN_MULTILINE=1` e é usado
    automaticamente quando a mensagem contém quebras de linha.

    Linha única (padrão):
      <ts> [LEVEL] [extras...] <msg_str>\n
    Multilinha:
      <ts> [LEVEL] [extras...]\n
      <msg_str>\n\n
    """
    use_multiline = os.environ.get("LOGSINK_HUMAN_MULTILINE", "0") in ("1", "true", "yes")
    if not use_multiline and isinstance(msg_str, str) and ("\n" in msg_str or "\r" in msg_str):
        use_multiline = True

    extras_part = ""
    if extras and isinstance(extras, dict):
        kvs = []
        for k, v in extras.items():
            sval = str(v) if not isinstance(v, (list, dict)) else repr(v)
            sval = sval.replace("\n", " ").replace("\r", " ")
            kvs.append(f"{k}={sval}")
        if kvs:
            extras_part = " " + " ".join(kvs)

    body = "" if msg_str is None else str(msg_str)

    if use_multiline:
        body = body.rstrip("\r\n")
        header = f"{ts} [{level}]{extras_part}\n"
        return header + body + "\n\n"
    single = body.replace("\n", " ").replace("\r", " ").strip()
    return f"{ts} [{level}]{extras_part} {single}\n"


# -----------------------
# Rotação / Compressão
# -----------------------
def _attempt_rename(s: Path, d: Path) -> bool:
    try:
        s.rename(d)
        return True
    except OSError as exc:
        logger.debug("atomic_move: rename failed: %s", exc)
        return False


def _attempt_replace(s: Path, d: Path) -> bool:
    try:
        os.replace(s, d)
        return True
    except OSError as exc:
        logger.debug("atomic_move: os.replace failed: %s", exc)
        return False


def _copy_replace_fallback(s: Path, d: Path) -> bool:
    tmp = d.with_name(d.name + ".tmp")
    try:
        d.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(s, tmp)
        os.replace(tmp, d)
        s.unlink(missing_ok=True)
        return True
    except OSError as exc:
        logger.debug("atomic_move: copy fallback failed: %s", exc, exc_info=True)
        tmp.unlink(missing_ok=True)
        return False


def atomic_move(src: Path, dst: Path, attempts: int = 5, base_delay: float = 0.05) -> bool:
    """Move `src` para `dst` de forma atômica, com backoff e fallbacks."""
    for i in range(attempts):
        if _attempt_rename(src, dst):
            return True
        if _attempt_replace(src, dst):
            return True
        if _copy_replace_fallback(src, dst):
            return True
        if i + 1 < attempts:
            time.sleep(base_delay * (2**i))
    return False


def compress_file(src: Path, dst_gz: Path, level: int = 6, strategy: int = zlib.Z_DEFAULT_STRATEGY) -> None:
    """Comprime `src` em gzip `dst_gz` lendo em blocos.

    Usa escrita temporária + replace atômico, de modo que `dst_gz` só aparece
    completo. Em falha remove o temporário e relança a exceção original.
    """
    tmp = dst_gz.with_name(dst_gz.name + ".tmp")
    compressor = zlib.compressobj(level, zlib.DEFLATED, GZIP_WBITS, zlib.DEF_MEM_LEVEL, strategy)
    try:
        with src.open("rb") as rf, tmp.open("wb") as wf:
            for chunk in iter(lambda: rf.read(COPY_CHUNK_SIZE), b""):
                wf.write(compressor.compress(chunk))
            wf.write(compressor.flush())
        os.replace(tmp, dst_gz)
    except (OSError, zlib.error):
        tmp.unlink(missing_ok=True)
        raise


# -----------------------
# Diretórios / permissões
# -----------------------
def ensure_dir_writable(p: Path) -> bool:
    """Garante, em melhor esforço, que `p` existe e é gravável."""
    try:
        p.mkdir(parents=True, exist_ok=True)
        test = p / f".touch-{os.getpid()}"
        try:
            with open(test, "a", encoding="utf-8") as f:
                f.write("ok")
                f.flush()
        except PermissionError as exc:
            logger.error("ensure_dir_writable: permission denied writing to %s: %s", p, exc, exc_info=True)
            return False
        except OSError as exc:
            logger.error("ensure_dir_writable: write test failed for %s: %s", p, exc, exc_info=True)
            return False
        finally:
            try:
                test.unlink(missing_ok=True)
            except OSError as exc:
                logger.debug("ensure_dir_writable: cleanup failed for %s: %s", test, exc)
        return True
    except PermissionError as exc:
        logger.error("ensure_dir_writable: permission denied creating %s: %s", p, exc, exc_info=True)
        return False
    except OSError as exc:
        logger.error("ensure_dir_writable: failed for %s: %s", p, exc, exc_info=True)
        return False
