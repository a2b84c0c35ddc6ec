from typing import Optional
import datetime
import logging

logger = logging.getLogger(__name__)

# Chaves onde registros estruturados costumam guardar o instante do evento
TIMESTAMP_KEYS = ("time", "ts", "timestamp", "@timestamp", "date")


def _epoch_from_numeric(v) -> Optional[float]:
    if isinstance(v, bool):
        return None
    try:
        n = float(v)
    except (TypeError, ValueError):
        return None
    if n > 1e12:
        return n / 1000.0
    return n


def _parse_date_string(s: str) -> Optional[float]:
    """Tente parsear uma string de data/tempo para epoch em segundos.

    Suporta formatos ISO, timestamps numéricos em string e alguns formatos
    comuns sem timezone. Retorna None se não for possível parsear.
    """
    if not isinstance(s, str):
        return None
    t = s.strip()
    if not t:
        return None
    try:
        n = float(t)
        if n > 1e12:
            return n / 1000.0
        return n
    except (TypeError, ValueError):
        pass

    if t.endswith("Z"):
        t2 = t[:-1] + "+00:00"
    else:
        t2 = t

    try:
        dt = datetime.datetime.fromisoformat(t2)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=datetime.timezone.utc)
        return dt.timestamp()
    except ValueError:
        pass

    for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S"):
        try:
            dt = datetime.datetime.strptime(t, fmt)
            dt = dt.replace(tzinfo=datetime.timezone.utc)
            return dt.timestamp()
        except ValueError:
            continue

    return None


def parse_epoch(v) -> Optional[float]:
    """Normalize um valor arbitrário para epoch float quando possível.

    Aceita números (int/float/str numérico, em segundos ou milissegundos) e
    strings de data; retorna None quando não puder extrair um timestamp.
    """
    if v is None:
        return None
    if isinstance(v, datetime.datetime):
        return v.timestamp()
    n = _epoch_from_numeric(v)
    if n is not None:
        return n
    if isinstance(v, str):
        return _parse_date_string(v)
    return None


def extract_epoch(record: dict) -> Optional[float]:
    """Retorna o epoch do primeiro campo de timestamp reconhecido em `record`."""
    for key in TIMESTAMP_KEYS:
        if key in record:
            cand = parse_epoch(record[key])
            if cand is not None:
                return cand
    return None


def format_iso(epoch: float | None = None) -> str:
    """Formata `epoch` (ou agora) como instante ISO-8601 UTC com milissegundos e sufixo Z."""
    if epoch is None:
        dt = datetime.datetime.now(datetime.timezone.utc)
    else:
        dt = datetime.datetime.fromtimestamp(epoch, tz=datetime.timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")
