from datetime import datetime, timezone

from pydantic import TypeAdapter


def to_utc_naive(dt: datetime) -> datetime:
    """
    DB guarda DateTime naive.
    Regla: lo guardamos como UTC naive, con precisión de milisegundos.
    - Si dt es naive: asumimos que YA está en UTC.
    - Si dt tiene tz: convertimos a UTC y quitamos tzinfo.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=(dt.microsecond // 1000) * 1000)


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def iso_z_from_utc_naive(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


_INSTANT = TypeAdapter(datetime)


def parse_instant(raw) -> datetime:
    """
    ISO 8601 (con o sin Z, fracciones de segundo) o epoch en s/ms -> UTC naive.
    Sin zona horaria se asume UTC. ValueError si no se puede parsear.
    """
    if isinstance(raw, str):
        raw = raw.strip()
    return to_utc_naive(_INSTANT.validate_python(raw))
