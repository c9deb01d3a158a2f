"""Día de negocio: fecha calendario (YYYY-MM-DD) en una zona horaria fija.

El día va de 00:00:00 a 23:59:59.999 hora local (America/Lima por defecto,
UTC-5 sin horario de verano). Un instante sin zona horaria se rechaza: un
bucket equivocado descuadra la caja.
"""
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.config import settings
from app.core.errors import ValidationError


@lru_cache(maxsize=8)
def get_zone(name: Optional[str] = None) -> ZoneInfo:
    name = name or settings.timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(f"Zona horaria desconocida: {name}") from exc


def resolve_business_day(instant: datetime, tz: Optional[str] = None) -> str:
    if not isinstance(instant, datetime):
        raise ValidationError("Se esperaba un datetime con zona horaria")
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ValidationError("Instante sin zona horaria")
    return instant.astimezone(get_zone(tz)).date().isoformat()


def parse_day_key(text: str) -> date:
    try:
        return date.fromisoformat(str(text))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Fecha inválida: {text!r} (YYYY-MM-DD)") from exc


def business_day_bounds(day_key: str, tz: Optional[str] = None) -> Tuple[datetime, datetime]:
    """Rango [inicio, fin) del día en la zona local, como datetimes aware."""
    zone = get_zone(tz)
    d = parse_day_key(day_key)
    start = datetime.combine(d, time.min, tzinfo=zone)
    end = datetime.combine(d + timedelta(days=1), time.min, tzinfo=zone)
    return start, end


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value: datetime) -> datetime:
    # SQLite devuelve datetimes naive; se guardaron en UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_local(value: datetime, tz: Optional[str] = None) -> datetime:
    return as_aware(value).astimezone(get_zone(tz))
