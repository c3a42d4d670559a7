from datetime import datetime, timezone
from typing import Optional, Union

EPOCH = datetime.fromtimestamp(0, timezone.utc)

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def ensure_aware(value: datetime) -> datetime:
    """Las fechas sin zona horaria se interpretan como UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Convierte un timestamp ISO-8601 (o datetime) del inventario a datetime con zona"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    if not isinstance(value, str):
        raise ValueError(f"Invalid timestamp: {value!r}")
    # fromisoformat no acepta el sufijo 'Z' antes de Python 3.11
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_aware(datetime.fromisoformat(value))

def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return ensure_aware(value).isoformat()
