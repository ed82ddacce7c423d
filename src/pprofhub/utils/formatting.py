# utils/formatting.py
from datetime import datetime, timezone
from typing import Optional
from ..schemas import ProfileType

_BYTE_UNITS = ["Bytes", "KB", "MB", "GB", "TB"]

_TYPE_NAMES = {
    ProfileType.CPU:          "CPU Profile",
    ProfileType.HEAP:         "Heap Profile",
    ProfileType.BLOCK:        "Block Profile",
    ProfileType.MUTEX:        "Mutex Profile",
    ProfileType.GOROUTINE:    "Goroutine Profile",
    ProfileType.THREADCREATE: "Thread Creation Profile",
}

_TYPE_COLORS = {
    ProfileType.CPU:          "#3182CE",  # blue
    ProfileType.HEAP:         "#38A169",  # green
    ProfileType.BLOCK:        "#DD6B20",  # orange
    ProfileType.MUTEX:        "#805AD5",  # purple
    ProfileType.GOROUTINE:    "#F56565",  # red
    ProfileType.THREADCREATE: "#718096",  # gray
}
_DEFAULT_COLOR = "#4299E1"


def _trim(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def format_bytes(num_bytes: int) -> str:
    """1536 -> '1.5 KB'."""
    if num_bytes <= 0:
        return "0 Bytes"
    value, i = float(num_bytes), 0
    while value >= 1024 and i < len(_BYTE_UNITS) - 1:
        value /= 1024
        i += 1
    return f"{_trim(value)} {_BYTE_UNITS[i]}"


def format_time(seconds: float) -> str:
    if seconds < 0.001:
        return f"{seconds * 1_000_000:.2f} μs"
    if seconds < 1:
        return f"{seconds * 1000:.2f} ms"
    if seconds < 60:
        return f"{seconds:.2f} s"
    minutes, remainder = divmod(seconds, 60)
    return f"{int(minutes)}m {remainder:.1f}s"


def profile_type_name(profile_type) -> str:
    try:
        return _TYPE_NAMES[ProfileType(profile_type)]
    except ValueError:
        return str(profile_type)


def profile_type_color(profile_type) -> str:
    try:
        return _TYPE_COLORS[ProfileType(profile_type)]
    except ValueError:
        return _DEFAULT_COLOR


def relative_time(timestamp: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(tz=timezone.utc)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    seconds = int((now - timestamp).total_seconds())

    if seconds < 60:
        return "just now"
    if seconds < 3600:
        minutes = seconds // 60
        return f"{minutes} minute{'' if minutes == 1 else 's'} ago"
    if seconds < 86400:
        hours = seconds // 3600
        return f"{hours} hour{'' if hours == 1 else 's'} ago"
    days = seconds // 86400
    return f"{days} day{'' if days == 1 else 's'} ago"


def function_id(function_name: str) -> str:
    """Stable short id for a function name (31-multiplier string hash over UTF-16 units)."""
    h = 0
    encoded = function_name.encode("utf-16-le")
    for i in range(0, len(encoded), 2):
        unit = int.from_bytes(encoded[i:i + 2], "little")
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return f"fn_{abs(h):x}"
