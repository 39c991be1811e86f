"""Duration parsing and formatting helpers."""

import re
from decimal import Decimal, InvalidOperation

_UNIT_SECONDS = {
    "h": Decimal(3600),
    "m": Decimal(60),
    "s": Decimal(1),
    "ms": Decimal("0.001"),
    "us": Decimal("0.000001"),
    "µs": Decimal("0.000001"),
    "ns": Decimal("0.000000001"),
}

_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(h|ms|m|us|µs|ns|s)")


def parse_duration(text: str) -> int:
    """Parse a duration into whole seconds.

    Accepts a raw count of seconds ("90") or a sequence of number/unit groups
    ("90s", "5m", "1h30m", "1.5m"). Fractional seconds are truncated.

    Args:
        text: Duration text

    Returns:
        Duration in seconds

    Raises:
        ValueError: If the text is empty, negative or not a duration
    """
    value = text.strip()
    if not value:
        raise ValueError("Empty duration")

    if value.isdigit():
        return int(value)

    if value.startswith("-"):
        raise ValueError(f"Negative duration: {text}")
    if value.startswith("+"):
        value = value[1:]

    total = Decimal(0)
    pos = 0
    for match in _COMPONENT.finditer(value):
        if match.start() != pos:
            break
        try:
            number = Decimal(match.group(1))
        except InvalidOperation:
            raise ValueError(f"Invalid duration: {text}")
        total += number * _UNIT_SECONDS[match.group(2)]
        pos = match.end()

    if pos == 0 or pos != len(value):
        raise ValueError(f"Invalid duration: {text}")

    return int(total)


def format_remaining(seconds: int) -> str:
    """Format seconds as MM:SS (minutes are not wrapped at an hour)."""
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:02d}:{secs:02d}"
