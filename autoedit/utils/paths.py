"""Output path templating and recording file name parsing."""
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping, Optional

FORMAT_PATTERN = re.compile(r"\{\s*(?P<name>[A-Za-z0-9_]+)\s*(?::(?P<format>[^}]+))?\}")

# "Spelunky 2 2020.10.01 - 12.34.56.78.DVR.mp4"
RECORDING_NAME_PATTERN = re.compile(
    r"(?P<date>\d{4}\.\d{2}\.\d{2})\s*-\s*(?P<time>\d{2}\.\d{2}\.\d{2})(?:\.(?P<fraction>\d{1,6}))?"
)


def format_path(template: str, values: Optional[Mapping[str, object]] = None) -> str:
    """
    Substitute ``{name}`` / ``{name:format}`` placeholders.

    ``now``, ``utcNow`` and ``userprofile`` (the user's home directory) are
    always available. Unknown or unset names become empty strings. Formats
    are applied with ``format()``, so datetimes take strftime codes:
    ``{utcNow:%Y.%m.%d}``.
    """
    available = {
        "now": datetime.now(),
        "utcNow": datetime.now(timezone.utc),
        "userprofile": os.environ.get("USERPROFILE") or os.environ.get("HOME"),
    }
    available.update(values or {})

    def replace(match: re.Match) -> str:
        name = match.group("name")
        value = available.get(name)
        if value is None:
            return ""

        if match.group("format"):
            return format(value, match.group("format"))
        return str(value)

    return FORMAT_PATTERN.sub(replace, template)


def parse_recording_start(path: str | Path, tz: timezone = timezone.utc) -> Optional[float]:
    """
    Start time of a recording, in epoch seconds, from its file name.

    Returns None if the name carries no ``YYYY.MM.DD - HH.MM.SS[.ff]`` stamp.
    """
    match = RECORDING_NAME_PATTERN.search(Path(path).name)
    if not match:
        return None

    stamp = datetime.strptime(f"{match.group('date')} {match.group('time')}", "%Y.%m.%d %H.%M.%S")
    stamp = stamp.replace(tzinfo=tz)

    fraction = match.group("fraction")
    seconds = stamp.timestamp()
    if fraction:
        seconds += int(fraction) / (10 ** len(fraction))

    return seconds
