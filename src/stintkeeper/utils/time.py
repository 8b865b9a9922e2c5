"""
Clock sources and time formatting
"""

from datetime import datetime, timezone

MILLIS_PER_MINUTE = 60_000


def get_current_epoch_millis() -> int:
    """
    The default clock source of the application

    :return: Milliseconds since 1 January 1970 UTC
    """
    return int(datetime.now(tz=timezone.utc).timestamp() * 1000)


def minutes_to_millis(minutes: float) -> int:
    """
    Convert a duration in minutes to milliseconds

    :param minutes: The duration in minutes
    :return: The duration in milliseconds
    """
    return round(minutes * MILLIS_PER_MINUTE)


def iso_to_epoch_millis(value: str) -> int:
    """
    Convert an ISO-8601 string to milliseconds since epoch time. Values
    without an offset are interpreted in the local timezone.

    :param value: The ISO-8601 formatted string
    :raises ValueError: The string is not ISO-8601 formatted
    :return: Milliseconds since epoch start time
    """
    datetime_ = datetime.fromisoformat(value)
    if datetime_.tzinfo is None:
        datetime_ = datetime_.astimezone()

    return round(datetime_.timestamp() * 1000)


def epoch_ms_formatted_string(milliseconds: float) -> str:
    """
    Convert milliseconds since epoch time to a formatted string

    :param milliseconds: Milliseconds since epoch start time
    :return: A formatted string
    """
    datetime_ = datetime.fromtimestamp(milliseconds / 1000.0)
    return datetime_.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]


def duration_formatted_string(milliseconds: float) -> str:
    """
    Convert a duration to an `HH:MM:SS` string. Negative durations
    are shown as zero.

    :param milliseconds: The duration in milliseconds
    :return: A formatted string
    """
    total_seconds = max(0, int(milliseconds // 1000))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
