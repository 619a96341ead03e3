from datetime import datetime, timedelta, timezone


def current_time_ms() -> int:
    """Server wall clock in milliseconds since the epoch."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def utc_date_string(timestamp_ms: int) -> str:
    """Calendar date ("YYYY-MM-DD", UTC) containing the given instant."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d")


def days_before(date_string: str, days: int) -> str:
    moment = datetime.strptime(date_string, "%Y-%m-%d") - timedelta(days=days)
    return moment.strftime("%Y-%m-%d")
