from datetime import datetime, timezone


def utc_timestamp(moment: datetime | None = None) -> str:
    """iso-8601 utc timestamp with millisecond precision, e.g. 2024-01-01T00:00:00.000Z"""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )
