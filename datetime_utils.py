import datetime
import time


def get_current_timestamp():
    """Epoch time in milliseconds, the unit every ledger record uses."""
    return int(time.time() * 1000)


def format_timestamp(timestamp_ms):
    """Render an epoch-ms timestamp in UTC so every server shows the same text."""
    moment = datetime.datetime.fromtimestamp(timestamp_ms / 1000, tz=datetime.timezone.utc)
    return moment.strftime("%Y-%m-%d %H:%M:%S UTC")
