from constants import TEMPERATURE_THRESHOLDS
from ledger_types import EventType, TransactionStatus


def is_temperature_in_range(temperature):
    return TEMPERATURE_THRESHOLDS["MIN"] <= temperature <= TEMPERATURE_THRESHOLDS["MAX"]


def _temperature_readings(history):
    return [
        event for event in history
        if event.event_type is EventType.TEMPERATURE_UPDATED and event.temperature is not None
    ]


def temperature_excursions(history):
    """Temperature readings that fell outside the cold chain range."""
    return [event for event in _temperature_readings(history) if not is_temperature_in_range(event.temperature)]


def calculate_trust_score(history):
    """Percentage of temperature readings that stayed in range (100 with no readings)."""
    readings = _temperature_readings(history)
    if not readings:
        return 100
    violations = len(temperature_excursions(history))
    return round((1 - violations / len(readings)) * 100)


def transaction_stats(transactions):
    stats = {"total": len(transactions), "success": 0, "failed": 0, "pending": 0}
    for tx in transactions:
        if tx.status is TransactionStatus.SUCCESS:
            stats["success"] += 1
        elif tx.status is TransactionStatus.FAILED:
            stats["failed"] += 1
        else:
            stats["pending"] += 1
    return stats
