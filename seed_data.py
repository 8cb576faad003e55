import logging

from blockchain import generate_transaction_hash
from constants import DEFAULT_LOCATION, ROLE_ADDRESSES, UserRole
from datetime_utils import get_current_timestamp
from ledger_types import (
    Drug,
    DrugHistory,
    DrugLedger,
    EventType,
    Transaction,
    TransactionMethod,
    TransactionStatus,
)

logger = logging.getLogger(__name__)

ONE_HOUR_MS = 60 * 60 * 1000

ASPIRIN_ID = "DRUG-ASPIRIN-2024-001"
VACCINE_ID = "DRUG-VACCINE-X-2024-002"
ANTIBIOTIC_ID = "DRUG-ANTIBIOTIC-2024-003"


def _tx(timestamp, method, from_address, drug_id, to_address=None):
    return Transaction(
        hash=generate_transaction_hash(),
        status=TransactionStatus.SUCCESS,
        timestamp=timestamp,
        from_address=from_address,
        method=method,
        to_address=to_address,
        drug_id=drug_id,
    )


def _registered(drug_id, tx):
    return DrugHistory(drug_id=drug_id, timestamp=tx.timestamp, event_type=EventType.REGISTERED,
                       transaction_hash=tx.hash, to_address=tx.from_address,
                       temperature=4.0, location=DEFAULT_LOCATION)


def _transferred(drug_id, tx):
    return DrugHistory(drug_id=drug_id, timestamp=tx.timestamp, event_type=EventType.TRANSFERRED,
                       transaction_hash=tx.hash, from_address=tx.from_address, to_address=tx.to_address)


def _temperature(drug_id, tx, temperature):
    return DrugHistory(drug_id=drug_id, timestamp=tx.timestamp, event_type=EventType.TEMPERATURE_UPDATED,
                       transaction_hash=tx.hash, temperature=temperature)


def build_demo_ledger(now=None):
    """Three sample products at different points of the supply chain.

    - Aspirin: just registered by the manufacturer
    - Vaccine-X: with the distributor, two temperature readings in transit
    - Antibiotic: manufacturer -> distributor -> pharmacy
    """
    now = now if now is not None else get_current_timestamp()
    manufacturer = ROLE_ADDRESSES[UserRole.MANUFACTURER]
    distributor = ROLE_ADDRESSES[UserRole.DISTRIBUTOR]
    pharmacy = ROLE_ADDRESSES[UserRole.PHARMACY]

    aspirin_registered_at = now - 2 * ONE_HOUR_MS
    vaccine_registered_at = now - 3 * ONE_HOUR_MS
    vaccine_transferred_at = now - 2 * ONE_HOUR_MS
    antibiotic_registered_at = now - 5 * ONE_HOUR_MS
    antibiotic_to_distributor_at = now - 4 * ONE_HOUR_MS
    antibiotic_to_pharmacy_at = now - ONE_HOUR_MS

    aspirin_reg = _tx(aspirin_registered_at, TransactionMethod.REGISTER_DRUG, manufacturer, ASPIRIN_ID)
    vaccine_reg = _tx(vaccine_registered_at, TransactionMethod.REGISTER_DRUG, manufacturer, VACCINE_ID)
    vaccine_transfer = _tx(vaccine_transferred_at, TransactionMethod.TRANSFER_DRUG, manufacturer,
                           VACCINE_ID, distributor)
    vaccine_temp_1 = _tx(vaccine_transferred_at + 10000, TransactionMethod.UPDATE_TEMPERATURE,
                         distributor, VACCINE_ID)
    vaccine_temp_2 = _tx(vaccine_transferred_at + 20000, TransactionMethod.UPDATE_TEMPERATURE,
                         distributor, VACCINE_ID)
    antibiotic_reg = _tx(antibiotic_registered_at, TransactionMethod.REGISTER_DRUG, manufacturer,
                         ANTIBIOTIC_ID)
    antibiotic_to_distributor = _tx(antibiotic_to_distributor_at, TransactionMethod.TRANSFER_DRUG,
                                    manufacturer, ANTIBIOTIC_ID, distributor)
    antibiotic_to_pharmacy = _tx(antibiotic_to_pharmacy_at, TransactionMethod.TRANSFER_DRUG,
                                 distributor, ANTIBIOTIC_ID, pharmacy)

    ledger = DrugLedger()
    ledger.drugs[ASPIRIN_ID] = Drug(
        id=ASPIRIN_ID, name="Aspirin 100mg", batch_number="BATCH-2024-001",
        current_owner=manufacturer, temperature=4.0, location=DEFAULT_LOCATION,
        registered_at=aspirin_registered_at, registered_by=manufacturer,
    )
    ledger.drugs[VACCINE_ID] = Drug(
        id=VACCINE_ID, name="Vaccine-X", batch_number="BATCH-2024-002",
        current_owner=distributor, temperature=5.5, location="In Transit to Pharmacy",
        registered_at=vaccine_registered_at, registered_by=manufacturer,
    )
    ledger.drugs[ANTIBIOTIC_ID] = Drug(
        id=ANTIBIOTIC_ID, name="Antibiotic 500mg", batch_number="BATCH-2024-003",
        current_owner=pharmacy, temperature=6.0, location="Pharmacy Storage",
        registered_at=antibiotic_registered_at, registered_by=manufacturer,
    )

    ledger.transactions = [
        aspirin_reg,
        vaccine_reg,
        vaccine_transfer,
        vaccine_temp_1,
        vaccine_temp_2,
        antibiotic_reg,
        antibiotic_to_distributor,
        antibiotic_to_pharmacy,
    ]

    ledger.history = {
        ASPIRIN_ID: [_registered(ASPIRIN_ID, aspirin_reg)],
        VACCINE_ID: [
            _registered(VACCINE_ID, vaccine_reg),
            _transferred(VACCINE_ID, vaccine_transfer),
            _temperature(VACCINE_ID, vaccine_temp_1, 5.2),
            _temperature(VACCINE_ID, vaccine_temp_2, 5.5),
        ],
        ANTIBIOTIC_ID: [
            _registered(ANTIBIOTIC_ID, antibiotic_reg),
            _transferred(ANTIBIOTIC_ID, antibiotic_to_distributor),
            _transferred(ANTIBIOTIC_ID, antibiotic_to_pharmacy),
        ],
    }
    return ledger


def seed_demo_data(store):
    """Replace whatever ledger is stored with the demo ledger."""
    ledger = build_demo_ledger()
    result = store.overwrite(ledger)
    if result.ok:
        logger.info("Seeded demo ledger with %d products", len(ledger.drugs))
    return result


def reset_system(store):
    store.reset()
