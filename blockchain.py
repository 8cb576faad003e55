import asyncio
import logging
import random
import secrets
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass

from authorization import RoleAddressPolicy
from constants import (
    DEFAULT_LOCATION,
    DEFAULT_MAX_DELAY_MS,
    DEFAULT_MIN_DELAY_MS,
    DEFAULT_READ_MAX_DELAY_MS,
    DEFAULT_READ_MIN_DELAY_MS,
    DEFAULT_TEMPERATURE,
)
from datetime_utils import get_current_timestamp
from ledger_types import (
    Drug,
    DrugHistory,
    ErrorCode,
    EventType,
    Transaction,
    TransactionMethod,
    TransactionResult,
    TransactionStatus,
    normalize_temperature,
)
from storage import SaveStatus

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_uppercase


def generate_transaction_hash() -> str:
    """Random 32-byte hex string shaped like an Ethereum transaction hash."""
    return "0x" + secrets.token_hex(32)


def generate_drug_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(7))
    return f"DRUG-{get_current_timestamp()}-{suffix}"


def sample_sensor_temperature(rng=random) -> float:
    """Draw a cold-chain sensor reading: mostly 4-8C, with occasional dips and spikes."""
    roll = rng.random()
    if roll < 0.1:
        temperature = 10
    elif roll < 0.2:
        temperature = 2 + rng.random() * 2
    else:
        temperature = 4 + rng.random() * 4
    return normalize_temperature(temperature)


async def delay(min_ms, max_ms, rng=random):
    await asyncio.sleep(rng.randint(min_ms, max_ms) / 1000)


def is_text(value):
    return isinstance(value, str) and bool(value.strip())


@dataclass(frozen=True)
class BlockchainConfig:
    min_delay: int = DEFAULT_MIN_DELAY_MS
    max_delay: int = DEFAULT_MAX_DELAY_MS
    read_min_delay: int = DEFAULT_READ_MIN_DELAY_MS
    read_max_delay: int = DEFAULT_READ_MAX_DELAY_MS

    def __post_init__(self):
        if not 0 <= self.min_delay <= self.max_delay:
            raise ValueError("min_delay must be between 0 and max_delay")
        if not 0 <= self.read_min_delay <= self.read_max_delay:
            raise ValueError("read_min_delay must be between 0 and read_max_delay")


class BlockchainService(ABC):
    """Operations the application needs from a ledger backend."""

    @abstractmethod
    async def register_drug(self, id, name, batch_number, manufacturer_address,
                            initial_temperature=DEFAULT_TEMPERATURE,
                            initial_location=DEFAULT_LOCATION) -> TransactionResult:
        ...

    @abstractmethod
    async def transfer_drug(self, drug_id, from_address, to_address) -> TransactionResult:
        ...

    @abstractmethod
    async def update_temperature(self, drug_id, temperature, updated_by) -> TransactionResult:
        ...

    @abstractmethod
    async def update_location(self, drug_id, location, updated_by) -> TransactionResult:
        ...

    @abstractmethod
    async def get_drug_by_id(self, drug_id):
        ...

    @abstractmethod
    async def get_all_drugs_by_owner(self, owner_address):
        ...

    @abstractmethod
    async def get_drug_history(self, drug_id):
        ...

    @abstractmethod
    async def get_all_transactions(self):
        ...


class MockBlockchainService(BlockchainService):
    """Simulates contract semantics on top of a ``LedgerStore``.

    Every mutating call waits a random "mining" delay, reloads the ledger,
    validates the request and then commits the record change, the
    transaction and the history event in a single save. Failures come back
    as ``TransactionResult`` values; nothing is raised to the caller.
    """

    def __init__(self, store, policy=None, config=None, rng=None):
        self.store = store
        self.policy = policy or RoleAddressPolicy()
        self.config = config or BlockchainConfig()
        self.rng = rng or random.Random()

    async def _mining_delay(self):
        await delay(self.config.min_delay, self.config.max_delay, self.rng)

    async def _read_delay(self):
        await delay(self.config.read_min_delay, self.config.read_max_delay, self.rng)

    def create_transaction(self, method, from_address, drug_id=None, to_address=None):
        return Transaction(
            hash=generate_transaction_hash(),
            status=TransactionStatus.SUCCESS,
            timestamp=get_current_timestamp(),
            from_address=from_address,
            method=method,
            to_address=to_address,
            drug_id=drug_id,
        )

    def add_history_entry(self, ledger, drug_id, event_type, transaction_hash, from_address=None,
                          to_address=None, temperature=None, location=None):
        ledger.add_history_entry(DrugHistory(
            drug_id=drug_id,
            timestamp=get_current_timestamp(),
            event_type=event_type,
            transaction_hash=transaction_hash,
            from_address=from_address,
            to_address=to_address,
            temperature=temperature,
            location=location,
        ))

    def _reject(self, method, error_code, error):
        logger.info("%s rejected (%s): %s", method.value, error_code.value, error)
        return TransactionResult.failure(error_code, error)

    def _commit(self, ledger, transaction, message):
        ledger.transactions.append(transaction)
        result = self.store.save(ledger)
        if result.status is SaveStatus.CONFLICT:
            logger.warning("%s for %s lost a revision race, nothing committed",
                           transaction.method.value, transaction.drug_id)
            return TransactionResult.failure(
                ErrorCode.CONFLICT, "Ledger was modified concurrently, please retry")
        if result.status is SaveStatus.FAILED:
            logger.error("%s for %s could not be persisted: %s",
                         transaction.method.value, transaction.drug_id, result.error)
            return TransactionResult.failure(
                ErrorCode.PERSISTENCE_FAILURE, "Ledger could not be persisted")
        logger.info("%s committed for %s in %s", transaction.method.value, transaction.drug_id, transaction.hash)
        return TransactionResult(success=True, transaction_hash=transaction.hash, message=message)

    async def register_drug(self, id, name, batch_number, manufacturer_address,
                            initial_temperature=DEFAULT_TEMPERATURE,
                            initial_location=DEFAULT_LOCATION) -> TransactionResult:
        await self._mining_delay()
        method = TransactionMethod.REGISTER_DRUG

        for field_name, value in (("id", id), ("name", name), ("batch_number", batch_number),
                                  ("initial_location", initial_location)):
            if not is_text(value):
                return self._reject(method, ErrorCode.INVALID_INPUT, f"{field_name} must be a non-empty string")
        try:
            temperature = normalize_temperature(initial_temperature)
        except (TypeError, ValueError, OverflowError):
            return self._reject(method, ErrorCode.INVALID_INPUT, "Temperature must be a finite number")

        error = self.policy.can_register(manufacturer_address)
        if error:
            return self._reject(method, ErrorCode.UNAUTHORIZED, error)

        ledger = self.store.load()
        if id in ledger.drugs:
            return self._reject(method, ErrorCode.ALREADY_EXISTS, "Drug with this ID already exists")

        ledger.drugs[id] = Drug(
            id=id,
            name=name,
            batch_number=batch_number,
            current_owner=manufacturer_address,
            temperature=temperature,
            location=initial_location,
            registered_at=get_current_timestamp(),
            registered_by=manufacturer_address,
        )
        transaction = self.create_transaction(method, manufacturer_address, drug_id=id)
        self.add_history_entry(ledger, id, EventType.REGISTERED, transaction.hash,
                               to_address=manufacturer_address,
                               temperature=temperature, location=initial_location)
        return self._commit(ledger, transaction, "Drug registered successfully")

    async def transfer_drug(self, drug_id, from_address, to_address) -> TransactionResult:
        await self._mining_delay()
        method = TransactionMethod.TRANSFER_DRUG

        if not is_text(to_address):
            return self._reject(method, ErrorCode.INVALID_INPUT, "Destination address must be a non-empty string")

        ledger = self.store.load()
        drug = ledger.drugs.get(drug_id)
        if drug is None:
            return self._reject(method, ErrorCode.NOT_FOUND, "Drug not found")

        error = self.policy.can_transfer(drug, from_address)
        if error:
            return self._reject(method, ErrorCode.UNAUTHORIZED, error)

        transaction = self.create_transaction(method, from_address, drug_id=drug_id, to_address=to_address)
        drug.current_owner = to_address
        drug.location = f"In Transit to {to_address}"
        self.add_history_entry(ledger, drug_id, EventType.TRANSFERRED, transaction.hash,
                               from_address=from_address, to_address=to_address)
        return self._commit(ledger, transaction, "Drug transferred successfully")

    async def update_temperature(self, drug_id, temperature, updated_by) -> TransactionResult:
        await self._mining_delay()
        method = TransactionMethod.UPDATE_TEMPERATURE

        try:
            temperature = normalize_temperature(temperature)
        except (TypeError, ValueError, OverflowError):
            return self._reject(method, ErrorCode.INVALID_INPUT, "Temperature must be a finite number")

        ledger = self.store.load()
        drug = ledger.drugs.get(drug_id)
        if drug is None:
            return self._reject(method, ErrorCode.NOT_FOUND, "Drug not found")

        error = self.policy.can_update_conditions(drug, updated_by)
        if error:
            return self._reject(method, ErrorCode.UNAUTHORIZED, error)

        transaction = self.create_transaction(method, updated_by, drug_id=drug_id)
        drug.temperature = temperature
        self.add_history_entry(ledger, drug_id, EventType.TEMPERATURE_UPDATED, transaction.hash,
                               temperature=drug.temperature)
        return self._commit(ledger, transaction, "Temperature updated successfully")

    async def update_location(self, drug_id, location, updated_by) -> TransactionResult:
        await self._mining_delay()
        method = TransactionMethod.UPDATE_LOCATION

        if not is_text(location):
            return self._reject(method, ErrorCode.INVALID_INPUT, "Location must be a non-empty string")

        ledger = self.store.load()
        drug = ledger.drugs.get(drug_id)
        if drug is None:
            return self._reject(method, ErrorCode.NOT_FOUND, "Drug not found")

        error = self.policy.can_update_conditions(drug, updated_by)
        if error:
            return self._reject(method, ErrorCode.UNAUTHORIZED, error)

        transaction = self.create_transaction(method, updated_by, drug_id=drug_id)
        drug.location = location
        self.add_history_entry(ledger, drug_id, EventType.LOCATION_UPDATED, transaction.hash,
                               location=location)
        return self._commit(ledger, transaction, "Location updated successfully")

    async def simulate_iot_update(self, drug_id, updated_by) -> TransactionResult:
        """Record a randomly drawn sensor reading for ``drug_id``."""
        return await self.update_temperature(drug_id, sample_sensor_temperature(self.rng), updated_by)

    async def get_drug_by_id(self, drug_id):
        await self._read_delay()
        return self.store.load().drugs.get(drug_id)

    async def get_all_drugs_by_owner(self, owner_address):
        await self._read_delay()
        ledger = self.store.load()
        return [drug for drug in ledger.drugs.values() if drug.current_owner == owner_address]

    async def get_drug_history(self, drug_id):
        await self._read_delay()
        return list(self.store.load().history.get(drug_id, []))

    async def get_all_transactions(self):
        await self._read_delay()
        return list(self.store.load().transactions)
