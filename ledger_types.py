import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from constants import UserRole


class EventType(str, Enum):
    REGISTERED = "REGISTERED"
    TRANSFERRED = "TRANSFERRED"
    TEMPERATURE_UPDATED = "TEMPERATURE_UPDATED"
    LOCATION_UPDATED = "LOCATION_UPDATED"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class TransactionMethod(str, Enum):
    REGISTER_DRUG = "registerDrug"
    TRANSFER_DRUG = "transferDrug"
    UPDATE_TEMPERATURE = "updateTemperature"
    UPDATE_LOCATION = "updateLocation"


class ErrorCode(str, Enum):
    UNAUTHORIZED = "Unauthorized"
    NOT_FOUND = "NotFound"
    ALREADY_EXISTS = "AlreadyExists"
    SERIALIZATION_FAILURE = "SerializationFailure"
    CONFLICT = "Conflict"
    PERSISTENCE_FAILURE = "PersistenceFailure"
    INVALID_INPUT = "InvalidInput"


def _compact(data):
    # Unset optional fields are left out of the stored JSON
    return {k: v for k, v in data.items() if v is not None}


def normalize_temperature(value) -> float:
    """Temperatures carry one implied decimal place.

    Raises ValueError, TypeError or OverflowError for values that are not a
    finite number.
    """
    if isinstance(value, bool):
        raise TypeError("temperature must be a number")
    temperature = float(value)
    if not math.isfinite(temperature):
        raise ValueError(f"temperature must be finite, got {value!r}")
    return round(temperature, 1)


@dataclass
class Drug:
    id: str
    name: str
    batch_number: str
    current_owner: str
    temperature: float
    location: str
    registered_at: int
    registered_by: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "batchNumber": self.batch_number,
            "currentOwner": self.current_owner,
            "temperature": self.temperature,
            "location": self.location,
            "registeredAt": self.registered_at,
            "registeredBy": self.registered_by,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Drug":
        return cls(
            id=data["id"],
            name=data["name"],
            batch_number=data["batchNumber"],
            current_owner=data["currentOwner"],
            temperature=normalize_temperature(data["temperature"]),
            location=data["location"],
            registered_at=int(data["registeredAt"]),
            registered_by=data["registeredBy"],
        )


@dataclass(frozen=True)
class DrugHistory:
    drug_id: str
    timestamp: int
    event_type: EventType
    transaction_hash: str
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    temperature: Optional[float] = None
    location: Optional[str] = None

    def to_dict(self) -> dict:
        return _compact({
            "drugId": self.drug_id,
            "timestamp": self.timestamp,
            "eventType": self.event_type.value,
            "transactionHash": self.transaction_hash,
            "fromAddress": self.from_address,
            "toAddress": self.to_address,
            "temperature": self.temperature,
            "location": self.location,
        })

    @classmethod
    def from_dict(cls, data: dict) -> "DrugHistory":
        temperature = data.get("temperature")
        return cls(
            drug_id=data["drugId"],
            timestamp=int(data["timestamp"]),
            event_type=EventType(data["eventType"]),
            transaction_hash=data["transactionHash"],
            from_address=data.get("fromAddress"),
            to_address=data.get("toAddress"),
            temperature=normalize_temperature(temperature) if temperature is not None else None,
            location=data.get("location"),
        )


@dataclass(frozen=True)
class Transaction:
    hash: str
    status: TransactionStatus
    timestamp: int
    from_address: str
    method: TransactionMethod
    to_address: Optional[str] = None
    drug_id: Optional[str] = None

    def to_dict(self) -> dict:
        return _compact({
            "hash": self.hash,
            "status": self.status.value,
            "timestamp": self.timestamp,
            "from": self.from_address,
            "to": self.to_address,
            "method": self.method.value,
            "drugId": self.drug_id,
        })

    @classmethod
    def from_dict(cls, data: dict) -> "Transaction":
        return cls(
            hash=data["hash"],
            status=TransactionStatus(data["status"]),
            timestamp=int(data["timestamp"]),
            from_address=data["from"],
            method=TransactionMethod(data["method"]),
            to_address=data.get("to"),
            drug_id=data.get("drugId"),
        )


@dataclass
class DrugLedger:
    """Aggregate root: products, the transaction log and per-product history.

    ``revision`` is the stored version the ledger was read at. It is kept
    next to the serialized value rather than inside it, and is what
    ``LedgerStore.save`` compares against before overwriting.
    """
    drugs: Dict[str, Drug] = field(default_factory=dict)
    transactions: List[Transaction] = field(default_factory=list)
    history: Dict[str, List[DrugHistory]] = field(default_factory=dict)
    revision: int = field(default=0, compare=False)

    def to_dict(self) -> dict:
        return {
            "drugs": {drug_id: drug.to_dict() for drug_id, drug in self.drugs.items()},
            "transactions": [tx.to_dict() for tx in self.transactions],
            "history": {
                drug_id: [event.to_dict() for event in events]
                for drug_id, events in self.history.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict, revision: int = 0) -> "DrugLedger":
        if not isinstance(data, dict):
            raise ValueError(f"ledger must be an object, got {type(data).__name__}")
        return cls(
            drugs={drug_id: Drug.from_dict(d) for drug_id, d in data["drugs"].items()},
            transactions=[Transaction.from_dict(t) for t in data["transactions"]],
            history={
                drug_id: [DrugHistory.from_dict(e) for e in events]
                for drug_id, events in data["history"].items()
            },
            revision=revision,
        )

    def add_history_entry(self, entry: DrugHistory):
        self.history.setdefault(entry.drug_id, []).append(entry)


@dataclass
class TransactionResult:
    success: bool
    transaction_hash: str = ""
    message: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None

    def to_dict(self) -> dict:
        return _compact({
            "success": self.success,
            "transactionHash": self.transaction_hash,
            "message": self.message,
            "error": self.error,
            "errorCode": self.error_code.value if self.error_code else None,
        })

    @classmethod
    def failure(cls, error_code: ErrorCode, error: str) -> "TransactionResult":
        return cls(success=False, transaction_hash="", error=error, error_code=error_code)


@dataclass(frozen=True)
class User:
    address: str
    role: UserRole
    name: str = ""

    @classmethod
    def for_role(cls, role: UserRole, address: str) -> "User":
        return cls(address=address, role=role, name=role.value.capitalize())

    def to_dict(self) -> dict:
        return {"address": self.address, "role": self.role.value, "name": self.name}

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        role = UserRole(data["role"])
        return cls(address=data["address"], role=role, name=data.get("name") or role.value.capitalize())
