import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from constants import STORAGE_KEYS, STORAGE_PREFIX
from datetime_utils import get_current_timestamp
from ledger_types import DrugLedger, ErrorCode, User
from models import StorageEntry, db

logger = logging.getLogger(__name__)


class SaveStatus(str, Enum):
    SAVED = "SAVED"
    CONFLICT = "CONFLICT"
    FAILED = "FAILED"


@dataclass(frozen=True)
class SaveResult:
    status: SaveStatus
    revision: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is SaveStatus.SAVED


@dataclass(frozen=True)
class StoredValue:
    raw: str
    revision: int


class StorageAdapter:
    """Prefixed key-value access to the ``storage_entries`` table.

    Every call runs inside its own application context so the adapter can be
    used from request handlers, CLI scripts and tests alike. Storage errors
    are logged and reported through return values, never raised.
    """

    def __init__(self, app, prefix=STORAGE_PREFIX):
        self.app = app
        self.prefix = prefix

    def _key(self, key):
        return f"{self.prefix}{key}"

    def read(self, key) -> Optional[StoredValue]:
        with self.app.app_context():
            try:
                entry = db.session.get(StorageEntry, self._key(key))
            except SQLAlchemyError as e:
                logger.error("Error reading from storage (%s): %s", key, e)
                db.session.rollback()
                return None
            if entry is None:
                return None
            return StoredValue(raw=entry.value, revision=entry.revision)

    def get(self, key):
        stored = self.read(key)
        if stored is None:
            return None
        try:
            return json.loads(stored.raw)
        except ValueError as e:
            logger.error("Error decoding stored value (%s): %s", key, e)
            return None

    def set(self, key, value, expected_revision=None) -> SaveResult:
        """Persist ``value`` as JSON under ``key``.

        With ``expected_revision`` the write only happens if the stored
        revision still matches (0 meaning "not stored yet"); otherwise the
        result is CONFLICT and nothing is written.
        """
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error("Error encoding value for storage (%s): %s", key, e)
            return SaveResult(SaveStatus.FAILED, error=str(e))

        full_key = self._key(key)
        with self.app.app_context():
            try:
                if expected_revision is None:
                    entry = db.session.get(StorageEntry, full_key)
                    if entry is None:
                        entry = StorageEntry(key=full_key, value=payload, revision=1)
                        db.session.add(entry)
                    else:
                        entry.value = payload
                        entry.revision += 1
                    db.session.commit()
                    return SaveResult(SaveStatus.SAVED, revision=entry.revision)

                if expected_revision == 0:
                    db.session.add(StorageEntry(key=full_key, value=payload, revision=1))
                    db.session.commit()
                    return SaveResult(SaveStatus.SAVED, revision=1)

                result = db.session.execute(
                    update(StorageEntry)
                    .where(StorageEntry.key == full_key, StorageEntry.revision == expected_revision)
                    .values(value=payload, revision=expected_revision + 1, updated_at=get_current_timestamp())
                )
                if result.rowcount != 1:
                    db.session.rollback()
                    logger.warning("Revision conflict writing %s (expected %d)", key, expected_revision)
                    return SaveResult(SaveStatus.CONFLICT, error="stored revision changed")
                db.session.commit()
                return SaveResult(SaveStatus.SAVED, revision=expected_revision + 1)
            except IntegrityError:
                db.session.rollback()
                logger.warning("Revision conflict writing %s: key already exists", key)
                return SaveResult(SaveStatus.CONFLICT, error="stored revision changed")
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error("Error writing to storage (%s): %s", key, e)
                return SaveResult(SaveStatus.FAILED, error=str(e))

    def remove(self, key) -> bool:
        with self.app.app_context():
            try:
                db.session.execute(delete(StorageEntry).where(StorageEntry.key == self._key(key)))
                db.session.commit()
                return True
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error("Error removing from storage (%s): %s", key, e)
                return False

    def clear(self) -> bool:
        with self.app.app_context():
            try:
                db.session.execute(delete(StorageEntry).where(StorageEntry.key.startswith(self.prefix, autoescape=True)))
                db.session.commit()
                return True
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error("Error clearing storage: %s", e)
                return False


class LedgerStore:
    """Load/save/reset of the whole ``DrugLedger`` plus the current user record."""

    def __init__(self, adapter: StorageAdapter):
        self.adapter = adapter

    def load(self) -> DrugLedger:
        stored = self.adapter.read(STORAGE_KEYS["LEDGER"])
        if stored is None:
            return self._create_empty(expected_revision=0)

        try:
            return DrugLedger.from_dict(json.loads(stored.raw), revision=stored.revision)
        except (ValueError, KeyError, TypeError, AttributeError, OverflowError) as e:
            logger.warning("%s: stored ledger is corrupt, resetting to empty: %s",
                           ErrorCode.SERIALIZATION_FAILURE.value, e)
            return self._create_empty(expected_revision=stored.revision)

    def _create_empty(self, expected_revision) -> DrugLedger:
        ledger = DrugLedger()
        result = self.adapter.set(STORAGE_KEYS["LEDGER"], ledger.to_dict(), expected_revision=expected_revision)
        if result.ok:
            ledger.revision = result.revision
        else:
            ledger.revision = expected_revision
        return ledger

    def save(self, ledger: DrugLedger) -> SaveResult:
        result = self.adapter.set(STORAGE_KEYS["LEDGER"], ledger.to_dict(), expected_revision=ledger.revision)
        if result.ok:
            ledger.revision = result.revision
        return result

    def overwrite(self, ledger: DrugLedger) -> SaveResult:
        """Replace the stored ledger regardless of its revision."""
        result = self.adapter.set(STORAGE_KEYS["LEDGER"], ledger.to_dict())
        if result.ok:
            ledger.revision = result.revision
        return result

    def reset(self):
        self.adapter.remove(STORAGE_KEYS["LEDGER"])
        self.adapter.remove(STORAGE_KEYS["CURRENT_USER"])
        logger.info("Ledger and current user removed")

    def get_current_user(self) -> Optional[User]:
        data = self.adapter.get(STORAGE_KEYS["CURRENT_USER"])
        if data is None:
            return None
        try:
            return User.from_dict(data)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Stored current user is corrupt, ignoring: %s", e)
            return None

    def set_current_user(self, user: User) -> SaveResult:
        return self.adapter.set(STORAGE_KEYS["CURRENT_USER"], user.to_dict())

    def clear_current_user(self) -> bool:
        return self.adapter.remove(STORAGE_KEYS["CURRENT_USER"])
