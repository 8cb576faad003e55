"""Tests for the key-value storage adapter and the ledger store."""

import pytest

from conftest import DISTRIBUTOR, MANUFACTURER
from constants import UserRole
from ledger_types import DrugLedger, User
from models import StorageEntry, db
from storage import LedgerStore, SaveStatus, StorageAdapter


def write_raw(app, key, raw, revision=1):
    with app.app_context():
        db.session.add(StorageEntry(key=key, value=raw, revision=revision))
        db.session.commit()


class TestStorageAdapter:

    def test_values_are_namespaced(self, app):
        adapter = StorageAdapter(app)
        assert adapter.set("ledger", {"a": 1}).ok

        with app.app_context():
            entry = db.session.get(StorageEntry, "pharmachain_ledger")
            assert entry is not None
            assert entry.revision == 1
        assert adapter.get("ledger") == {"a": 1}

    def test_missing_key(self, app):
        assert StorageAdapter(app).get("nothing") is None

    def test_undecodable_value_reads_as_missing(self, app):
        write_raw(app, "pharmachain_current_user", "{not json")
        assert StorageAdapter(app).get("current_user") is None

    def test_expected_revision(self, app):
        adapter = StorageAdapter(app)
        first = adapter.set("ledger", {"v": 1}, expected_revision=0)
        assert first.status is SaveStatus.SAVED
        assert first.revision == 1

        assert adapter.set("ledger", {"v": 2}, expected_revision=0).status is SaveStatus.CONFLICT
        assert adapter.set("ledger", {"v": 2}, expected_revision=5).status is SaveStatus.CONFLICT
        assert adapter.get("ledger") == {"v": 1}

        second = adapter.set("ledger", {"v": 2}, expected_revision=1)
        assert second.ok
        assert second.revision == 2
        assert adapter.get("ledger") == {"v": 2}

    def test_unencodable_value_fails_without_raising(self, app):
        result = StorageAdapter(app).set("ledger", {"bad": object()})
        assert result.status is SaveStatus.FAILED

    def test_clear_only_touches_prefixed_keys(self, app):
        adapter = StorageAdapter(app)
        adapter.set("ledger", {})
        adapter.set("current_user", {})
        write_raw(app, "otherapp_ledger", "{}")

        assert adapter.clear()

        assert adapter.get("ledger") is None
        assert adapter.get("current_user") is None
        assert StorageAdapter(app, prefix="otherapp_").get("ledger") == {}


class TestLedgerStore:

    def test_load_creates_and_persists_empty_ledger(self, app, store):
        ledger = store.load()

        assert ledger == DrugLedger()
        assert ledger.revision == 1
        assert StorageAdapter(app).get("ledger") == {"drugs": {}, "transactions": [], "history": {}}

    def test_corrupt_json_recovers_to_empty(self, app, store):
        write_raw(app, "pharmachain_ledger", "{{{ definitely not json", revision=3)

        ledger = store.load()

        assert ledger == DrugLedger()
        assert ledger.revision == 4
        assert StorageAdapter(app).get("ledger") == {"drugs": {}, "transactions": [], "history": {}}

    def test_wrong_shape_recovers_to_empty(self, app, store):
        StorageAdapter(app).set("ledger", {"drugs": [], "transactions": {}, "history": 7})
        assert store.load() == DrugLedger()

    @pytest.mark.asyncio
    async def test_round_trip_preserves_structure(self, app, service):
        await service.register_drug("DRUG-B", "Vaccine-X", "B-2", MANUFACTURER)
        await service.register_drug("DRUG-A", "Aspirin", "B-1", MANUFACTURER, -1.5, "Cold Room")
        await service.transfer_drug("DRUG-B", MANUFACTURER, DISTRIBUTOR)
        await service.update_location("DRUG-B", "Dock 4", DISTRIBUTOR)

        original = service.store.load()
        reloaded = LedgerStore(StorageAdapter(app)).load()

        assert reloaded == original
        assert list(reloaded.drugs) == ["DRUG-B", "DRUG-A"]
        assert [tx.hash for tx in reloaded.transactions] == [tx.hash for tx in original.transactions]
        assert reloaded.drugs["DRUG-A"].temperature == -1.5
        assert reloaded.to_dict() == original.to_dict()

    @pytest.mark.asyncio
    async def test_unset_optional_fields_are_not_stored(self, app, service):
        await service.register_drug("DRUG-A", "Aspirin", "B-1", MANUFACTURER)
        await service.transfer_drug("DRUG-A", MANUFACTURER, DISTRIBUTOR)

        stored = StorageAdapter(app).get("ledger")
        registered_tx, transfer_tx = stored["transactions"]
        assert "to" not in registered_tx
        assert transfer_tx["to"] == DISTRIBUTOR

        transferred = stored["history"]["DRUG-A"][1]
        assert transferred["eventType"] == "TRANSFERRED"
        assert "temperature" not in transferred
        assert "location" not in transferred

    def test_current_user_and_reset(self, app, store):
        user = User.for_role(UserRole.DISTRIBUTOR, DISTRIBUTOR)
        assert store.set_current_user(user).ok
        store.load()

        assert store.get_current_user() == user
        assert store.get_current_user().name == "Distributor"

        store.reset()

        adapter = StorageAdapter(app)
        assert adapter.get("ledger") is None
        assert adapter.get("current_user") is None
        assert store.get_current_user() is None

    def test_clear_current_user(self, store):
        store.set_current_user(User.for_role(UserRole.PATIENT, "0xP"))
        store.clear_current_user()
        assert store.get_current_user() is None
