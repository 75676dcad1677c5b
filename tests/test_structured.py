"""Tests for structured PHI separation and upsert."""

import pytest

from phivault.common.exceptions import InvalidIdentifierError, VaultWriteError
from phivault.phi.adapters.memory_store import MemoryPHIVaultStore
from phivault.phi.structured import has_any_value, separate_structured_phi, upsert_structured_phi
from phivault.phi.tokens import new_vault_id

PHI = {
    "legal_name": {"given": "John", "family": "Doe"},
    "full_dob": "1990-06-15",
    "sex": "male",
    "address": {"line1": "123 Main St", "city": "Springfield", "state": "IL", "country": "US"},
}


class RecordingStore(MemoryPHIVaultStore):
    """Memory store that records which operations ran."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[str] = []

    async def get_structured_by_subject(self, subject_id):
        self.calls.append("get_by_subject")
        return await super().get_structured_by_subject(subject_id)

    async def update_structured(self, vault_id, payload):
        self.calls.append("update")
        return await super().update_structured(vault_id, payload)

    async def insert_structured(self, subject_id, payload):
        self.calls.append("insert")
        return await super().insert_structured(subject_id, payload)


class BrokenStore(MemoryPHIVaultStore):
    async def insert_structured(self, subject_id, payload):
        raise OSError("disk full")


class TestHasAnyValue:
    """Test the deep emptiness check."""

    @pytest.mark.parametrize("value", [None, "", "   ", [], {}, {"a": None, "b": {"c": " "}}, [None, ""]])
    def test_empty(self, value) -> None:
        assert not has_any_value(value)

    @pytest.mark.parametrize("value", ["x", 0, False, {"a": {"b": "x"}}, [None, 1990]])
    def test_non_empty(self, value) -> None:
        """Any scalar other than None counts, including 0 and False."""
        assert has_any_value(value)


class TestSeparateStructuredPhi:
    """Test splitting the PHI sub-object off a subject record."""

    def test_split(self) -> None:
        record = {"display_name": "Patient A", "phi": PHI}
        result = separate_structured_phi(record)
        assert result.sanitized == {"display_name": "Patient A"}
        assert result.phi_payload == PHI

    def test_without_key(self) -> None:
        record = {"display_name": "Patient A"}
        result = separate_structured_phi(record)
        assert result.sanitized == record
        assert result.phi_payload is None

    def test_empty_phi_removed_without_payload(self) -> None:
        """An all-empty PHI object is stripped but not vaulted."""
        result = separate_structured_phi({"display_name": "A", "phi": {"legal_name": {"given": ""}}})
        assert result.sanitized == {"display_name": "A"}
        assert result.phi_payload is None

    def test_custom_key(self) -> None:
        result = separate_structured_phi({"identity": {"sex": "female"}, "x": 1}, key="identity")
        assert result.sanitized == {"x": 1}
        assert result.phi_payload == {"sex": "female"}

    def test_input_not_mutated(self) -> None:
        record = {"display_name": "A", "phi": PHI}
        separate_structured_phi(record)
        assert "phi" in record


class TestUpsertStructuredPhi:
    """Test the update-by-id, update-by-subject, insert order."""

    @pytest.mark.asyncio
    async def test_insert_when_new(self, subject_id) -> None:
        store = RecordingStore()
        vault_id = await upsert_structured_phi(store, subject_id, PHI)
        assert store.calls == ["get_by_subject", "insert"]
        entry = store.structured[vault_id]
        assert entry.subject_id == subject_id
        assert entry.legal_name == {"given": "John", "family": "Doe"}

    @pytest.mark.asyncio
    async def test_update_by_existing_id(self, subject_id) -> None:
        store = RecordingStore()
        vault_id = await upsert_structured_phi(store, subject_id, PHI)
        store.calls.clear()

        result = await upsert_structured_phi(store, subject_id, {"preferred_name": "Johnny"}, vault_id)
        assert result == vault_id
        assert store.calls == ["update"]
        assert store.structured[vault_id].preferred_name == "Johnny"
        assert store.structured[vault_id].full_dob == "1990-06-15"

    @pytest.mark.asyncio
    async def test_update_by_subject(self, subject_id) -> None:
        """Without a known id, the subject's existing entry is reused."""
        store = RecordingStore()
        vault_id = await upsert_structured_phi(store, subject_id, PHI)
        store.calls.clear()

        result = await upsert_structured_phi(store, subject_id, {"sex": "female"})
        assert result == vault_id
        assert store.calls == ["get_by_subject", "update"]
        assert len(store.structured) == 1

    @pytest.mark.asyncio
    async def test_stale_id_falls_back_to_insert(self, subject_id) -> None:
        """A vault id that matches nothing never comes back as the reference."""
        store = RecordingStore()
        stale = new_vault_id()

        vault_id = await upsert_structured_phi(store, subject_id, PHI, existing_vault_id=stale)
        assert vault_id != stale
        assert store.calls == ["update", "get_by_subject", "insert"]
        assert store.structured[vault_id].full_dob == "1990-06-15"

    @pytest.mark.asyncio
    async def test_stale_id_falls_back_to_subject_entry(self, subject_id) -> None:
        store = RecordingStore()
        current = await upsert_structured_phi(store, subject_id, PHI)
        store.calls.clear()

        vault_id = await upsert_structured_phi(store, subject_id, {"sex": "female"}, new_vault_id())
        assert vault_id == current
        assert store.calls == ["update", "get_by_subject", "update"]
        assert store.structured[current].sex == "female"

    @pytest.mark.asyncio
    async def test_unknown_keys_dropped(self, subject_id) -> None:
        store = MemoryPHIVaultStore()
        vault_id = await upsert_structured_phi(store, subject_id, {"sex": "female", "ssn": "123-45-6789"})
        assert store.structured[vault_id].sex == "female"
        assert not hasattr(store.structured[vault_id], "ssn")

    @pytest.mark.asyncio
    async def test_invalid_ids(self, subject_id) -> None:
        store = MemoryPHIVaultStore()
        with pytest.raises(InvalidIdentifierError):
            await upsert_structured_phi(store, "patient-1", PHI)
        with pytest.raises(InvalidIdentifierError):
            await upsert_structured_phi(store, subject_id, PHI, existing_vault_id="nope")
        assert store.structured == {}

    @pytest.mark.asyncio
    async def test_duplicate_subject_insert_rejected(self, subject_id) -> None:
        """The store's unique-subject rule surfaces as VaultWriteError."""
        store = MemoryPHIVaultStore()
        await store.insert_structured(subject_id, PHI)
        with pytest.raises(VaultWriteError):
            await store.insert_structured(subject_id, PHI)

    @pytest.mark.asyncio
    async def test_store_failure_wrapped(self) -> None:
        with pytest.raises(VaultWriteError) as excinfo:
            await upsert_structured_phi(BrokenStore(), new_vault_id(), PHI)
        assert excinfo.value.operation == "upsert"
