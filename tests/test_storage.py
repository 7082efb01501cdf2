"""
Tests for the storage backends.

KVStore runs on MemoryKV; SupabaseTableStore runs on a mocked Supabase client.
"""

from unittest.mock import MagicMock, patch

import pytest

from portal import storage
from portal.storage import KVStore, StorageError, SupabaseKV, SupabaseTableStore


# =============================================================================
# KV BACKEND
# =============================================================================

class TestKVStore:

    def test_clients_scoped_to_owner(self, store):
        mine = store.create_client("owner-a", {"name": "Jane Smith", "status": "new"})
        store.create_client("owner-b", {"name": "Acme LLC", "status": "new"})

        assert [c["id"] for c in store.list_clients("owner-a")] == [mine["id"]]
        assert store.get_client("owner-b", mine["id"]) is None
        assert store.update_client("owner-b", mine["id"], {"name": "Hijacked"}) is None
        assert store.delete_client("owner-b", mine["id"]) is False
        assert store.get_client("owner-a", mine["id"])["name"] == "Jane Smith"

    def test_update_merges(self, store):
        client = store.create_client("owner-a", {"name": "Jane Smith", "status": "new"})
        updated = store.update_client("owner-a", client["id"], {"status": "ready"})
        assert updated["name"] == "Jane Smith"
        assert updated["status"] == "ready"
        assert updated["created_by"] == "owner-a"

    def test_delete(self, store):
        client = store.create_client("owner-a", {"name": "Jane Smith"})
        assert store.delete_client("owner-a", client["id"]) is True
        assert store.get_client("owner-a", client["id"]) is None

    def test_onboarding_upsert_is_idempotent(self, store):
        store.upsert_onboarding("c1", {"name": "Jane", "completion_step": 2})
        store.upsert_onboarding("c1", {"name": "Jane", "completion_step": 3})
        assert store.get_onboarding("c1")["completion_step"] == 3
        assert store.get_onboarding("c1")["client_id"] == "c1"

    def test_settings_shared(self, store):
        assert store.get_settings() is None
        store.save_settings({"companyName": "Smith & Co"}, "user-1")
        assert store.get_settings() == {"companyName": "Smith & Co"}

    def test_documents_listed_per_client(self, store):
        store.add_document({"client_id": "c1", "document_type": "w2s", "file_name": "w2.pdf"})
        store.add_document({"client_id": "c2", "document_type": "w2s", "file_name": "other.pdf"})
        assert [d["file_name"] for d in store.list_documents("c1")] == ["w2.pdf"]

    def test_returned_records_are_copies(self, store):
        store.save_billing("c1", {"services": []})
        sheet = store.get_billing("c1")
        sheet["services"].append({"id": "1"})
        assert store.get_billing("c1") == {"services": []}

    def test_files_kept_in_memory(self, store):
        store.upload_file("c1/w2s-1.pdf", b"%PDF", "application/pdf")
        assert store.files.files["c1/w2s-1.pdf"] == b"%PDF"

    def test_portal_updates_need_existing_rows(self, store):
        assert store.update_task("c1", "missing", {"status": "complete"}) is None
        assert store.update_message("c1", "missing", {"unread": False}) is None


class TestSupabaseKV:

    def test_get(self):
        supabase = MagicMock()
        query = supabase.table.return_value.select.return_value.eq.return_value.limit.return_value
        query.execute.return_value = MagicMock(data=[{"value": {"name": "Jane"}}])

        assert SupabaseKV(supabase).get("client:a:1") == {"name": "Jane"}
        supabase.table.assert_called_with("kv_store")

    def test_scan_uses_prefix(self):
        supabase = MagicMock()
        query = supabase.table.return_value.select.return_value.like.return_value
        query.execute.return_value = MagicMock(data=[{"key": "task:c1:1", "value": {"id": "1"}}])

        assert SupabaseKV(supabase).scan("task:c1:") == [{"id": "1"}]
        supabase.table.return_value.select.return_value.like.assert_called_with("key", "task:c1:%")

    def test_failure_raises_storage_error(self):
        supabase = MagicMock()
        supabase.table.return_value.upsert.return_value.execute.side_effect = Exception("connection reset")
        with pytest.raises(StorageError):
            SupabaseKV(supabase).set("settings:app", {})


# =============================================================================
# TABLE BACKEND
# =============================================================================

class TestSupabaseTableStore:

    def test_get_client_filters_by_owner(self):
        supabase = MagicMock()
        query = supabase.table.return_value.select.return_value.eq.return_value.eq.return_value.limit.return_value
        query.execute.return_value = MagicMock(data=[{"id": "c1", "created_by": "owner-a"}])

        client = SupabaseTableStore(supabase).get_client("owner-a", "c1")
        assert client["id"] == "c1"
        supabase.table.return_value.select.return_value.eq.return_value.eq.assert_called_with("created_by", "owner-a")

    def test_missing_client(self):
        supabase = MagicMock()
        query = supabase.table.return_value.select.return_value.eq.return_value.eq.return_value.limit.return_value
        query.execute.return_value = MagicMock(data=[])
        assert SupabaseTableStore(supabase).get_client("owner-a", "c1") is None

    def test_upsert_onboarding_on_client_id(self):
        supabase = MagicMock()
        supabase.table.return_value.upsert.return_value.execute.return_value = MagicMock(data=[{"client_id": "c1"}])

        SupabaseTableStore(supabase).upsert_onboarding("c1", {"name": "Jane"})
        supabase.table.assert_called_with("onboarding_responses")
        supabase.table.return_value.upsert.assert_called_with({"name": "Jane", "client_id": "c1"}, on_conflict="client_id")

    def test_settings_value_unwrapped(self):
        supabase = MagicMock()
        query = supabase.table.return_value.select.return_value.eq.return_value.limit.return_value
        query.execute.return_value = MagicMock(data=[{"setting_key": "app:settings", "setting_value": {"companyName": "X"}}])
        assert SupabaseTableStore(supabase).get_settings() == {"companyName": "X"}

    def test_query_failure(self):
        supabase = MagicMock()
        supabase.table.return_value.select.return_value.eq.return_value.order.return_value.execute.side_effect = Exception("timeout")
        with pytest.raises(StorageError):
            SupabaseTableStore(supabase).list_clients("owner-a")

    def test_upload_goes_to_bucket(self):
        supabase = MagicMock()
        SupabaseTableStore(supabase).upload_file("c1/w2s-1.pdf", b"%PDF", "application/pdf")
        supabase.storage.from_.assert_called_with(storage.DOCUMENTS_BUCKET)
        supabase.storage.from_.return_value.upload.assert_called_with(
            "c1/w2s-1.pdf", b"%PDF", {"upsert": "true", "content-type": "application/pdf"}
        )


# =============================================================================
# FACTORY
# =============================================================================

class TestBuildStore:

    def test_memory_store_is_shared(self):
        assert storage.build_store("memory") is storage.build_store("memory")

    def test_supabase_backends_need_configuration(self):
        with patch("portal.storage.get_supabase", return_value=None):
            assert storage.build_store("table") is None
            assert storage.build_store("kv") is None

    def test_backend_selection(self):
        with patch("portal.storage.get_supabase", return_value=MagicMock()):
            assert isinstance(storage.build_store("table"), SupabaseTableStore)
            assert isinstance(storage.build_store("kv"), KVStore)

    def test_unknown_backend(self):
        with patch("portal.storage.get_supabase", return_value=MagicMock()):
            with pytest.raises(ValueError):
                storage.build_store("redis")

    def test_unknown_backend_rejected_without_supabase(self):
        with patch("portal.storage.get_supabase", return_value=None):
            with pytest.raises(ValueError):
                storage.build_store("redis")

    def test_check_storage_backend(self):
        assert storage.check_storage_backend("kv") == "kv"
        with pytest.raises(ValueError) as exc:
            storage.check_storage_backend("redis")
        assert "table, kv, memory" in str(exc.value)
