"""Tests for the JSON document store."""

import json
import threading

import pytest

from pengu_platform.models import FinancialTransaction, TransactionType, User, UserRole
from pengu_platform.storage import JsonStore, StoreError


@pytest.fixture
def store(tmp_path, clock):
    return JsonStore(tmp_path / "store", clock=clock)


def make_user(email="reader@pengu.test", credits=0):
    return User(email=email, name="Reader", role=UserRole.STUDENT, credits=credits)


# ── Basic persistence ─────────────────────────────────────────────────────

class TestPutAndGet:
    def test_put_bumps_version_and_timestamp(self, store, clock):
        user = make_user()
        with store.transaction() as txn:
            txn.put("users", user)
        assert user.version == 1
        assert user.updated_at == clock()

        clock.advance(minutes=5)
        with store.transaction() as txn:
            loaded = txn.get("users", user.id)
            txn.put("users", loaded)
        assert loaded.version == 2
        assert loaded.updated_at == clock()

    def test_data_survives_a_new_store(self, store, tmp_path):
        user = make_user(credits=250)
        with store.transaction() as txn:
            txn.put("users", user)

        reopened = JsonStore(tmp_path / "store")
        loaded = reopened.get("users", user.id)
        assert loaded.email == "reader@pengu.test"
        assert loaded.credits == 250
        assert loaded.role == UserRole.STUDENT

    def test_file_is_a_json_list(self, store):
        with store.transaction() as txn:
            txn.put("users", make_user())
        data = json.loads(store.path_for("users").read_text())
        assert isinstance(data, list)
        assert data[0]["email"] == "reader@pengu.test"

    def test_find_matches_all_criteria(self, store):
        with store.transaction() as txn:
            txn.put("users", make_user("a@pengu.test", credits=10))
            txn.put("users", make_user("b@pengu.test", credits=10))
            txn.put("users", make_user("c@pengu.test", credits=20))
            assert len(txn.find("users", credits=10)) == 2
            assert len(txn.find("users", credits=10, email="b@pengu.test")) == 1

    def test_unknown_collection(self, store):
        with pytest.raises(StoreError):
            with store.transaction() as txn:
                txn.get("tickets", "T-1")


# ── Atomicity ─────────────────────────────────────────────────────────────

class TestAtomicity:
    def test_exception_discards_changes(self, store):
        user = make_user()
        with pytest.raises(RuntimeError):
            with store.transaction() as txn:
                txn.put("users", user)
                raise RuntimeError("boom")
        assert store.get("users", user.id) is None
        assert not store.path_for("users").exists()

    def test_no_temp_files_left_behind(self, store):
        with store.transaction() as txn:
            txn.put("users", make_user())
        assert not list(store.data_dir.glob(".*.tmp"))

    def test_reads_do_not_rewrite_files(self, store):
        with store.transaction() as txn:
            txn.put("users", make_user())
        before = store.path_for("users").stat().st_mtime_ns
        store.list("users")
        assert store.path_for("users").stat().st_mtime_ns == before


class TestNestedTransactions:
    def test_inner_joins_outer(self, store):
        user = make_user()
        with store.transaction() as outer:
            with store.transaction() as inner:
                assert inner is outer
                inner.put("users", user)
            assert outer.get("users", user.id) is user
        assert store.get("users", user.id) is not None

    def test_after_commit_runs_once_outer_exits(self, store):
        calls = []
        with store.transaction() as outer:
            with store.transaction() as inner:
                inner.put("users", make_user())
                inner.after_commit(lambda: calls.append("delivered"))
            assert calls == []
        assert calls == ["delivered"]

    def test_after_commit_skipped_on_failure(self, store):
        calls = []
        with pytest.raises(ValueError):
            with store.transaction() as txn:
                txn.after_commit(lambda: calls.append("delivered"))
                raise ValueError("abort")
        assert calls == []


# ── Ledger entries ────────────────────────────────────────────────────────

class TestAppend:
    def test_duplicate_id_rejected(self, store):
        entry = FinancialTransaction(
            type=TransactionType.INCOME, amount=100, description="Payment", reference="ORD-1"
        )
        with store.transaction() as txn:
            txn.append("transactions", entry)

        with pytest.raises(StoreError):
            with store.transaction() as txn:
                txn.append("transactions", entry)
        assert len(store.list("transactions")) == 1


# ── Concurrency ───────────────────────────────────────────────────────────

class TestConcurrency:
    def test_no_lost_updates(self, tmp_path):
        data_dir = tmp_path / "shared"
        user = make_user()
        with JsonStore(data_dir).transaction() as txn:
            txn.put("users", user)

        def bump():
            store = JsonStore(data_dir)
            for _ in range(25):
                with store.transaction() as txn:
                    loaded = txn.get("users", user.id)
                    loaded.credits += 1
                    txn.put("users", loaded)

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        final = JsonStore(data_dir).get("users", user.id)
        assert final.credits == 100
        assert final.version == 101
