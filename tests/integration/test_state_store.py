"""Integration tests for state persistence over sqlite and the local cache"""

import json
import pytest
from datetime import date
from decimal import Decimal
from sqlalchemy.exc import OperationalError
from coop_ledger.domain.exceptions import PersistenceError
from coop_ledger.domain.models import CoopState, Member
from coop_ledger.infrastructure.store import StateStore

TODAY = date(2025, 3, 1)


def test_load_without_stored_state_starts_fresh(store: StateStore):
    """Test a new user gets the default members"""
    state = store.load("new-user", TODAY)

    assert len(state.members) == 20
    assert state.collections == []


def test_save_writes_local_then_remote(store: StateStore, sample_state: CoopState):
    """Test both stores hold the document after a full save"""
    data = store.save("user-1", sample_state)

    assert store.load_local("user-1") == data
    assert store.load_remote("user-1") is None

    assert store.save_remote("user-1", data) is True
    assert store.load_remote("user-1") == data


def test_load_normalizes_stored_state(store: StateStore, sample_state: CoopState):
    """Test loaded snapshots have their balance re-derived"""
    sample_state.current_balance = Decimal("999999")
    store.save_remote("user-1", store.save("user-1", sample_state))

    state = store.load("user-1", TODAY)

    assert state.current_balance == Decimal("500")
    assert state.find_loan("loan-1") is not None


def test_remote_upsert_last_write_wins(store: StateStore, sample_state: CoopState):
    """Test a second save replaces the stored document"""
    store.save_remote("user-1", store.save("user-1", sample_state))
    sample_state.selected_period = "2025-01-25"
    store.save_remote("user-1", store.save("user-1", sample_state))

    assert store.load("user-1", TODAY).selected_period == "2025-01-25"


def test_pending_remote_write_prefers_local(store: StateStore, sample_state: CoopState):
    """Test a local save is read back before its background remote write has run"""
    store.save_remote("user-1", store.save("user-1", sample_state))

    sample_state.members.append(Member(id=4, name="Member 4"))
    store.save("user-1", sample_state)

    assert len(store.load("user-1", TODAY).members) == 4


def test_older_remote_write_keeps_local_preferred(store: StateStore, sample_state: CoopState):
    """Test only the remote write of the latest local save hands loads back to the row store"""
    first = store.save("user-1", sample_state)
    sample_state.members.append(Member(id=4, name="Member 4"))
    second = store.save("user-1", sample_state)

    assert store.save_remote("user-1", first) is True
    assert len(store.load("user-1", TODAY).members) == 4

    assert store.save_remote("user-1", second) is True
    assert len(store.load_remote("user-1")["members"]) == 4


def test_falls_back_to_local_cache_when_remote_fails(store: StateStore, sample_state: CoopState, monkeypatch):
    """Test loads survive an unreachable row store"""
    store.save("user-1", sample_state)

    def broken(user_id):
        raise PersistenceError("row store down")

    monkeypatch.setattr(store, "load_remote", broken)

    state = store.load("user-1", TODAY)
    assert state.find_loan("loan-1") is not None


def test_failed_remote_write_prefers_local(store: StateStore, sample_state: CoopState, monkeypatch):
    """Test after a failed remote write the newer local snapshot is read first"""
    store.save_remote("user-1", store.save("user-1", sample_state))

    sample_state.selected_period = "2025-01-25"
    data = store.save("user-1", sample_state)

    attempts = []

    def failing_write(user_id, document):
        attempts.append(user_id)
        raise PersistenceError("row store down")

    monkeypatch.setattr(store, "_write_remote", failing_write)

    assert store.save_remote("user-1", data) is False
    assert len(attempts) == 2  # max_retries
    assert store.load("user-1", TODAY).selected_period == "2025-01-25"

    monkeypatch.undo()
    assert store.save_remote("user-1", data) is True
    assert store.load_remote("user-1")["selectedPeriod"] == "2025-01-25"


def test_remote_retry_backs_off(session_factory, tmp_path, sample_state: CoopState, monkeypatch):
    """Test exponential backoff between remote attempts"""
    delays = []
    store = StateStore(
        session_factory=session_factory,
        cache_dir=str(tmp_path),
        max_retries=3,
        backoff_base=0.5,
        sleep=delays.append,
    )
    calls = []

    def flaky(user_id, document):
        calls.append(user_id)
        if len(calls) < 3:
            raise PersistenceError("transient")

    monkeypatch.setattr(store, "_write_remote", flaky)

    assert store.save_remote("user-1", store.save("user-1", sample_state)) is True
    assert delays == [0.5, 1.0]


def test_sqlalchemy_errors_become_persistence_errors(store: StateStore, monkeypatch):
    """Test database failures surface as PersistenceError"""

    def broken_factory():
        raise OperationalError("SELECT 1", {}, Exception("unreachable"))

    monkeypatch.setattr(store, "session_factory", broken_factory)

    with pytest.raises(PersistenceError):
        store.load_remote("user-1")


def test_corrupt_local_cache_is_skipped(store: StateStore, tmp_path):
    """Test an unreadable cache file does not break loading"""
    store.cache_dir.mkdir(parents=True, exist_ok=True)
    (store.cache_dir / "user-1.json").write_text("{not json", encoding="utf-8")

    state = store.load("user-1", TODAY)

    assert len(state.members) == 20


def test_legacy_snapshot_gets_share_fields(store: StateStore):
    """Test snapshots written before the share system derive their pool"""
    legacy = {
        "beginningBalance": 0,
        "currentBalance": 0,
        "members": [{"id": 1, "name": "Member 1"}],
        "collections": [{"id": "2025-01-10", "date": "2025-01-10", "totalCollected": 0, "payments": []}],
        "loans": [{
            "id": "l1", "memberId": 1, "amount": 1000, "dateIssued": "2025-01-05",
            "status": "APPROVED", "repaymentPlan": "CUT_OFF", "interestRate": 0.03, "termCount": 1,
        }],
        "repayments": [],
        "penalties": [],
        "selectedPeriod": "2025-01-10",
        "archives": [],
    }
    store.cache_dir.mkdir(parents=True, exist_ok=True)
    (store.cache_dir / "legacy.json").write_text(json.dumps(legacy), encoding="utf-8")

    state = store.load("legacy", TODAY)

    assert state.total_interest_pool == Decimal("30")
    assert state.share_price == Decimal("500")
    assert state.current_balance == Decimal("-1000")
