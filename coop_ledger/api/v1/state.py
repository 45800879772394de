"""GET /v1/state - Fetch a user's full cooperative snapshot"""

from datetime import date
from typing import Any, Dict
from fastapi import APIRouter, Depends, Query

from coop_ledger.api.dependencies import get_state_store, get_today
from coop_ledger.infrastructure.serialization import state_to_dict
from coop_ledger.infrastructure.store import StateStore

router = APIRouter()


@router.get("/state")
def get_state(
    user_id: str = Query(..., min_length=1, description="User identifier"),
    store: StateStore = Depends(get_state_store),
    today: date = Depends(get_today),
) -> Dict[str, Any]:
    """
    Retrieve the user's snapshot, normalized and with the balance re-derived.

    Users with nothing stored get a fresh dataset (default members, no periods).
    """
    return state_to_dict(store.load(user_id, today))
