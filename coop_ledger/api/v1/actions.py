"""POST /v1/actions - Apply one state-transition action"""

import time
import logging
from datetime import date
from typing import Any, Dict
from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, Query, Request

from coop_ledger.api.v1.schemas import ActionResponse
from coop_ledger.api.dependencies import get_request_id, get_state_store, get_today
from coop_ledger.domain.actions import parse_action
from coop_ledger.domain.exceptions import NotFoundError, ValidationError
from coop_ledger.domain.reducer import apply_action, recompute
from coop_ledger.infrastructure.store import StateStore
from coop_ledger.infrastructure.observability.metrics import record_action
from coop_ledger.infrastructure.observability.logging import log_action

router = APIRouter()


@router.post("/actions", response_model=ActionResponse)
def post_action(
    background_tasks: BackgroundTasks,
    request: Request,
    payload: Dict[str, Any] = Body(..., description='Action object, e.g. {"type": "ADD_PAYMENT", ...}'),
    user_id: str = Query(..., min_length=1, description="User identifier"),
    store: StateStore = Depends(get_state_store),
    today: date = Depends(get_today),
):
    """
    Apply an action to the user's snapshot and persist the result.

    Flow:
    1. Validate the action payload
    2. Load the user's snapshot (row store, then local cache)
    3. Apply the action and recompute balance and penalties
    4. Write the local cache now, the row store after the response
    5. Return balance, interest pool, new penalty count and the snapshot
    """
    start_time = time.time()
    request_id = get_request_id(request)
    action_type = "invalid"

    try:
        action = parse_action(payload)
        action_type = action.type

        state = apply_action(store.load(user_id, today), action, today)
        penalties_before = len(state.penalties)
        state = recompute(state, today)
        penalties_assessed = len(state.penalties) - penalties_before

    except NotFoundError as e:
        record_action(action_type, applied=False)
        log_action(request_id, user_id, action_type, "rejected", 0, (time.time() - start_time) * 1000)
        raise HTTPException(status_code=404, detail=str(e))

    except ValidationError as e:
        record_action(action_type, applied=False)
        log_action(request_id, user_id, action_type, "rejected", 0, (time.time() - start_time) * 1000)
        raise HTTPException(status_code=422, detail=str(e))

    data = store.save(user_id, state)
    background_tasks.add_task(store.save_remote, user_id, data)

    # Record metrics and logs
    duration_ms = (time.time() - start_time) * 1000
    record_action(action_type, applied=True, penalties_assessed=penalties_assessed)
    log_action(request_id, user_id, action_type, "applied", penalties_assessed, duration_ms)
    if penalties_assessed:
        logging.info(
            "Penalties assessed",
            extra={"request_id": request_id, "user_id": user_id, "count": penalties_assessed},
        )

    return ActionResponse(
        current_balance=float(state.current_balance),
        total_interest_pool=float(state.total_interest_pool),
        penalties_assessed=penalties_assessed,
        state=data,
    )
