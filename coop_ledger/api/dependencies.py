"""Dependency injection for FastAPI endpoints"""

from datetime import date
from functools import lru_cache
from fastapi import Request
from coop_ledger.infrastructure.store import StateStore


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


@lru_cache
def get_state_store() -> StateStore:
    """Process-wide store, so a failed remote write is remembered across requests"""
    return StateStore()


def get_today() -> date:
    """Clock for penalty assessment and record dates"""
    return date.today()
