"""State persistence - row store with a local JSON cache that wins while remote writes are pending"""

import json
import logging
import time
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from coop_ledger.config import settings
from coop_ledger.domain.exceptions import PersistenceError
from coop_ledger.domain.migration import initial_state, needs_share_migration, normalize_state
from coop_ledger.domain.models import CoopState
from coop_ledger.infrastructure.database.repositories import StateRepository
from coop_ledger.infrastructure.database.session import SessionLocal, session_scope
from coop_ledger.infrastructure.observability.metrics import (
    persistence_failure_counter,
    remote_save_latency_histogram,
)
from coop_ledger.infrastructure.serialization import state_from_dict, state_to_dict

logger = logging.getLogger(__name__)


class StateStore:
    """
    Loads and saves one CoopState snapshot per user.

    Load order: the row store, then the local cache. From a local save until
    the row store holds that same document (the remote write is pending,
    retrying or has failed) the local cache is read first because it holds
    the newer snapshot.

    Saves write the local cache synchronously; the remote write is meant to run
    after the response (see save_remote) and never raises.
    """

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        cache_dir: str | None = None,
        max_retries: int | None = None,
        backoff_base: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session_factory = session_factory
        self.cache_dir = Path(cache_dir or settings.state_cache_dir)
        self.max_retries = max_retries if max_retries is not None else settings.remote_save_max_retries
        self.backoff_base = backoff_base if backoff_base is not None else settings.remote_save_backoff_base
        self.sleep = sleep
        # user_id -> latest locally saved document not yet confirmed remotely
        self._unsynced: Dict[str, Dict[str, Any]] = {}

    # Local cache

    def _cache_path(self, user_id: str) -> Path:
        return self.cache_dir / f"{quote(user_id, safe='')}.json"

    def load_local(self, user_id: str) -> Optional[Dict[str, Any]]:
        path = self._cache_path(user_id)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Failed to read local cache for {user_id}: {e}") from e

    def save_local(self, user_id: str, data: Dict[str, Any]) -> None:
        path = self._cache_path(user_id)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(json.dumps(data), encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise PersistenceError(f"Failed to write local cache for {user_id}: {e}") from e

    # Row store

    def load_remote(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            with session_scope(self.session_factory) as db:
                return StateRepository(db).get_data(user_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load state for {user_id}: {e}") from e

    def _write_remote(self, user_id: str, data: Dict[str, Any]) -> None:
        try:
            with session_scope(self.session_factory) as db:
                StateRepository(db).upsert(user_id, data)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save state for {user_id}: {e}") from e

    def save_remote(self, user_id: str, data: Dict[str, Any]) -> bool:
        """
        Write the document to the row store with retry.

        Retry strategy:
        - Exponential backoff: base, 2×base, 4×base, ...
        - Gives up after max_retries attempts, logs and counts the failure,
          leaving the local cache as the source loads prefer

        Returns:
            True when the row store holds the document
        """
        attempt = 0
        with remote_save_latency_histogram.time():
            while True:
                try:
                    self._write_remote(user_id, data)
                    if self._unsynced.get(user_id) is data:
                        self._unsynced.pop(user_id, None)
                    return True

                except PersistenceError as e:
                    attempt += 1
                    persistence_failure_counter.labels(target="remote").inc()

                    if attempt >= self.max_retries:
                        logger.error(
                            "Remote save failed, keeping local cache",
                            extra={"user_id": user_id, "attempts": attempt, "error": str(e)},
                        )
                        return False

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    self.sleep(backoff)

    # Snapshot API

    def _load_raw(self, user_id: str) -> Optional[Dict[str, Any]]:
        if user_id in self._unsynced:
            sources = (("local", self.load_local), ("remote", self.load_remote))
        else:
            sources = (("remote", self.load_remote), ("local", self.load_local))

        for target, source in sources:
            try:
                data = source(user_id)
            except PersistenceError as e:
                persistence_failure_counter.labels(target=target).inc()
                logger.warning("State load failed", extra={"user_id": user_id, "target": target, "error": str(e)})
                continue
            if data is not None:
                return data
        return None

    def load(self, user_id: str, today: date) -> CoopState:
        """Stored snapshot for the user, normalized; a fresh dataset if nothing is stored"""
        raw = self._load_raw(user_id)
        if raw is None:
            logger.info("No stored state, starting fresh", extra={"user_id": user_id})
            return initial_state(settings.default_member_count, settings.default_share_price)
        return normalize_state(state_from_dict(raw), today, migrate_shares=needs_share_migration(raw))

    def save(self, user_id: str, state: CoopState) -> Dict[str, Any]:
        """
        Write the local cache and return the document for the remote write.
        Loads read the local cache first until save_remote stores this document.

        A local failure is logged and counted; the remote write still carries
        the snapshot.
        """
        data = state_to_dict(state)
        try:
            self.save_local(user_id, data)
        except PersistenceError as e:
            persistence_failure_counter.labels(target="local").inc()
            logger.error("Local cache write failed", extra={"user_id": user_id, "error": str(e)})
            return data
        self._unsynced[user_id] = data
        return data
