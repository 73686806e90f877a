"""
Quote facts store — mutable derived state per quote.

load() never fails on a missing quote: it returns a default record with
stage_pending_bump=False. save() overwrites the whole record (last writer
wins). Callers that merge multi-field state use update(), which runs the
read-modify-write under the store's concurrency contract:

    InMemoryFactsStore   per-key lock
    SqlFactsStore        optimistic version check, bounded retries

Revision flag lifecycle: clean -> pending (mark_pending_revision) -> clean
(clear_pending_revision, called by whoever applies the revision). Repeated
marks collapse into one flag.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import update as sql_update
from sqlalchemy.exc import IntegrityError

from .config import settings
from .errors import ConcurrentUpdateError

logger = logging.getLogger(__name__)

NO_THREAD = "no-thread"


class QuoteFacts(BaseModel):
    """Facts record. Any extra derived fields are kept as-is."""
    model_config = ConfigDict(extra="allow")

    stage_pending_bump: bool = False
    # Store bookkeeping, not persisted inside the facts payload
    version: int = 0

    def payload(self) -> dict:
        return self.model_dump(mode="json", exclude={"version"})


Mutator = Callable[[QuoteFacts], Optional[QuoteFacts]]


class FactsStore(ABC):
    """Storage-agnostic load/save of QuoteFacts keyed by quote id."""

    def __init__(self, namespace: str = None, env: str = None):
        self.namespace = namespace or settings.FACTS_NAMESPACE
        self.env = env or settings.APP_ENV

    def key_for(self, quote_id) -> str:
        qid = str(quote_id if quote_id is not None else "").strip()
        return f"{self.namespace}:{self.env}:{qid or NO_THREAD}"

    @abstractmethod
    def load(self, quote_id) -> QuoteFacts:
        """Current record, or a default one if the quote has none."""

    @abstractmethod
    def save(self, quote_id, facts: QuoteFacts) -> None:
        """Overwrite the full record. Last writer wins."""

    @abstractmethod
    def update(self, quote_id, mutate: Mutator) -> QuoteFacts:
        """
        Serialized read-modify-write. `mutate` may change the record in
        place or return a replacement. Returns the saved record.
        """


def _apply(mutate: Mutator, facts: QuoteFacts) -> QuoteFacts:
    result = mutate(facts)
    return facts if result is None else result


class InMemoryFactsStore(FactsStore):
    """Process-local store. Per-key RLock serializes save() and update()."""

    def __init__(self, namespace: str = None, env: str = None):
        super().__init__(namespace, env)
        self._records: dict = {}
        self._locks: dict = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    def load(self, quote_id) -> QuoteFacts:
        key = self.key_for(quote_id)
        record = self._records.get(key)
        if record is None:
            return QuoteFacts()
        payload, version = record
        return QuoteFacts.model_validate({**copy.deepcopy(payload), "version": version})

    def save(self, quote_id, facts: QuoteFacts) -> None:
        key = self.key_for(quote_id)
        with self._lock_for(key):
            previous = self._records.get(key)
            version = (previous[1] if previous else 0) + 1
            self._records[key] = (facts.payload(), version)

    def update(self, quote_id, mutate: Mutator) -> QuoteFacts:
        key = self.key_for(quote_id)
        with self._lock_for(key):
            facts = _apply(mutate, self.load(quote_id))
            self.save(quote_id, facts)
            return self.load(quote_id)


class SqlFactsStore(FactsStore):
    """SQLAlchemy-backed store (quote_facts table)."""

    def __init__(self, session_factory=None, namespace: str = None, env: str = None,
                 max_retries: int = None):
        super().__init__(namespace, env)
        if session_factory is None:
            from .database import SessionLocal
            session_factory = SessionLocal
        self.session_factory = session_factory
        self.max_retries = max_retries or settings.FACTS_UPDATE_RETRIES

    def load(self, quote_id) -> QuoteFacts:
        from . import models

        db = self.session_factory()
        try:
            record = db.get(models.QuoteFactsRecord, self.key_for(quote_id))
            if record is None:
                return QuoteFacts()
            return QuoteFacts.model_validate({**(record.facts or {}), "version": record.version})
        finally:
            db.close()

    def save(self, quote_id, facts: QuoteFacts) -> None:
        from . import models

        key = self.key_for(quote_id)
        db = self.session_factory()
        try:
            if db.get(models.QuoteFactsRecord, key) is None:
                db.add(models.QuoteFactsRecord(
                    key=key, quote_id=str(quote_id), facts=facts.payload(), version=1,
                ))
                try:
                    db.commit()
                    return
                except IntegrityError:
                    # Another writer created the row first; overwrite it below
                    db.rollback()
                    logger.info("Facts for %s inserted concurrently, overwriting", key)

            db.execute(
                sql_update(models.QuoteFactsRecord)
                .where(models.QuoteFactsRecord.key == key)
                .values(facts=facts.payload(), version=models.QuoteFactsRecord.version + 1)
            )
            db.commit()
        finally:
            db.close()

    def update(self, quote_id, mutate: Mutator) -> QuoteFacts:
        key = self.key_for(quote_id)
        for attempt in range(1, self.max_retries + 1):
            current = self.load(quote_id)
            expected = current.version
            facts = _apply(mutate, current)
            if self._compare_and_swap(key, quote_id, expected, facts):
                return self.load(quote_id)
            logger.info("Facts for %s changed concurrently (attempt %d), retrying", key, attempt)
        raise ConcurrentUpdateError(str(quote_id), self.max_retries)

    def _compare_and_swap(self, key: str, quote_id, expected: int, facts: QuoteFacts) -> bool:
        from . import models

        db = self.session_factory()
        try:
            if expected == 0:
                db.add(models.QuoteFactsRecord(
                    key=key, quote_id=str(quote_id), facts=facts.payload(), version=1,
                ))
                try:
                    db.commit()
                except IntegrityError:
                    db.rollback()
                    return False
                return True

            result = db.execute(
                sql_update(models.QuoteFactsRecord)
                .where(models.QuoteFactsRecord.key == key)
                .where(models.QuoteFactsRecord.version == expected)
                .values(facts=facts.payload(), version=expected + 1)
            )
            db.commit()
            return result.rowcount == 1
        finally:
            db.close()


def mark_pending_revision(store: FactsStore, quote_id) -> QuoteFacts:
    """
    Queue a human-initiated revision: load, set stage_pending_bump, save.
    Not atomic: two concurrent marks both write True, which is harmless.
    """
    facts = store.load(quote_id)
    facts.stage_pending_bump = True
    store.save(quote_id, facts)
    logger.info("Quote %s marked pending revision", quote_id)
    return facts


def clear_pending_revision(store: FactsStore, quote_id) -> QuoteFacts:
    """Called once the queued revision has been applied."""
    def _clear(facts: QuoteFacts):
        facts.stage_pending_bump = False

    return store.update(quote_id, _clear)


def has_pending_revision(store: FactsStore, quote_id) -> bool:
    return bool(store.load(quote_id).stage_pending_bump)
