"""Behavior Model Store - owns every subject's rolling profile.

Updates for one subject are serialized through a per-subject lock;
different subjects proceed independently. Persistence failures never
propagate into the ingest path.
"""

import copy
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Dict, Iterator, List, Optional

from shieldwatch.common.constants import BehaviorConstants
from shieldwatch.common.exceptions import (
    InvalidEventError,
    StorageCapacityError,
    StorageError,
)
from shieldwatch.data.schemas.login_event import LoginEvent
from shieldwatch.models.behavior.profile import BehaviorModel
from shieldwatch.models.behavior.repository import ModelRepository

logger = logging.getLogger(__name__)


class BehaviorModelStore:
    """Keyed store of BehaviorModel instances.

    Responsibilities:
    - Lazily create a model on a subject's first event
    - Fold each event into the model before detectors run
    - Persist through an injected repository (optional)
    - Purge models untouched for the stale period
    """

    def __init__(
        self,
        repository: Optional[ModelRepository] = None,
        stale_after_days: float = BehaviorConstants.STALE_MODEL_DAYS,
    ):
        """Initialize the store.

        Args:
            repository: Persistence backend. Models stay in memory only if None.
            stale_after_days: Inactivity period after which a model may be purged.
        """
        self.repository = repository
        self.stale_after_days = stale_after_days

        self._models: Dict[str, BehaviorModel] = {}
        self._models_lock = threading.Lock()
        self._subject_locks: Dict[str, threading.RLock] = {}

    @contextmanager
    def subject_lock(self, subject: str) -> Iterator[None]:
        """Serialize work on one subject's model.

        A lock that was retired by purge_stale() while this thread waited
        on it is released and the current one is taken instead.
        """
        while True:
            with self._models_lock:
                lock = self._subject_locks.setdefault(subject, threading.RLock())
            lock.acquire()
            with self._models_lock:
                if self._subject_locks.get(subject) is lock:
                    break
            lock.release()
        try:
            yield
        finally:
            lock.release()

    def update(self, event: LoginEvent) -> BehaviorModel:
        """Fold an event into its subject's model.

        Args:
            event: Validated login event

        Returns:
            The updated model (live object, mutate only under subject_lock)

        Raises:
            InvalidEventError: If the event is not a LoginEvent with a subject
        """
        if not isinstance(event, LoginEvent) or not event.subject:
            raise InvalidEventError(
                "Cannot model an event without a subject",
                details={"event_type": type(event).__name__},
            )

        with self.subject_lock(event.subject):
            with self._models_lock:
                model = self._models.get(event.subject)
                if model is None:
                    model = BehaviorModel.create_empty(event.subject, event.timestamp)
                    self._models[event.subject] = model
                    logger.debug(f"Created behavior model for {event.subject}")

            model.record(event)
            self._persist(model)
            return model

    def _persist(self, model: BehaviorModel) -> None:
        """Save a model, purging stale models and retrying once when full."""
        if self.repository is None:
            return

        try:
            self.repository.save(model)
            return
        except StorageCapacityError as e:
            logger.warning(
                f"Model repository full while saving {model.subject}, purging stale models",
                extra={"error": e.message},
            )
        except StorageError as e:
            logger.error(f"Dropping model write for {model.subject}: {e.message}")
            return

        purged = self.purge_stale(exclude={model.subject})
        try:
            self.repository.save(model)
            logger.info(f"Model write for {model.subject} succeeded after purging {purged} models")
        except StorageError as e:
            logger.error(
                f"Dropping model write for {model.subject} after purge: {e.message}"
            )

    def purge_stale(
        self,
        now: Optional[datetime] = None,
        max_age_days: Optional[float] = None,
        exclude: Optional[set] = None,
    ) -> int:
        """Drop models whose last activity is older than the stale period.

        Safe to run repeatedly; a second run with the same clock removes nothing.
        Subjects whose lock is held by another thread are skipped until the
        next run.

        Args:
            now: Reference time. Defaults to the newest activity across all
                models, so replayed or back-dated histories age by event time.
            max_age_days: Override for the stale period
            exclude: Subjects that must be kept

        Returns:
            Number of models removed
        """
        if max_age_days is None:
            max_age_days = self.stale_after_days
        exclude = exclude or set()

        with self._models_lock:
            if now is None:
                if not self._models:
                    return 0
                now = max(model.last_activity() for model in self._models.values())
            cutoff = now - timedelta(days=max_age_days)
            candidates = [
                (subject, self._subject_locks.setdefault(subject, threading.RLock()))
                for subject, model in self._models.items()
                if subject not in exclude and model.last_activity() < cutoff
            ]

        stale: List[str] = []
        for subject, lock in candidates:
            if not lock.acquire(blocking=False):
                logger.debug(f"Skipping purge of {subject}: model in use")
                continue
            try:
                with self._models_lock:
                    model = self._models.get(subject)
                    if model is None or model.last_activity() >= cutoff:
                        continue
                    del self._models[subject]
                    self._subject_locks.pop(subject, None)
                    stale.append(subject)
            finally:
                lock.release()

        for subject in stale:
            if self.repository is not None:
                try:
                    self.repository.delete(subject)
                except StorageError as e:
                    logger.error(f"Could not delete persisted model for {subject}: {e.message}")

        if stale:
            logger.info(f"Purged {len(stale)} stale behavior models, {len(self)} kept")
        return len(stale)

    def load(self) -> int:
        """Restore persisted models.

        Returns:
            Number of models loaded
        """
        if self.repository is None:
            return 0

        count = 0
        for model in self.repository.load_all():
            with self._models_lock:
                self._models[model.subject] = model
            count += 1

        logger.info(f"Loaded behavior models for {count} subjects")
        return count

    def get(self, subject: str) -> Optional[BehaviorModel]:
        with self._models_lock:
            return self._models.get(subject)

    def snapshot(self, subject: str) -> Optional[BehaviorModel]:
        """Deep copy of a subject's model, safe to read outside the lock.

        Unknown subjects return None without registering a lock.
        """
        if subject not in self:
            return None
        with self.subject_lock(subject):
            model = self.get(subject)
            return copy.deepcopy(model) if model is not None else None

    def subjects(self) -> List[str]:
        with self._models_lock:
            return list(self._models)

    def __len__(self) -> int:
        with self._models_lock:
            return len(self._models)

    def __contains__(self, subject: str) -> bool:
        with self._models_lock:
            return subject in self._models
