"""Behavior model persistence backends.

Decouples the model store from a concrete datastore. Backends raise
StorageError (or StorageCapacityError when out of space); the store
decides how to recover.
"""

from abc import ABC, abstractmethod
import errno
import hashlib
import json
import logging
import threading
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

from shieldwatch.common.exceptions import StorageCapacityError, StorageError
from shieldwatch.models.behavior.profile import BehaviorModel

logger = logging.getLogger(__name__)


class ModelRepository(ABC):
    """Abstract base class for behavior model persistence."""

    @abstractmethod
    def save(self, model: BehaviorModel) -> None:
        """Persist one model.

        Raises:
            StorageCapacityError: If the backend is full
            StorageError: For any other write failure
        """
        pass

    @abstractmethod
    def delete(self, subject: str) -> None:
        """Remove a subject's model. Unknown subjects are ignored."""
        pass

    @abstractmethod
    def load_all(self) -> Iterator[BehaviorModel]:
        """Yield every persisted model."""
        pass


class InMemoryModelRepository(ModelRepository):
    """Dictionary-backed repository with an optional capacity limit."""

    def __init__(self, max_models: Optional[int] = None):
        self.max_models = max_models
        self._data: Dict[str, dict] = {}
        self._lock = threading.Lock()

    def save(self, model: BehaviorModel) -> None:
        with self._lock:
            if (
                self.max_models is not None
                and model.subject not in self._data
                and len(self._data) >= self.max_models
            ):
                raise StorageCapacityError(
                    "Behavior model repository is full",
                    details={"max_models": self.max_models},
                )
            self._data[model.subject] = model.to_dict()

    def delete(self, subject: str) -> None:
        with self._lock:
            self._data.pop(subject, None)

    def load_all(self) -> Iterator[BehaviorModel]:
        with self._lock:
            snapshot = list(self._data.values())
        for data in snapshot:
            yield BehaviorModel.from_dict(data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, subject: str) -> bool:
        return subject in self._data


class FileModelRepository(ModelRepository):
    """One JSON file per subject under a directory.

    File names are a hash of the subject so arbitrary identifiers
    (emails, URNs) are safe on every filesystem.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path_for(self, subject: str) -> Path:
        digest = hashlib.sha256(subject.encode("utf-8")).hexdigest()[:32]
        return self.directory / f"{digest}.json"

    def save(self, model: BehaviorModel) -> None:
        path = self._path_for(model.subject)
        tmp_path = path.with_suffix(".tmp")
        try:
            with open(tmp_path, "w") as f:
                json.dump(model.to_dict(), f)
            tmp_path.replace(path)
        except OSError as e:
            if e.errno in (errno.ENOSPC, errno.EDQUOT):
                raise StorageCapacityError(
                    f"No space left to persist model for {model.subject}",
                    details={"path": str(path)},
                ) from e
            raise StorageError(
                f"Failed to persist model for {model.subject}: {e}",
                details={"path": str(path)},
            ) from e

    def delete(self, subject: str) -> None:
        try:
            self._path_for(subject).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(
                f"Failed to delete model for {subject}: {e}"
            ) from e

    def load_all(self) -> Iterator[BehaviorModel]:
        for model_file in sorted(self.directory.glob("*.json")):
            try:
                with open(model_file, "r") as f:
                    yield BehaviorModel.from_dict(json.load(f))
            except (OSError, ValueError, KeyError) as e:
                logger.warning(f"Skipping corrupt behavior model file {model_file.name}: {e}")
