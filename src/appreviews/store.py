"""Durable in-memory review store with an atomically replaced JSON mirror.

This is the only component allowed to mutate the review map or the
mirror file. Everything else reads through snapshot copies.
"""

from __future__ import annotations

import contextlib
import logging
import os
import threading
from collections.abc import Callable, Iterable, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from appreviews.exceptions import CorruptStateError, PersistError, StoreError
from appreviews.models.review import Review

_logger = logging.getLogger(__name__)

_REVIEW_LIST = TypeAdapter(list[Review])


def _utcnow() -> datetime:
    return datetime.now(UTC)


class _ReadWriteLock:
    """Whole-map reader/writer lock.

    Any number of readers may hold the lock at once; a writer holds it
    alone. Waiting writers block new readers so a steady stream of reads
    cannot starve the poller.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextlib.contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextlib.contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class ReviewStore:
    """Review map keyed by review id, mirrored to a single JSON file.

    The mirror is always written to ``<path>.tmp`` first and then renamed
    over ``path``, so the canonical file holds either the previous or the
    new complete state, never a partial write.

    Usage::

        store = ReviewStore("data/reviews.json")
        store.load()
        store.upsert(reviews)
        recent = store.reviews_since("1234", timedelta(hours=48))
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._path = Path(path)
        self._tmp_path = self._path.with_name(self._path.name + ".tmp")
        self._clock = clock
        self._lock = _ReadWriteLock()
        self._reviews: dict[str, Review] = {}

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreError(f"failed to create directory {self._path.parent}: {exc}") from exc

    @property
    def path(self) -> Path:
        """Canonical mirror file path."""
        return self._path

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._reviews)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, reviews: Iterable[Review]) -> None:
        """Insert or replace reviews by id, then persist the whole map.

        An empty batch is a no-op and does not touch the disk.

        Raises
        ------
        PersistError
            If the mirror file could not be written. The in-memory map
            keeps the new reviews regardless.
        """
        batch = list(reviews)
        if not batch:
            return
        with self._lock.write():
            for review in batch:
                self._reviews[review.id] = review
            self._persist_locked()

    def persist(self) -> None:
        """Write the current map to disk outside the regular upsert path."""
        with self._lock.write():
            self._persist_locked()

    def load(self) -> None:
        """Replace the in-memory map with the mirror file's contents.

        A missing file is treated as empty initial state.

        Raises
        ------
        CorruptStateError
            If the file exists but cannot be read or parsed. The current
            map is left as it was.
        """
        with self._lock.write():
            if not self._path.exists():
                _logger.info("No review mirror at %s yet, starting empty", self._path)
                return
            try:
                data = self._path.read_bytes()
            except OSError as exc:
                raise CorruptStateError(f"failed to read {self._path}: {exc}") from exc
            try:
                reviews = _REVIEW_LIST.validate_json(data)
            except ValidationError as exc:
                raise CorruptStateError(f"failed to parse reviews from {self._path}: {exc}") from exc

            self._reviews = {review.id: review for review in reviews}
            _logger.info("Loaded %d reviews from %s", len(self._reviews), self._path)

    def _persist_locked(self) -> None:
        payload = _REVIEW_LIST.dump_json(list(self._reviews.values()), indent=2)
        try:
            with open(self._tmp_path, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(self._tmp_path, self._path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                self._tmp_path.unlink()
            raise PersistError(f"failed to persist reviews to {self._path}: {exc}") from exc
        _logger.debug("Persisted %d reviews to %s", len(self._reviews), self._path)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def all_reviews(self) -> list[Review]:
        """Snapshot of every stored review, in no particular order."""
        with self._lock.read():
            return list(self._reviews.values())

    def reviews_since(self, app_id: str, window: timedelta) -> list[Review]:
        """Snapshot of ``app_id`` reviews submitted within ``window`` of now.

        The boundary is inclusive. Reviews dated in the future are kept.
        """
        now = self._clock()
        with self._lock.read():
            return [
                review
                for review in self._reviews.values()
                if review.app_id == app_id and now - review.submitted_at <= window
            ]
