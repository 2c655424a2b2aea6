"""Memoized structural models per (commit, path)."""

import threading
from typing import Dict, Optional, Tuple, Union

import structlog

from codetrail.exceptions import ParseError
from codetrail.extraction.base import ModelBuilder, RepositoryAccess
from codetrail.extraction.python_model import PythonModelBuilder
from codetrail.models.elements import StructuralModel

logger = structlog.get_logger(__name__)


class _Unparseable:
    """Marker cached for revisions the front end rejected."""

    _instance: Optional["_Unparseable"] = None

    def __new__(cls) -> "_Unparseable":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNPARSEABLE"


UNPARSEABLE = _Unparseable()

CachedModel = Union[StructuralModel, _Unparseable]


class RevisionModelCache:
    """Thread-safe, compute-once cache of structural models.

    A parse failure is cached as ``UNPARSEABLE`` and never retried. Repository
    errors are not cached. Concurrent misses on the same key wait for the
    first caller instead of parsing the same blob twice.
    """

    def __init__(self, repository: RepositoryAccess, builder: Optional[ModelBuilder] = None) -> None:
        """Initialize cache.

        Args:
            repository: Source of file contents
            builder: Language front end (defaults to the Python builder)
        """
        self.repository = repository
        self.builder = builder or PythonModelBuilder()
        self._entries: Dict[Tuple[str, str], CachedModel] = {}
        self._in_flight: Dict[Tuple[str, str], threading.Event] = {}
        self._lock = threading.Lock()

        # Stats
        self.hits = 0
        self.misses = 0
        self.parse_failures = 0

    def __enter__(self) -> "RevisionModelCache":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Tuple[str, str]) -> bool:
        with self._lock:
            return key in self._entries

    def model_of(self, commit_id: str, path: str) -> CachedModel:
        """Structural model of ``path`` at ``commit_id``.

        Returns:
            StructuralModel, or UNPARSEABLE if the revision cannot be parsed

        Raises:
            RepositoryError: If the blob cannot be read
        """
        key = (commit_id, path)
        while True:
            with self._lock:
                cached = self._entries.get(key)
                if cached is not None:
                    self.hits += 1
                    return cached
                pending = self._in_flight.get(key)
                owner = pending is None
                if owner:
                    pending = threading.Event()
                    self._in_flight[key] = pending
                    self.misses += 1
            if owner:
                break
            pending.wait()

        try:
            result = self._build(commit_id, path)
        except Exception:
            with self._lock:
                del self._in_flight[key]
            pending.set()
            raise

        with self._lock:
            self._entries[key] = result
            del self._in_flight[key]
        pending.set()
        return result

    def _build(self, commit_id: str, path: str) -> CachedModel:
        source = self.repository.read_blob(commit_id, path)
        try:
            model = self.builder.build_model(source, path)
        except ParseError as e:
            logger.warning("revision_unparseable", commit=commit_id[:7], path=path, error=str(e))
            with self._lock:
                self.parse_failures += 1
            return UNPARSEABLE
        logger.debug("model_built", commit=commit_id[:7], path=path, elements=len(model))
        return model

    def clear(self) -> None:
        """Drop every cached model and reset the statistics."""
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0
            self.parse_failures = 0

    def get_stats(self) -> dict:
        """Get cache statistics.

        Returns:
            Dictionary with cache stats
        """
        with self._lock:
            total_requests = self.hits + self.misses
            hit_rate = (self.hits / total_requests * 100) if total_requests > 0 else 0.0
            return {
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": f"{hit_rate:.1f}%",
                "cached_models": len(self._entries),
                "parse_failures": self.parse_failures,
            }
