"""Public entry points: one tracker per element kind."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Optional, Sequence

import structlog
from pydantic import ValidationError

from codetrail.exceptions import InvalidSeed, TrackerConfigError
from codetrail.extraction.base import RepositoryAccess
from codetrail.history.builder import CancellationToken, HistoryBuilder
from codetrail.history.cache import UNPARSEABLE, RevisionModelCache
from codetrail.matching.locator import find_seed
from codetrail.models.config import HistoryConfig, MatchingConfig
from codetrail.models.elements import ElementKind
from codetrail.models.history import History
from codetrail.models.locators import TrackerConfig

logger = structlog.get_logger(__name__)

_LINE_FIELDS = ("start_line", "variable_line", "attribute_line", "method_line", "line")


class BaseTracker:
    """Validates a tracker's inputs and runs the history builder.

    Subclasses only declare which locator fields they take; all validation
    happens in the constructor, so a tracker that exists can be tracked.
    """

    kind: ElementKind

    def __init__(
        self,
        repository: RepositoryAccess,
        start_commit: str,
        file_path: str,
        locator: Dict[str, Any],
        cache: Optional[RevisionModelCache] = None,
        builder: Optional[HistoryBuilder] = None,
        matching_config: Optional[MatchingConfig] = None,
        history_config: Optional[HistoryConfig] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> None:
        try:
            self.config = TrackerConfig(
                repository=repository,
                start_commit=start_commit,
                file_path=file_path,
                locator={"kind": self.kind.value, **locator},
            )
        except ValidationError as e:
            raise TrackerConfigError(f"Invalid {type(self).__name__} configuration: {e}") from e

        self.builder = builder or HistoryBuilder(
            repository,
            cache=cache,
            matching_config=matching_config,
            history_config=history_config,
        )
        self.cancellation = cancellation

    @property
    def locator(self):
        return self.config.locator

    def cancel(self) -> None:
        """Ask a running ``track()`` to stop at the next commit."""
        if self.cancellation is None:
            self.cancellation = CancellationToken()
        self.cancellation.cancel()

    def track(self) -> History:
        """Reconstruct the history of the configured element.

        Returns:
            History rooted at the element at the start commit

        Raises:
            InvalidSeed: If the element cannot be located at the start commit
            RepositoryError: If the start commit or file cannot be read
        """
        config = self.config
        repository = config.repository
        commit = repository.resolve_commit(config.start_commit)
        model = self.builder.cache.model_of(commit.id, config.file_path)
        element = None if model is UNPARSEABLE else find_seed(config.locator, model)
        if element is None:
            raise InvalidSeed(config.file_path, config.locator.describe(), self._seed_line())

        logger.debug("seed_located", element=element.qualified_name, lines=str(element.range))
        return self.builder.build(commit, config.file_path, model, element, self.cancellation)

    def _seed_line(self) -> Optional[int]:
        for name in _LINE_FIELDS:
            value = getattr(self.config.locator, name, None)
            if value is not None:
                return value
        return None


class ClassTracker(BaseTracker):
    """Tracks a class.

    Example:
        >>> tracker = ClassTracker(repo, "HEAD", "pkg/models.py", class_name="User")
        >>> history = tracker.track()
    """

    kind = ElementKind.CLASS

    def __init__(
        self,
        repository: RepositoryAccess,
        start_commit: str,
        file_path: str,
        class_name: Optional[str] = None,
        line: Optional[int] = None,
        **options: Any,
    ) -> None:
        super().__init__(repository, start_commit, file_path, {"class_name": class_name, "line": line}, **options)


class MethodTracker(BaseTracker):
    """Tracks a method or a module-level function."""

    kind = ElementKind.METHOD

    def __init__(
        self,
        repository: RepositoryAccess,
        start_commit: str,
        file_path: str,
        method_name: Optional[str] = None,
        method_line: Optional[int] = None,
        **options: Any,
    ) -> None:
        super().__init__(
            repository,
            start_commit,
            file_path,
            {"method_name": method_name, "method_line": method_line},
            **options,
        )


class AttributeTracker(BaseTracker):
    """Tracks a class attribute."""

    kind = ElementKind.ATTRIBUTE

    def __init__(
        self,
        repository: RepositoryAccess,
        start_commit: str,
        file_path: str,
        attribute_name: Optional[str] = None,
        attribute_line: Optional[int] = None,
        **options: Any,
    ) -> None:
        super().__init__(
            repository,
            start_commit,
            file_path,
            {"attribute_name": attribute_name, "attribute_line": attribute_line},
            **options,
        )


class VariableTracker(BaseTracker):
    """Tracks a local variable of a method, or a module-level variable."""

    kind = ElementKind.VARIABLE

    def __init__(
        self,
        repository: RepositoryAccess,
        start_commit: str,
        file_path: str,
        variable_name: Optional[str] = None,
        variable_line: Optional[int] = None,
        method_name: Optional[str] = None,
        method_line: Optional[int] = None,
        **options: Any,
    ) -> None:
        super().__init__(
            repository,
            start_commit,
            file_path,
            {
                "method_name": method_name,
                "method_line": method_line,
                "variable_name": variable_name,
                "variable_line": variable_line,
            },
            **options,
        )


class BlockTracker(BaseTracker):
    """Tracks a compound statement (if, for, while, with, try, match) inside a method."""

    kind = ElementKind.BLOCK

    def __init__(
        self,
        repository: RepositoryAccess,
        start_commit: str,
        file_path: str,
        method_name: Optional[str] = None,
        method_line: Optional[int] = None,
        block_type: Optional[str] = None,
        start_line: Optional[int] = None,
        end_line: Optional[int] = None,
        **options: Any,
    ) -> None:
        super().__init__(
            repository,
            start_commit,
            file_path,
            {
                "method_name": method_name,
                "method_line": method_line,
                "block_type": block_type,
                "start_line": start_line,
                "end_line": end_line,
            },
            **options,
        )


def track_all(trackers: Sequence[BaseTracker], max_workers: int = 4) -> List[History]:
    """Run independent trackers on a thread pool.

    Trackers built with the same cache share parsed models. Once all of
    them have finished, the exception of the earliest failing tracker in
    ``trackers`` is raised.

    Args:
        trackers: Trackers to run
        max_workers: Thread pool size

    Returns:
        Histories in the order of ``trackers``
    """
    if max_workers < 1:
        raise ValueError("max_workers must be at least 1")

    results: List[Optional[History]] = [None] * len(trackers)
    errors: Dict[int, BaseException] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {executor.submit(tracker.track): i for i, tracker in enumerate(trackers)}
        for future in as_completed(futures):
            index = futures[future]
            try:
                results[index] = future.result()
            except Exception as e:
                logger.error("tracker_failed", tracker=type(trackers[index]).__name__, error=str(e))
                errors[index] = e

    if errors:
        raise errors[min(errors)]
    return results  # type: ignore[return-value]
