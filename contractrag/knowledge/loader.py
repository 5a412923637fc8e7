"""Knowledge base loading: base catalog plus an optional enhanced catalog.

The enhanced catalog is an artifact produced offline by the dataset
processor. It may be missing, malformed or stale; every one of those
cases degrades to base-only operation. ``load_enhanced_catalog`` reports
the failure as a value and the ``KnowledgeBase`` decides to fall back,
so nothing on this path raises to analysis callers.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Union

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..constants import (
    CATALOG_FETCH_TIMEOUT,
    CATALOG_STALE_AFTER_DAYS,
    MAX_CATALOG_ARTIFACT_BYTES,
)
from ..core.exceptions import (
    CatalogLoadError,
    CatalogSourceNotFoundError,
    MalformedCatalogError,
    ReloadInProgressError,
)
from .catalog import Catalog, compile_definitions
from .models import (
    DatasetStatistics,
    EnhancedCatalogArtifact,
    PatternDefinition,
    PatternOrigin,
    VulnerabilityPattern,
)
from .patterns import BASE_PATTERN_DEFINITIONS, BEST_PRACTICES, GAS_OPTIMIZATION_TIPS

logger = logging.getLogger(__name__)
event_logger = logging.getLogger("contractrag.events")

CatalogSource = Union[str, Path, Mapping[str, Any]]


@dataclass(frozen=True)
class EnhancedCatalogLoad:
    """Outcome of loading an enhanced catalog.

    Exactly one of two shapes: ``error`` is None and ``patterns`` holds the
    compiled enhanced patterns, or ``error`` describes why nothing loaded.
    """

    patterns: tuple[VulnerabilityPattern, ...] = ()
    statistics: DatasetStatistics | None = None
    dropped: tuple[str, ...] = ()
    error: CatalogLoadError | None = None
    stale: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def _describe_source(source: CatalogSource) -> str:
    if isinstance(source, Mapping):
        return "<in-memory artifact>"
    return str(source)


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def _read_source(source: CatalogSource, timeout: float) -> Any:
    """Fetch and JSON-decode the artifact.

    Raises:
        CatalogLoadError: On any failure to obtain or decode the document.
    """
    if isinstance(source, Mapping):
        return source

    name = str(source)

    if isinstance(source, str) and _is_url(source):
        try:
            with httpx.Client(timeout=timeout) as client:
                response = client.get(source)
                if response.status_code == 404:
                    raise CatalogSourceNotFoundError(name, "artifact not found (HTTP 404)")
                response.raise_for_status()
                raw = response.content
        except httpx.HTTPError as e:
            raise CatalogLoadError(name, f"fetch failed: {e}") from e
    else:
        path = Path(source)
        if not path.is_file():
            raise CatalogSourceNotFoundError(name, "artifact file does not exist")
        try:
            raw = path.read_bytes()
        except OSError as e:
            raise CatalogLoadError(name, f"read failed: {e}") from e

    if len(raw) > MAX_CATALOG_ARTIFACT_BYTES:
        raise MalformedCatalogError(name, f"artifact larger than {MAX_CATALOG_ARTIFACT_BYTES} bytes")

    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedCatalogError(name, f"invalid JSON: {e}") from e


def _is_stale(statistics: DatasetStatistics, stale_after_days: int, now: datetime) -> bool:
    processed = statistics.processed_date
    if processed is None:
        return False
    if processed.tzinfo is None:
        processed = processed.replace(tzinfo=timezone.utc)
    return now - processed > timedelta(days=stale_after_days)


def load_enhanced_catalog(
    source: CatalogSource,
    timeout: float = CATALOG_FETCH_TIMEOUT,
    stale_after_days: int = CATALOG_STALE_AFTER_DAYS,
    reserved_ids: Iterable[str] = (),
    now: datetime | None = None,
) -> EnhancedCatalogLoad:
    """Load and compile an enhanced catalog artifact.

    Args:
        source: Path to a JSON artifact, an http(s) URL, or the already
            decoded artifact.
        timeout: Timeout in seconds for remote artifacts.
        stale_after_days: Artifacts processed earlier than this are
            loaded anyway but flagged as stale.
        reserved_ids: Ids already used by base patterns; enhanced entries
            reusing one are dropped.
        now: Reference time for the staleness check (defaults to now).

    Returns:
        The load outcome. This function never raises.
    """
    name = _describe_source(source)

    try:
        data = _read_source(source, timeout)
        try:
            artifact = EnhancedCatalogArtifact.model_validate(data)
        except PydanticValidationError as e:
            raise MalformedCatalogError(
                name, f"{e.error_count()} validation error(s) in artifact"
            ) from e
    except CatalogLoadError as e:
        return EnhancedCatalogLoad(error=e)

    patterns, dropped = compile_definitions(
        artifact.patterns, PatternOrigin.ENHANCED, existing_ids=reserved_ids
    )

    stale = _is_stale(artifact.statistics, stale_after_days, now or datetime.now(timezone.utc))
    if stale:
        logger.warning(
            f"Enhanced catalog from {name} was processed on "
            f"{artifact.statistics.processed_date}; using it anyway"
        )

    return EnhancedCatalogLoad(
        patterns=tuple(patterns),
        statistics=artifact.statistics,
        dropped=tuple(dropped),
        stale=stale,
    )


class KnowledgeBaseInfo(BaseModel):
    """Summary of the knowledge base state."""

    is_enhanced: bool
    pattern_count: int
    base_count: int
    enhanced_count: int
    statistics: DatasetStatistics | None = None
    last_error: str | None = None


class KnowledgeBase:
    """Owner of the effective pattern catalog.

    The base patterns are compiled once at construction. An enhanced set
    is appended when a source is given and loads successfully. Readers get
    an immutable ``Catalog`` snapshot; ``reload`` builds a new snapshot and
    swaps it in with a single assignment, so a partially rebuilt catalog
    is never observable.
    """

    def __init__(
        self,
        base_definitions: Iterable[PatternDefinition] = BASE_PATTERN_DEFINITIONS,
        enhanced_source: CatalogSource | None = None,
        catalog_timeout: float = CATALOG_FETCH_TIMEOUT,
        stale_after_days: int = CATALOG_STALE_AFTER_DAYS,
        best_practices: Iterable[str] = BEST_PRACTICES,
        gas_optimization_tips: Iterable[str] = GAS_OPTIMIZATION_TIPS,
    ) -> None:
        """Initialize the knowledge base.

        Args:
            base_definitions: Base pattern definitions; invalid ones are dropped.
            enhanced_source: Optional enhanced catalog source (path, URL or
                decoded artifact). Without one the catalog is base-only.
            catalog_timeout: Timeout in seconds for remote artifacts.
            stale_after_days: Age after which an artifact is logged as stale.
            best_practices: General guidance shown in summaries.
            gas_optimization_tips: General gas guidance.
        """
        base, dropped = compile_definitions(base_definitions, PatternOrigin.BASE)
        if dropped:
            logger.warning(f"Dropped {len(dropped)} invalid base pattern(s): {', '.join(dropped)}")

        self.catalog_timeout = catalog_timeout
        self.stale_after_days = stale_after_days
        self.best_practices: tuple[str, ...] = tuple(best_practices)
        self.gas_optimization_tips: tuple[str, ...] = tuple(gas_optimization_tips)

        self._enhanced_source = enhanced_source
        self._reload_lock = threading.Lock()
        self._last_error: CatalogLoadError | None = None
        self._catalog = Catalog(tuple(base))

        if enhanced_source is not None:
            with self._reload_lock:
                self._refresh_enhanced(event="catalog_loaded")

    @property
    def catalog(self) -> Catalog:
        """The current catalog snapshot."""
        return self._catalog

    @property
    def enhanced(self) -> bool:
        return self._catalog.enhanced

    @property
    def size(self) -> int:
        return self._catalog.size

    @property
    def statistics(self) -> DatasetStatistics | None:
        return self._catalog.statistics

    @property
    def last_error(self) -> CatalogLoadError | None:
        """Why the most recent enhanced load failed, if it did."""
        return self._last_error

    def info(self) -> KnowledgeBaseInfo:
        catalog = self._catalog
        return KnowledgeBaseInfo(
            is_enhanced=catalog.enhanced,
            pattern_count=catalog.size,
            base_count=len(catalog.base_patterns),
            enhanced_count=len(catalog.enhanced_patterns),
            statistics=catalog.statistics,
            last_error=str(self._last_error) if self._last_error else None,
        )

    def reload(self, source: CatalogSource | None = None, blocking: bool = True) -> bool:
        """Drop the enhanced patterns and load them again.

        Base patterns are kept as they are. Only one reload runs at a time.

        Args:
            source: New enhanced catalog source; defaults to the current one.
            blocking: Wait for an in-flight reload to finish instead of
                raising.

        Returns:
            Whether the catalog is enhanced after the reload.

        Raises:
            ReloadInProgressError: If ``blocking`` is False and another
                reload is running.
        """
        if not self._reload_lock.acquire(blocking=blocking):
            raise ReloadInProgressError("An enhanced catalog reload is already in progress")
        try:
            if source is not None:
                self._enhanced_source = source
            return self._refresh_enhanced(event="catalog_reloaded")
        finally:
            self._reload_lock.release()

    def _refresh_enhanced(self, event: str) -> bool:
        """Load the enhanced set and swap in a new snapshot. Caller holds the lock."""
        base = self._catalog.base_patterns

        if self._enhanced_source is None:
            result = EnhancedCatalogLoad(
                error=CatalogSourceNotFoundError("<unset>", "no enhanced catalog source configured")
            )
        else:
            result = load_enhanced_catalog(
                self._enhanced_source,
                timeout=self.catalog_timeout,
                stale_after_days=self.stale_after_days,
                reserved_ids=(p.id for p in base),
            )

        if result.ok:
            self._last_error = None
            self._catalog = Catalog(
                base + result.patterns,
                enhanced=bool(result.patterns),
                statistics=result.statistics,
            )
            logger.info(
                f"Enhanced patterns loaded: {len(result.patterns)} added, "
                f"{self._catalog.size} total"
            )
            event_logger.info(
                "Enhanced catalog loaded",
                extra={
                    "event": event,
                    "catalog_size": self._catalog.size,
                    "enhanced": self._catalog.enhanced,
                    "source": _describe_source(self._enhanced_source),
                    "dropped": list(result.dropped),
                },
            )
        else:
            self._last_error = result.error
            self._catalog = Catalog(base)
            if isinstance(result.error, CatalogSourceNotFoundError):
                logger.info(f"Enhanced patterns not available, using base patterns: {result.error}")
            else:
                logger.warning(f"Enhanced patterns could not be loaded, using base patterns: {result.error}")
            event_logger.warning(
                "Enhanced catalog load failed",
                extra={
                    "event": "catalog_load_failed",
                    "catalog_size": self._catalog.size,
                    "enhanced": False,
                    "error": str(result.error),
                },
            )

        return self._catalog.enhanced
