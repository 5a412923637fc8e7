"""Compilation of pattern definitions into an immutable catalog.

A pattern whose expression does not compile, or matches the empty
string and so would fire on any input, is dropped with a diagnostic
instead of failing the whole catalog.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

from ..core.exceptions import InvalidPatternError
from .models import DatasetStatistics, PatternDefinition, PatternOrigin, VulnerabilityPattern

logger = logging.getLogger(__name__)
event_logger = logging.getLogger("contractrag.events")


def compile_pattern(
    definition: PatternDefinition, origin: PatternOrigin = PatternOrigin.BASE
) -> VulnerabilityPattern:
    """Compile a single definition.

    Args:
        definition: The raw pattern definition.
        origin: Whether the definition belongs to the base or enhanced set.

    Returns:
        The compiled pattern.

    Raises:
        InvalidPatternError: If the expression does not compile or
            matches the empty string.
    """
    try:
        matcher = re.compile(definition.pattern)
    except re.error as e:
        raise InvalidPatternError(definition.id, str(e)) from e
    if matcher.search("") is not None:
        raise InvalidPatternError(definition.id, "expression matches the empty string")

    return VulnerabilityPattern(
        id=definition.id,
        name=definition.name,
        severity=definition.severity,
        matcher=matcher,
        description=definition.description,
        recommendation=definition.recommendation,
        origin=origin,
        category=definition.category,
        cwe=definition.cwe,
        prevalence=definition.prevalence,
        examples=tuple(definition.examples),
    )


def compile_definitions(
    definitions: Iterable[PatternDefinition],
    origin: PatternOrigin = PatternOrigin.BASE,
    existing_ids: Iterable[str] = (),
) -> tuple[list[VulnerabilityPattern], list[str]]:
    """Compile many definitions, dropping the ones that fail.

    Definitions whose id is already taken (by ``existing_ids`` or an
    earlier definition) are dropped as well, keeping ids unique.

    Returns:
        Tuple of (compiled patterns, ids of dropped definitions).
    """
    seen = set(existing_ids)
    compiled: list[VulnerabilityPattern] = []
    dropped: list[str] = []

    for definition in definitions:
        if definition.id in seen:
            logger.warning(f"Dropping pattern '{definition.id}': duplicate id")
            event_logger.warning(
                "Pattern dropped",
                extra={"event": "pattern_dropped", "pattern_id": definition.id, "reason": "duplicate id"},
            )
            dropped.append(definition.id)
            continue

        try:
            pattern = compile_pattern(definition, origin)
        except InvalidPatternError as e:
            logger.warning(f"Dropping pattern '{definition.id}': {e.reason}")
            event_logger.warning(
                "Pattern dropped",
                extra={"event": "pattern_dropped", "pattern_id": definition.id, "reason": e.reason},
            )
            dropped.append(definition.id)
            continue

        seen.add(definition.id)
        compiled.append(pattern)

    return compiled, dropped


@dataclass(frozen=True)
class Catalog:
    """An immutable snapshot of the effective pattern catalog.

    Base patterns come first, followed by enhanced patterns, each group in
    definition order. ``enhanced`` records whether an enhanced set was
    loaded successfully when the snapshot was built.
    """

    patterns: tuple[VulnerabilityPattern, ...]
    enhanced: bool = False
    statistics: DatasetStatistics | None = None

    @property
    def size(self) -> int:
        return len(self.patterns)

    @property
    def base_patterns(self) -> tuple[VulnerabilityPattern, ...]:
        return tuple(p for p in self.patterns if p.origin is PatternOrigin.BASE)

    @property
    def enhanced_patterns(self) -> tuple[VulnerabilityPattern, ...]:
        return tuple(p for p in self.patterns if p.origin is PatternOrigin.ENHANCED)

    def get(self, pattern_id: str) -> VulnerabilityPattern | None:
        for pattern in self.patterns:
            if pattern.id == pattern_id:
                return pattern
        return None

    def __len__(self) -> int:
        return len(self.patterns)
