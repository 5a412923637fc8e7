"""Tests for enhanced catalog loading and the knowledge base."""

import json
import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import httpx
import pytest
from httpx import Response

from contractrag.analysis import analyze_contract
from contractrag.constants import BASE_CATALOG_SIZE
from contractrag.core.exceptions import (
    CatalogLoadError,
    CatalogSourceNotFoundError,
    MalformedCatalogError,
    ReloadInProgressError,
)
from contractrag.knowledge import (
    KnowledgeBase,
    PatternOrigin,
    load_enhanced_catalog,
)


def _entry(pattern_id: str, pattern: str, severity: str = "critical", prevalence: float = 0.2) -> dict:
    return {
        "id": pattern_id,
        "name": f"{pattern_id} (Dataset Enhanced)",
        "severity": severity,
        "pattern": pattern,
        "description": f"{pattern_id} description",
        "recommendation": f"{pattern_id} recommendation",
        "examples": [],
        "cwe": "CWE-841",
        "prevalence": prevalence,
    }


def _artifact(*entries: dict, processed: str = "2026-09-01T00:00:00Z") -> dict:
    return {
        "patterns": list(entries),
        "examples": [],
        "statistics": {
            "totalContracts": 10,
            "vulnerabilityDistribution": {"reentrancy": 2, "timestamp_dependence": 2},
            "processedDate": processed,
        },
    }


@pytest.fixture
def artifact_file(tmp_path):
    """Write a valid two-pattern artifact to disk."""
    path = tmp_path / "enhanced-knowledge-base.json"
    path.write_text(
        json.dumps(
            _artifact(
                _entry("enhanced_reentrancy", r"msg\.sender\.call"),
                _entry("enhanced_timestamp", r"block\.timestamp", severity="medium"),
            )
        )
    )
    return path


class TestLoadEnhancedCatalog:
    """Tests for load_enhanced_catalog."""

    def test_load_from_file(self, artifact_file):
        """A valid artifact loads with enhanced origin and statistics."""
        result = load_enhanced_catalog(artifact_file)
        assert result.ok
        assert [p.id for p in result.patterns] == ["enhanced_reentrancy", "enhanced_timestamp"]
        assert all(p.origin is PatternOrigin.ENHANCED for p in result.patterns)
        assert result.patterns[0].prevalence == 0.2
        assert result.statistics is not None
        assert result.statistics.total_contracts == 10

    def test_load_from_mapping(self):
        """An already decoded artifact is accepted."""
        result = load_enhanced_catalog(_artifact(_entry("enhanced_x", "foo")))
        assert result.ok
        assert len(result.patterns) == 1

    def test_missing_file(self, tmp_path):
        """A missing artifact is reported, not raised."""
        result = load_enhanced_catalog(tmp_path / "nope.json")
        assert not result.ok
        assert isinstance(result.error, CatalogSourceNotFoundError)
        assert result.patterns == ()

    def test_invalid_json(self, tmp_path):
        """Malformed JSON is reported as a malformed catalog."""
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        result = load_enhanced_catalog(path)
        assert isinstance(result.error, MalformedCatalogError)

    def test_wrong_shape(self):
        """Entries without a prevalence fail validation."""
        entry = _entry("enhanced_x", "foo")
        del entry["prevalence"]
        result = load_enhanced_catalog(_artifact(entry))
        assert isinstance(result.error, MalformedCatalogError)

    def test_prevalence_out_of_range(self):
        """Prevalence must lie in [0, 1]."""
        result = load_enhanced_catalog(_artifact(_entry("enhanced_x", "foo", prevalence=1.5)))
        assert isinstance(result.error, MalformedCatalogError)

    def test_invalid_pattern_dropped(self):
        """A non-compilable entry is dropped; the rest loads."""
        result = load_enhanced_catalog(
            _artifact(_entry("enhanced_bad", "(unclosed"), _entry("enhanced_good", "foo"))
        )
        assert result.ok
        assert [p.id for p in result.patterns] == ["enhanced_good"]
        assert result.dropped == ("enhanced_bad",)

    @pytest.mark.parametrize("pattern", ["a*", "(?:foo)?", "(?=x)|", "^"])
    def test_empty_match_pattern_dropped(self, pattern):
        """Entries that match the empty string would fire on any input and are dropped."""
        result = load_enhanced_catalog(
            _artifact(_entry("enhanced_everywhere", pattern, prevalence=0.5), _entry("enhanced_good", "foo"))
        )
        assert result.ok
        assert [p.id for p in result.patterns] == ["enhanced_good"]
        assert result.dropped == ("enhanced_everywhere",)

    def test_empty_match_pattern_does_not_fire_on_empty_input(self):
        """Empty input stays finding-free when the artifact carries an empty-matching entry."""
        kb = KnowledgeBase(enhanced_source=_artifact(_entry("enhanced_everywhere", "a*", prevalence=0.5)))
        assert not kb.enhanced

        result = analyze_contract("", kb.catalog)
        assert result.findings.is_empty
        assert result.security_score == 5
        assert result.dataset_match_count == 0

    def test_reserved_ids_dropped(self):
        """Entries reusing a base id are dropped."""
        result = load_enhanced_catalog(
            _artifact(_entry("reentrancy", "foo")), reserved_ids={"reentrancy"}
        )
        assert result.patterns == ()
        assert result.dropped == ("reentrancy",)

    def test_stale_artifact_still_loads(self):
        """Artifacts older than the threshold load but are flagged."""
        result = load_enhanced_catalog(
            _artifact(_entry("enhanced_x", "foo"), processed="2025-01-01T00:00:00Z"),
            stale_after_days=90,
            now=datetime(2026, 10, 1, tzinfo=timezone.utc),
        )
        assert result.ok
        assert result.stale

    def test_fresh_artifact_not_stale(self):
        """Recent artifacts are not flagged."""
        result = load_enhanced_catalog(
            _artifact(_entry("enhanced_x", "foo"), processed="2026-09-20T00:00:00Z"),
            stale_after_days=90,
            now=datetime(2026, 10, 1, tzinfo=timezone.utc),
        )
        assert not result.stale


class TestRemoteSource:
    """Tests for artifacts fetched over HTTP."""

    def test_load_from_url(self):
        """An http(s) source is fetched with httpx."""
        mock_response = MagicMock(spec=Response)
        mock_response.status_code = 200
        mock_response.content = json.dumps(_artifact(_entry("enhanced_x", "foo"))).encode()
        mock_response.raise_for_status = MagicMock()

        with patch("httpx.Client.get", return_value=mock_response) as mock_get:
            result = load_enhanced_catalog("https://example.com/kb.json")

        mock_get.assert_called_once_with("https://example.com/kb.json")
        assert result.ok
        assert len(result.patterns) == 1

    def test_url_not_found(self):
        """HTTP 404 is a missing source."""
        mock_response = MagicMock(spec=Response)
        mock_response.status_code = 404

        with patch("httpx.Client.get", return_value=mock_response):
            result = load_enhanced_catalog("https://example.com/kb.json")

        assert isinstance(result.error, CatalogSourceNotFoundError)

    def test_url_connection_error(self):
        """Network failures are reported as load errors."""
        with patch("httpx.Client.get", side_effect=httpx.ConnectError("refused")):
            result = load_enhanced_catalog("https://example.com/kb.json")

        assert isinstance(result.error, CatalogLoadError)
        assert not result.ok


class TestKnowledgeBase:
    """Tests for the KnowledgeBase owner object."""

    def test_base_only(self):
        """Without a source the catalog is the pinned base catalog."""
        kb = KnowledgeBase()
        assert kb.size == BASE_CATALOG_SIZE
        assert not kb.enhanced
        assert kb.statistics is None
        assert kb.last_error is None

    def test_missing_source_falls_back(self, tmp_path):
        """A missing artifact silently degrades to base-only."""
        kb = KnowledgeBase(enhanced_source=tmp_path / "missing.json")
        assert not kb.enhanced
        assert kb.size == BASE_CATALOG_SIZE
        assert isinstance(kb.last_error, CatalogSourceNotFoundError)

    def test_enhanced_source_appends(self, artifact_file):
        """Enhanced patterns are appended after the base patterns."""
        kb = KnowledgeBase(enhanced_source=artifact_file)
        assert kb.enhanced
        assert kb.size == BASE_CATALOG_SIZE + 2
        ids = [p.id for p in kb.catalog.patterns]
        assert ids[-2:] == ["enhanced_reentrancy", "enhanced_timestamp"]
        assert kb.statistics is not None

    def test_artifact_without_valid_patterns_not_enhanced(self):
        """Enhancement requires at least one compiled enhanced pattern."""
        kb = KnowledgeBase(enhanced_source=_artifact(_entry("enhanced_bad", "(")))
        assert not kb.enhanced
        assert kb.size == BASE_CATALOG_SIZE

    def test_info(self, artifact_file):
        """info() summarizes counts and statistics."""
        info = KnowledgeBase(enhanced_source=artifact_file).info()
        assert info.is_enhanced
        assert info.pattern_count == BASE_CATALOG_SIZE + 2
        assert info.base_count == BASE_CATALOG_SIZE
        assert info.enhanced_count == 2
        assert info.statistics.total_contracts == 10
        assert info.last_error is None


class TestReload:
    """Tests for reloading the enhanced subset."""

    def test_reload_picks_up_new_artifact(self, artifact_file):
        """reload() re-reads the source and keeps the base patterns."""
        kb = KnowledgeBase(enhanced_source=artifact_file)
        base_before = kb.catalog.base_patterns

        artifact_file.write_text(json.dumps(_artifact(_entry("enhanced_only_one", "foo"))))
        assert kb.reload() is True

        assert kb.size == BASE_CATALOG_SIZE + 1
        assert [p.id for p in kb.catalog.enhanced_patterns] == ["enhanced_only_one"]
        assert all(a is b for a, b in zip(kb.catalog.base_patterns, base_before))

    def test_reload_to_missing_source(self, artifact_file, tmp_path):
        """Reloading from a missing source drops the enhanced subset."""
        kb = KnowledgeBase(enhanced_source=artifact_file)
        assert kb.reload(source=tmp_path / "gone.json") is False
        assert kb.size == BASE_CATALOG_SIZE
        assert not kb.enhanced
        assert kb.last_error is not None

    def test_reload_without_source(self):
        """Reloading a base-only knowledge base stays base-only."""
        kb = KnowledgeBase()
        assert kb.reload() is False
        assert kb.size == BASE_CATALOG_SIZE

    def test_reload_snapshot_unchanged_for_holders(self, artifact_file, tmp_path):
        """A snapshot taken before a reload is never modified."""
        kb = KnowledgeBase(enhanced_source=artifact_file)
        snapshot = kb.catalog
        kb.reload(source=tmp_path / "gone.json")
        assert snapshot.size == BASE_CATALOG_SIZE + 2
        assert kb.catalog is not snapshot

    def test_non_blocking_reload_rejected_while_running(self, artifact_file):
        """A second reload is rejected while one is in flight."""
        kb = KnowledgeBase(enhanced_source=artifact_file)
        kb._reload_lock.acquire()
        try:
            with pytest.raises(ReloadInProgressError):
                kb.reload(blocking=False)
        finally:
            kb._reload_lock.release()

        assert kb.reload(blocking=False) is True

    def test_concurrent_reloads_never_expose_partial_catalog(self, artifact_file):
        """Readers only ever see complete snapshots."""
        kb = KnowledgeBase(enhanced_source=artifact_file)
        observed: set[int] = set()
        stop = threading.Event()

        def reader():
            while not stop.is_set():
                observed.add(kb.catalog.size)

        def reloader():
            for _ in range(20):
                kb.reload()

        readers = [threading.Thread(target=reader) for _ in range(2)]
        reloaders = [threading.Thread(target=reloader) for _ in range(3)]
        for t in readers + reloaders:
            t.start()
        for t in reloaders:
            t.join()
        stop.set()
        for t in readers:
            t.join()

        assert observed <= {BASE_CATALOG_SIZE + 2}
        assert kb.size == BASE_CATALOG_SIZE + 2
