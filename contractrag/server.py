import json
import logging
import os
import sys
from typing import Annotated, Any, Literal

from fastmcp import FastMCP
from pydantic import Field

from . import __version__
from .analysis import AnalysisResult, ContractAnalyzer
from .analysis.formatter import render_summary
from .audit import AuditReport, ContractAuditor, LLMClient
from .audit import build_audit_prompt as _build_audit_prompt
from .config import AnalyzerSettings
from .constants import MCP_DEFAULT_PORT
from .core.exceptions import (
    AnalysisError,
    ClientError,
    ConfigurationError,
    ReloadInProgressError,
    ValidationError,
)
from .knowledge import KnowledgeBase, KnowledgeBaseInfo, Severity
from .logging_config import configure_logging, get_event_logger, summarize_event_log

# Configure logging to stderr to avoid interfering with JSON-RPC on stdout
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(name)s %(levelname)s: %(message)s",
    datefmt="%H:%M:%S",
    stream=sys.stderr,
)
logger = logging.getLogger("contractrag")

# Initialize FastMCP server
mcp: FastMCP = FastMCP("contractrag-mcp")

# Built lazily so importing the module never touches the catalog source
knowledge_base: KnowledgeBase | None = None
analyzer: ContractAnalyzer | None = None
auditor: ContractAuditor | None = None
event_log_file: str | None = None

_SEVERITY_ICONS = {
    Severity.CRITICAL: "🔴",
    Severity.HIGH: "🟠",
    Severity.MEDIUM: "🟡",
    Severity.LOW: "🔵",
}


def _ensure_initialized() -> None:
    """Build the knowledge base, analyzer and auditor on first use."""
    global knowledge_base, analyzer, auditor, event_log_file

    if knowledge_base is None:
        settings = AnalyzerSettings.from_env()
        if settings.event_log_file:
            # Before the knowledge base, so its load events are recorded
            configure_logging(
                log_file=settings.event_log_file,
                log_level=settings.event_log_level,
                enable_console=False,
            )
            event_log_file = settings.event_log_file
            logger.info(f"Recording events to {event_log_file}")
        knowledge_base = KnowledgeBase(
            enhanced_source=settings.enhanced_catalog_source,
            catalog_timeout=settings.catalog_timeout,
            stale_after_days=settings.stale_after_days,
        )
        analyzer = ContractAnalyzer(knowledge_base, max_source_bytes=settings.max_source_bytes)
        auditor = ContractAuditor(analyzer, client=LLMClient())
        logger.info(
            f"Knowledge base ready: {knowledge_base.size} patterns "
            f"({'enhanced' if knowledge_base.enhanced else 'base only'})"
        )


def _format_analysis_report(
    result: AnalysisResult, recommendations: list[str], best_practices: tuple[str, ...] = ()
) -> str:
    """Render an analysis result as a markdown report."""
    lines = [
        "# Smart Contract Pre-Analysis",
        "",
        f"**Security score**: {result.security_score}/5",
        f"**Confidence**: {result.confidence:.1f}/5",
        f"**Knowledge base**: {result.catalog_size} patterns "
        f"({'enhanced' if result.enhanced else 'base only'})",
        f"**Dataset matches**: {result.dataset_match_count}",
        "",
        "## Findings",
    ]

    if result.findings.is_empty:
        lines.append("✅ No obvious vulnerabilities detected in static analysis.")
    else:
        for severity in Severity:
            descriptions = result.findings.bucket(severity)
            if descriptions:
                lines.append(f"\n### {_SEVERITY_ICONS[severity]} {severity.value.upper()}")
                lines.extend(f"- {d}" for d in descriptions)

    if result.gas_hints:
        lines.extend(["", "## Gas Optimizations"])
        lines.extend(f"- {hint}" for hint in result.gas_hints)

    if recommendations:
        lines.extend(["", "## Recommendations"])
        lines.extend(f"{i}. {rec}" for i, rec in enumerate(recommendations, 1))

    if best_practices:
        lines.extend(["", "## Best Practices"])
        lines.extend(f"- {practice}" for practice in best_practices[:3])

    lines.extend(
        [
            "",
            "⚠️  Static pattern matching is a pre-filter and produces false positives; "
            "it is not a complete audit.",
        ]
    )
    return "\n".join(lines)


def _format_knowledge_base_info(info: KnowledgeBaseInfo) -> str:
    lines = [
        "# Knowledge Base",
        "",
        f"**Status**: {'enhanced' if info.is_enhanced else 'base patterns only'}",
        f"**Patterns**: {info.pattern_count} ({info.base_count} base, {info.enhanced_count} enhanced)",
    ]

    stats = info.statistics
    if stats is not None:
        lines.extend(["", "## Dataset", f"- Contracts analyzed: {stats.total_contracts}"])
        if stats.processed_date:
            lines.append(f"- Processed: {stats.processed_date.strftime('%Y-%m-%d')}")
        for category, count in sorted(stats.vulnerability_distribution.items()):
            lines.append(f"- {category}: {count}")

    if info.last_error:
        lines.extend(["", f"**Last load error**: {info.last_error}"])

    return "\n".join(lines)


def _format_audit_report(report: AuditReport) -> str:
    """Render an LLM audit as a markdown report."""
    stars = int(report.stars) if float(report.stars).is_integer() else report.stars
    lines = [
        "# Smart Contract Audit",
        "",
        f"**Rating**: {stars}/5 stars",
        f"**KB confidence**: {report.rag_analysis.confidence_score:.1f}/5",
        f"**Dataset patterns detected**: {report.rag_analysis.detected_patterns}",
        "",
        "## Summary",
        report.summary,
    ]

    for severity in Severity:
        issues = getattr(report.vulnerabilities, severity.value)
        if issues:
            lines.append(f"\n## {_SEVERITY_ICONS[severity]} {severity.value.capitalize()} Issues")
            lines.extend(f"- {issue}" for issue in issues)

    if report.recommendations:
        lines.extend(["", "## Recommendations"])
        lines.extend(f"- {rec}" for rec in report.recommendations)

    if report.rag_analysis.knowledge_base_matches:
        lines.extend(["", "## Knowledge Base Recommendations"])
        lines.extend(f"- {rec}" for rec in report.rag_analysis.knowledge_base_matches[:3])

    if report.gas_optimizations:
        lines.extend(["", "## Gas Optimizations"])
        lines.extend(f"- {opt}" for opt in report.gas_optimizations)

    return "\n".join(lines)


def _format_event_summary(stats: dict[str, Any], log_file: str) -> str:
    """Render event log counters as a markdown report."""
    lines = [
        "# Event Log",
        "",
        f"**File**: {log_file}",
        f"- Analyses completed: {stats['analyses']}",
        f"- Inputs rejected as too large: {stats['rejected_inputs']}",
        f"- Catalog loads: {stats['catalog_loads']} ({stats['catalog_load_failures']} failed)",
        f"- Reloads: {stats['reloads']}",
        f"- Patterns dropped: {stats['dropped_patterns']}",
    ]
    return "\n".join(lines)


def run_analysis(code: str, output_format: str = "markdown") -> str:
    _ensure_initialized()
    assert analyzer is not None and knowledge_base is not None

    try:
        prepared = analyzer.prepare(code)
    except AnalysisError as e:
        return f"Error: {e}"

    if output_format == "json":
        payload: dict[str, Any] = prepared.result.model_dump(mode="json")
        payload["recommendations"] = list(prepared.recommendations)
        return json.dumps(payload, indent=2)
    if output_format == "summary":
        return render_summary(prepared.result, knowledge_base.best_practices)
    return _format_analysis_report(
        prepared.result, list(prepared.recommendations), knowledge_base.best_practices
    )


def run_reload(source: str | None = None) -> str:
    _ensure_initialized()
    assert knowledge_base is not None

    try:
        enhanced = knowledge_base.reload(source=source, blocking=False)
    except ReloadInProgressError as e:
        return f"Error: {e}"

    info = knowledge_base.info()
    status = "✅ Enhanced catalog loaded" if enhanced else "ℹ️  Using base patterns only"
    return f"{status}\n\n{_format_knowledge_base_info(info)}"


def run_prompt_build(code: str) -> str:
    _ensure_initialized()
    assert analyzer is not None

    try:
        prepared = analyzer.prepare(code)
    except AnalysisError as e:
        return f"Error: {e}"
    return _build_audit_prompt(prepared.augmentation, prepared.result.catalog_size)


async def run_audit(code: str) -> str:
    _ensure_initialized()
    assert auditor is not None

    try:
        report = await auditor.audit(code)
    except ValidationError as e:
        return f"Error: {e}"
    except ConfigurationError as e:
        return f"❌ **LLM API Key Required**\n\n{e}"
    except (AnalysisError, ClientError) as e:
        logger.error(f"Audit failed: {e}")
        return f"Error: {e}"
    return _format_audit_report(report)


def run_event_summary() -> str:
    _ensure_initialized()

    if event_log_file is None:
        return "No event log configured. Set CONTRACTRAG_EVENT_LOG to record events."
    for handler in get_event_logger().handlers:
        handler.flush()
    return _format_event_summary(summarize_event_log(event_log_file), event_log_file)


@mcp.tool
def analyze_contract(
    code: Annotated[str, Field(description="Solidity source code to analyze (partial snippets are fine)")],
    output_format: Annotated[
        Literal["markdown", "json", "summary"],
        Field(description="Report format: 'markdown' (default), 'json' or 'summary'"),
    ] = "markdown",
) -> str:
    """Run the deterministic vulnerability pre-analysis on smart contract code.

    Applies the pattern catalog and structural heuristics, and reports
    findings grouped by severity with a 0-5 security score, a confidence
    value, gas hints and remediation advice. No external API is called.
    """
    logger.info(f"Analyzing contract ({len(code)} chars)")
    return run_analysis(code, output_format)


@mcp.tool
def get_knowledge_base_info() -> str:
    """Show the state of the vulnerability knowledge base (pattern counts, dataset statistics)."""
    _ensure_initialized()
    assert knowledge_base is not None
    return _format_knowledge_base_info(knowledge_base.info())


@mcp.tool
def reload_knowledge_base(
    source: Annotated[
        str | None,
        Field(description="Path or http(s) URL of an enhanced catalog artifact; defaults to the configured one"),
    ] = None,
) -> str:
    """Reload the enhanced (dataset-derived) patterns without restarting the server."""
    logger.info(f"Reloading enhanced catalog from {source or 'configured source'}")
    return run_reload(source)


@mcp.tool
def build_audit_prompt(
    code: Annotated[str, Field(description="Solidity source code to build the audit prompt for")],
) -> str:
    """Build the full LLM audit prompt (pre-analysis plus instructions) for a contract.

    Use this to run the audit with your own model instead of audit_contract.
    """
    return run_prompt_build(code)


@mcp.tool
async def audit_contract(
    code: Annotated[str, Field(description="Complete Solidity contract to audit")],
) -> str:
    """Audit a Solidity contract with an LLM, seeded with the pre-analysis.

    Requires MISTRAL_API_KEY or OPENAI_API_KEY. One audit is allowed per
    cooldown period. The star rating is capped when critical or high
    severity issues are reported.
    """
    logger.info(f"Auditing contract ({len(code)} chars)")
    return await run_audit(code)


@mcp.tool
def get_event_log_summary() -> str:
    """Count recorded analyses, rejected inputs, catalog loads and dropped patterns."""
    return run_event_summary()


def main() -> None:
    """Run the MCP server with HTTP streaming transport."""
    print(f"ContractRAG MCP Server v{__version__} (HTTP Streaming)", file=sys.stderr)
    print("=" * 50, file=sys.stderr)

    if os.environ.get("MISTRAL_API_KEY") or os.environ.get("OPENAI_API_KEY"):
        print("LLM API key found", file=sys.stderr)
    else:
        print("No LLM API key (audit_contract disabled)", file=sys.stderr)

    if os.environ.get("CONTRACTRAG_ENHANCED_CATALOG"):
        print("Enhanced catalog configured", file=sys.stderr)
    else:
        print("No enhanced catalog (base patterns only)", file=sys.stderr)
        print("   Build one with: contractrag-build-kb <dataset> <output>", file=sys.stderr)

    if os.environ.get("CONTRACTRAG_EVENT_LOG"):
        print(f"Event log: {os.environ['CONTRACTRAG_EVENT_LOG']}", file=sys.stderr)

    port = MCP_DEFAULT_PORT

    print("=" * 50, file=sys.stderr)
    print(f"Starting HTTP streaming server on port {port}...", file=sys.stderr)
    print(f"HTTP endpoint will be available at: http://localhost:{port}/mcp", file=sys.stderr)

    try:
        import asyncio
        asyncio.run(mcp.run_http_async(transport="streamable-http", host="0.0.0.0", port=port))
    except KeyboardInterrupt:
        print("\nShutting down...", file=sys.stderr)
        sys.exit(0)
    except Exception as e:
        print(f"MCP server error: {e}", file=sys.stderr)
        import traceback

        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
