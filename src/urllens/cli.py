"""Command-line interface for URL Lens."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from urllens.audit import AuditEngine, generate_audit_summary
from urllens.config import AuditLimits, Config
from urllens.discovery import DomainDiscovery
from urllens.headers import analyze_headers, get_headers_security_score
from urllens.http_client import create_client
from urllens.logging_config import LOG_LEVELS, setup_logging
from urllens.models import AnalysisResult, AuditProgress, AuditResult, AuditSummary
from urllens.param_flow import get_utm_analysis_summary
from urllens.rate_limit import get_rate_limit_summary
from urllens.robots import get_robots_summary
from urllens.scoring import calculate_score, get_score_label
from urllens.url_lists import parse_csv, parse_url_list, results_to_csv
from urllens.url_analyzer import URLAnalyzer
from urllens.urls import InvalidURLError

logger = logging.getLogger(__name__)


def _emit(payload: dict, output_file: Optional[str]) -> None:
    text = json.dumps(payload, indent=2)
    if output_file:
        Path(output_file).write_text(text)
        print(f"Results saved to {output_file}")
    else:
        print(text)


def print_analysis(result: AnalysisResult, show_headers: bool = False) -> None:
    """Print one analysis in a readable layout."""
    score = calculate_score(result)

    print(f"\n{'=' * 60}")
    print(f"Scrapability Analysis for: {result.url}")
    print(f"{'=' * 60}")

    if result.error:
        print(f"\nError: {result.error}")

    print(f"\nScore: {score.score}/100 ({get_score_label(score.score)})")
    print(f"Status: {result.status}")
    print(f"Final URL: {result.final_url}")
    print(f"Response time: {result.response_time_ms:.0f} ms")
    if result.content_type:
        print(f"Content type: {result.content_type}")

    if result.redirects:
        print(f"\nRedirects ({len(result.redirects)}):")
        for hop in result.redirects:
            print(f"  {hop.status}: {hop.from_url} -> {hop.to_url}")

    print(f"\nJavaScript required: {'yes' if result.js_required else 'no'}")

    if result.bot_protections:
        print("\nBot protection:")
        for protection in result.bot_protections:
            print(f"  - {protection.type.value} ({protection.confidence.value}): {protection.detail}")

    if result.robots_txt:
        print(f"\nrobots.txt: {get_robots_summary(result.robots_txt)}")
    if result.rate_limit:
        print(f"Rate limiting: {get_rate_limit_summary(result.rate_limit)}")
    if result.utm_flow:
        print(f"UTM parameters: {get_utm_analysis_summary(result.utm_flow)}")

    breakdown = score.breakdown
    print("\nPenalties:")
    print(f"  - Status: {breakdown.status_penalty}")
    print(f"  - Redirects: {breakdown.redirect_penalty}")
    print(f"  - JavaScript: {breakdown.js_penalty}")
    print(f"  - Bot protection: {breakdown.bot_protection_penalty}")

    if show_headers and result.headers:
        security_score, findings = get_headers_security_score(result.headers)
        print(f"\nHeaders (security score {security_score}/100):")
        for info in analyze_headers(result.headers):
            print(f"  [{info.category}] {info.name}: {info.value}")
            if info.recommendation:
                print(f"      {info.recommendation}")
        for finding in findings:
            print(f"  - {finding}")

    print(f"\n{score.recommendation}")
    print(f"\n{'=' * 60}\n")


def print_progress(progress: AuditProgress) -> None:
    print(f"[{progress.percent_complete:3d}%] {progress.current_step}")


def print_audit(results: List[AuditResult], summary: AuditSummary) -> None:
    """Print a batch audit as a ranked table plus summary."""
    print(f"\n{'=' * 60}")
    print(f"Audit of {summary.total_urls} URL(s)")
    print(f"{'=' * 60}")
    print(f"Accessible: {summary.accessible_count}")
    print(f"Blocked: {summary.blocked_count}")
    print(f"JavaScript required: {summary.js_required_count}")
    print(f"Average score: {summary.average_score}")

    if summary.common_protections:
        print("\nCommon protections:")
        for name, count in summary.common_protections:
            print(f"  - {name}: {count}")

    if summary.best_entry_points:
        print("\nBest entry points:")
        for result in summary.best_entry_points:
            print(f"  {result.scrape_likelihood_score:3d}  {result.url}")

    print("\nResults:")
    for result in results:
        reason = f" ({result.blocked_reason})" if result.blocked_reason else ""
        print(
            f"  {result.scrape_likelihood_score:3d}  {result.recommendation.value:<16} "
            f"{result.url}{reason}"
        )
    print()


async def _analyze(args, config: Config) -> List[AnalysisResult]:
    async with create_client(config.http_config()) as client:
        analyzer = URLAnalyzer(
            config=config.http_config(),
            client=client,
            check_robots=not args.skip_robots,
            check_rate_limit=not args.skip_rate_limit,
        )
        results = []
        for url in args.urls:
            try:
                results.append(await analyzer.analyze(url, include_html=args.include_html))
            except InvalidURLError as e:
                logger.error(str(e))
        return results


def analyze_command(args):
    """Analyze one or more URLs for scrapability."""
    config = Config.from_env()
    results = asyncio.run(_analyze(args, config))

    if not results:
        print("Error: no valid URLs to analyze")
        sys.exit(1)

    if args.output == "json":
        _emit(
            {
                "results": [
                    {"analysis": r.to_dict(), "score": calculate_score(r).to_dict()}
                    for r in results
                ]
            },
            args.output_file,
        )
        return

    for result in results:
        print_analysis(result, show_headers=args.headers)


def _load_limits(args) -> AuditLimits:
    limits = AuditLimits.from_file(args.config) if args.config else AuditLimits.from_env()
    if getattr(args, "concurrency", None):
        limits.concurrency = args.concurrency
    return limits


def _collect_audit_urls(args) -> List[str]:
    urls: List[str] = []

    if args.file:
        content = Path(args.file).read_text()
        parsed = parse_csv(content) if args.file.lower().endswith(".csv") else parse_url_list(content)
        if parsed.invalid_lines:
            logger.warning(f"Skipped {len(parsed.invalid_lines)} invalid line(s) in {args.file}")
        urls.extend(parsed.urls)

    if args.urls:
        parsed = parse_url_list("\n".join(args.urls))
        for line in parsed.invalid_lines:
            logger.warning(f"Skipped invalid URL: {line}")
        urls.extend(u for u in parsed.urls if u not in urls)

    return urls


async def _run_audit(urls: List[str], limits: AuditLimits, config: Config, show_progress: bool) -> List[AuditResult]:
    async with create_client(config.http_config(), timeout=limits.timeout_seconds) as client:
        engine = AuditEngine(limits=limits, config=config.http_config(), client=client)
        return await engine.process_url_batch(
            urls, on_progress=print_progress if show_progress else None
        )


def _report_audit(args, results: List[AuditResult], extra: Optional[dict] = None) -> None:
    summary = generate_audit_summary(results)

    if getattr(args, "csv_file", None):
        Path(args.csv_file).write_text(results_to_csv(results))
        print(f"CSV saved to {args.csv_file}")

    if args.output == "json":
        payload = dict(extra or {})
        payload["summary"] = summary.to_dict()
        payload["results"] = [r.to_dict() for r in results]
        _emit(payload, args.output_file)
    else:
        print_audit(results, summary)


def audit_command(args):
    """Audit a list of URLs in concurrent batches."""
    urls = _collect_audit_urls(args)
    if not urls:
        print("Error: no valid URLs to audit")
        sys.exit(1)

    limits = _load_limits(args)
    results = asyncio.run(_run_audit(urls, limits, Config.from_env(), args.output == "text"))
    _report_audit(args, results)


def _print_discovery(discovery) -> None:
    print(f"\n{'=' * 60}")
    print(f"URL Discovery for: {discovery.domain}")
    print(f"{'=' * 60}")
    root = "accessible" if discovery.root_accessible else f"blocked ({discovery.root_blocked_reason})"
    print(f"Root: {root}")
    if discovery.search_quota_exceeded:
        print("Search quota exceeded; search results may be incomplete")

    print("\nSources:")
    for source in discovery.sources:
        print(f"  - {source.type.value}: {source.urls_found} URL(s) from {source.url}")

    print(f"\nURLs ({len(discovery.discovered_urls)}):")
    for item in discovery.discovered_urls:
        print(f"  {item.url}")
    print()


def discover_command(args):
    """Discover URLs for a domain, optionally auditing them."""
    config = Config.from_env()
    limits = _load_limits(args)

    async def run():
        async with create_client(config.http_config()) as client:
            discovery = DomainDiscovery(
                client=client,
                config=config.http_config(),
                limits=limits,
                include_common_paths=not args.no_common_paths,
            )
            return await discovery.discover(args.domain, max_urls=args.max_urls)

    try:
        discovery = asyncio.run(run())
    except InvalidURLError as e:
        print(f"Error: {e}")
        sys.exit(1)

    if not args.audit:
        if args.output == "json":
            _emit(discovery.to_dict(), args.output_file)
        else:
            _print_discovery(discovery)
        return

    if args.output == "text":
        _print_discovery(discovery)
    results = asyncio.run(_run_audit(discovery.urls, limits, config, args.output == "text"))
    _report_audit(args, results, extra={"discovery": discovery.to_dict()})


def _add_output_arguments(subparser) -> None:
    subparser.add_argument(
        "--output",
        "-o",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    subparser.add_argument(
        "--output-file",
        "-f",
        help="Write output to file (only for json format)",
    )


def main():
    """Main CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="URL Lens - Measure how hard URLs are to scrape"
    )

    # Global flags (before subcommands)
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        help="Set logging verbosity (default: LOG_LEVEL env var, else INFO)",
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to file in addition to console",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Analyze command parser
    analyze_parser = subparsers.add_parser(
        "analyze", help="Analyze one or more URLs for scrapability."
    )
    analyze_parser.add_argument(
        "urls", nargs="+", help="URLs to analyze (one or more)"
    )
    _add_output_arguments(analyze_parser)
    analyze_parser.add_argument(
        "--include-html",
        action="store_true",
        help="Include the response body in json output",
    )
    analyze_parser.add_argument(
        "--headers",
        action="store_true",
        help="Explain response headers in text output",
    )
    analyze_parser.add_argument(
        "--skip-robots",
        action="store_true",
        help="Do not fetch robots.txt",
    )
    analyze_parser.add_argument(
        "--skip-rate-limit",
        action="store_true",
        help="Do not send rate-limit probe requests",
    )
    analyze_parser.set_defaults(func=analyze_command)

    # Audit command parser
    audit_parser = subparsers.add_parser(
        "audit", help="Audit many URLs and rank them by scrapability."
    )
    audit_parser.add_argument(
        "urls", nargs="*", help="URLs to audit"
    )
    audit_parser.add_argument(
        "--file",
        help="CSV or text file with URLs (one per line or in a URL column)",
    )
    audit_parser.add_argument(
        "--concurrency",
        type=int,
        help="URLs tested per batch (default: 5)",
    )
    audit_parser.add_argument(
        "--config",
        help="JSON file with audit limits",
    )
    audit_parser.add_argument(
        "--csv-file",
        help="Also write results as CSV to this file",
    )
    _add_output_arguments(audit_parser)
    audit_parser.set_defaults(func=audit_command)

    # Discover command parser
    discover_parser = subparsers.add_parser(
        "discover", help="Discover URLs for a domain."
    )
    discover_parser.add_argument(
        "domain", help="Domain to discover (e.g., example.com)"
    )
    discover_parser.add_argument(
        "--max-urls",
        type=int,
        help="Maximum URLs to return (default: 100)",
    )
    discover_parser.add_argument(
        "--no-common-paths",
        action="store_true",
        help="Skip probing common content paths",
    )
    discover_parser.add_argument(
        "--audit",
        action="store_true",
        help="Audit the discovered URLs",
    )
    discover_parser.add_argument(
        "--concurrency",
        type=int,
        help="URLs tested per batch when auditing (default: 5)",
    )
    discover_parser.add_argument(
        "--config",
        help="JSON file with audit limits",
    )
    discover_parser.add_argument(
        "--csv-file",
        help="Also write audit results as CSV to this file",
    )
    _add_output_arguments(discover_parser)
    discover_parser.set_defaults(func=discover_command)

    args = parser.parse_args()

    # Configure logging based on flags
    setup_logging(
        level=args.log_level or Config.from_env().log_level,
        log_file=getattr(args, 'log_file', None),
    )

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
