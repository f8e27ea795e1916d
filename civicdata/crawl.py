"""CLI entrypoint for the public-sector crawl pipeline."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any

import yaml

if __package__ in {None, ""}:
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))

from civicdata.crawler import ConfigError, CrawlConfig, CrawlPipeline, load_config


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Crawl public-sector sites and extract structured civic data.",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to JSON/YAML crawl config.",
    )
    parser.add_argument(
        "--output_dir",
        type=Path,
        default=Path("crawl_output"),
        help="Root output directory for records/manifests/checkpoints/logs.",
    )

    parser.add_argument(
        "--seed",
        action="append",
        default=[],
        help="Seed (repeatable). Format: URL[,CATEGORY[,PRIORITY]]. Overrides config seeds if provided.",
    )
    parser.add_argument(
        "--domain",
        action="append",
        default=[],
        help="Allowed domain (repeatable). Format: DOMAIN or DOMAIN=QUOTA. Overrides config domains if provided.",
    )

    parser.add_argument("--max_depth", type=int, default=None)
    parser.add_argument("--max_urls", type=int, default=None)
    parser.add_argument("--max_duration_seconds", type=float, default=None)
    parser.add_argument("--concurrency", type=int, default=None)
    parser.add_argument("--max_retries", type=int, default=None)

    parser.add_argument("--min_delay", type=float, default=None, help="Minimum per-request delay in seconds.")
    parser.add_argument("--max_delay", type=float, default=None, help="Maximum per-request delay in seconds.")

    parser.add_argument(
        "--recrawl",
        dest="recrawl",
        action="store_true",
        default=None,
        help="Re-queue completed targets on their adaptive re-crawl interval.",
    )
    parser.add_argument(
        "--cross_session_dedup",
        dest="cross_session_dedup",
        action="store_true",
        default=None,
        help="Treat content already stored by earlier sessions as duplicate.",
    )

    parser.add_argument(
        "--print_report_json",
        action="store_true",
        help="Print the full session report JSON in stdout after run.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging.",
    )

    return parser.parse_args(argv)


def _parse_seed_specs(specs: list[str]) -> list[dict[str, Any]]:
    seeds: list[dict[str, Any]] = []

    for spec in specs:
        parts = [part.strip() for part in spec.split(",")]
        if not parts[0]:
            continue
        seed: dict[str, Any] = {"url": parts[0]}
        if len(parts) > 1 and parts[1]:
            seed["category"] = parts[1]
        if len(parts) > 2 and parts[2]:
            try:
                seed["priority"] = float(parts[2])
            except ValueError as exc:
                raise ConfigError(f"Invalid priority in --seed '{spec}'") from exc
        seeds.append(seed)

    return seeds


def _parse_domain_specs(specs: list[str]) -> list[dict[str, Any]]:
    domains: list[dict[str, Any]] = []

    for spec in specs:
        raw = spec.strip()
        if not raw:
            continue

        if "=" in raw:
            domain, quota = raw.split("=", maxsplit=1)
            try:
                domains.append({"domain": domain.strip(), "quota": int(quota.strip())})
            except ValueError as exc:
                raise ConfigError(f"Invalid quota in --domain '{spec}'. Use DOMAIN=INTEGER.") from exc
        else:
            domains.append({"domain": raw})

    return domains


def build_config(args: argparse.Namespace) -> CrawlConfig:
    if args.config is not None:
        payload = load_config(args.config).to_dict()
    else:
        payload = {"seeds": [], "domains": []}

    if args.seed:
        payload["seeds"] = _parse_seed_specs(args.seed)
    if args.domain:
        payload["domains"] = _parse_domain_specs(args.domain)

    if not payload.get("seeds"):
        raise ConfigError("No seeds provided. Use --config or at least one --seed.")

    for key in ("max_depth", "max_urls", "max_duration_seconds", "concurrency", "max_retries"):
        value = getattr(args, key)
        if value is not None:
            payload[key] = value

    if args.recrawl is not None:
        payload["recrawl_enabled"] = args.recrawl
    if args.cross_session_dedup is not None:
        payload["cross_session_dedup"] = args.cross_session_dedup

    stealth = dict(payload.get("stealth") or {})
    if args.min_delay is not None:
        stealth["min_delay"] = args.min_delay
    if args.max_delay is not None:
        stealth["max_delay"] = args.max_delay
    payload["stealth"] = stealth

    return CrawlConfig.from_dict(payload)


def setup_logging(output_dir: Path, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO

    log_dir = output_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "crawl.log"

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    # Trafilatura warns on most noisy council pages; keep crawl logs readable.
    logging.getLogger("trafilatura").setLevel(logging.ERROR)
    logging.getLogger("trafilatura.core").setLevel(logging.ERROR)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("pdfminer").setLevel(logging.ERROR)


def print_summary(result: dict[str, Any], *, print_report_json: bool) -> None:
    paths = result.get("paths", {})
    report = result.get("report", {})
    summary = report.get("summary", {})

    print("\n=== Crawl Complete ===")
    print(f"session: {result.get('session_id')}")
    print(f"output_dir: {paths.get('output_dir')}")
    print(f"records: {paths.get('records')}")
    print(f"errors: {paths.get('errors')}")
    print(f"report: {paths.get('report')}")

    print("\n--- Session Summary ---")
    for key in [
        "status",
        "total_urls",
        "processed_urls",
        "failed_urls",
        "duplicate_urls",
        "skipped_urls",
        "revisits",
        "average_quality",
        "entity_count",
        "duration_seconds",
    ]:
        if key in summary:
            print(f"{key}: {summary[key]}")

    recommendations = report.get("recommendations") or []
    if recommendations:
        print("\n--- Recommendations ---")
        for line in recommendations:
            print(f"- {line}")

    if print_report_json:
        print("\n--- Full Report JSON ---")
        print(json.dumps(report, indent=2, sort_keys=True))


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.output_dir, verbose=args.verbose)

    try:
        config = build_config(args)
    except (ValueError, OSError, yaml.YAMLError) as exc:
        logging.error("Failed to build config: %s", exc)
        return 2

    logging.info(
        "Starting crawl: output_dir=%s, seeds=%d, domains=%d, concurrency=%d",
        args.output_dir,
        len(config.seeds),
        len(config.domains),
        config.concurrency,
    )

    try:
        pipeline = CrawlPipeline(config, output_dir=args.output_dir)
        result = pipeline.run()
    except KeyboardInterrupt:
        logging.error("Interrupted by user")
        return 130
    except Exception:
        logging.exception("Crawl execution failed")
        return 1

    print_summary(result, print_report_json=args.print_report_json)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
