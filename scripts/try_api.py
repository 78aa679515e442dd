#!/usr/bin/env python3
"""
Manually test and review the Symscout Python API against a live instance.

This script runs the mandatory analysis for one symbol, a few of the
individual search operations, and prints the client's operational report
so you can see perform_mandatory_analysis(), check_symbol_exists(),
find_imports() and generate_analysis_report() in action.

Usage:
  # From project root (analyze a function name on sourcegraph.com)
  python scripts/try_api.py createLogger
  python scripts/try_api.py UserService --type class

  # Also inventory a repository
  python scripts/try_api.py createLogger --repo github.com/pinojs/pino

  # Human-readable logs instead of JSON
  python scripts/try_api.py createLogger --log-format text

Requirements:
  - Symscout installed (pip install -e . from project root)
  - SOURCEGRAPH_ACCESS_TOKEN set (and SOURCEGRAPH_INSTANCE_URL for a
    private instance)
"""

import asyncio
import sys
from pathlib import Path

# Optional: use src layout so "symscout" is the package
_src = Path(__file__).resolve().parent.parent / "src"
if _src.exists() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))


async def run(args) -> int:
    from symscout import ConfigError, Symscout, SymscoutError, configure_logging

    configure_logging(args.log_level, args.log_format)

    try:
        client = Symscout()
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    async with client:
        print(f"Using {client.config.instance_url}\n")

        # ── Mandatory analysis ────────────────────────────────────────
        print("=" * 60)
        print(f"  STEP 1: Mandatory analysis for {args.type} {args.name}")
        print("=" * 60)
        try:
            report = await client.perform_mandatory_analysis(args.type, args.name)
        except SymscoutError as e:
            print(f"  Error: {e}")
            return 1

        checks = report.checks
        print(f"  duplicates:      {checks.duplicates.duplicate_count}")
        print(f"  symbol locations: {checks.symbol_exists.location_count}")
        print(f"  similar:         {checks.similar_implementations.implementation_count}")
        print(f"  pattern matches: {checks.patterns.match_count}")
        for warning in report.warnings:
            print(f"  WARNING: {warning}")
        for recommendation in report.recommendations:
            print(f"  -> {recommendation}")
        print(f"\n  can_proceed: {report.can_proceed}")

        # ── Cached lookup ─────────────────────────────────────────────
        print("\n" + "=" * 60)
        print("  STEP 2: Symbol check (served from cache)")
        print("=" * 60)
        existence = await client.check_symbol_exists(args.name, args.type)
        for loc in existence.locations[:5]:
            print(f"    {loc.name} ({loc.kind}) @ {loc.repository}/{loc.file}")
        if not existence.locations:
            print("    (no locations)")
        stats = client.cache_stats()
        print(f"  cache: hits={stats.hits} misses={stats.misses} hit_rate={stats.hit_rate:.0%}")

        # ── Imports ──────────────────────────────────────────────────
        if args.library:
            print("\n" + "=" * 60)
            print(f"  STEP 3: Imports of {args.library}")
            print("=" * 60)
            imports = await client.find_imports(args.library)
            print(f"  {imports.total_imports} imports in {imports.file_count} files")
            for group in imports.by_file[:5]:
                print(f"    {group.repository}/{group.file}: {group.imports[0].statement.strip()}")

        # ── Repository structure ─────────────────────────────────────
        if args.repo:
            print("\n" + "=" * 60)
            print(f"  STEP 4: Structure of {args.repo}")
            print("=" * 60)
            structure = await client.analyze_code_structure(args.repo)
            for key, value in structure.statistics.items():
                print(f"  {key}: {value}")

        # ── Operational report ───────────────────────────────────────
        print("\n" + "=" * 60)
        print("  STEP 5: Client report")
        print("=" * 60)
        client_report = await client.generate_analysis_report()
        print(f"  health: {client_report.health['status']}")
        print(f"  cache size: {client_report.cache['size']}")

    return 0


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(
        description="Manually test Symscout API: analyze a symbol against a live instance.",
    )
    parser.add_argument("name", help="Symbol name to analyze (e.g. createLogger)")
    parser.add_argument(
        "--type",
        default="function",
        choices=["function", "class", "variable"],
        help="Kind of symbol (default: function)",
    )
    parser.add_argument("--library", default="", help="Also search imports of this library")
    parser.add_argument("--repo", default="", help="Also analyze this repository's structure")
    parser.add_argument("--log-level", default="WARNING")
    parser.add_argument("--log-format", default="json", choices=["json", "text"])
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
