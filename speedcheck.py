#!/usr/bin/env python3
"""
Speedcheck -- bandwidth estimation service and one-shot CLI.

Usage::

    python speedcheck.py                       # serve the HTTP API
    python speedcheck.py --port 8080           # serve on another port
    python speedcheck.py --once                # one measurement, rich dashboard
    python speedcheck.py --once --simple       # plain text
    python speedcheck.py --once --json         # JSON to stdout
    python speedcheck.py --once -o result.json # save to file
    python speedcheck.py --show-config         # print the effective config
    python speedcheck.py --set probe_delay=1   # persist a config value
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional, Tuple

from bandwidth.config import (
    load_config,
    load_profile,
    set_config_value,
    validate_config,
)
from bandwidth.errors import AllMethodsFailed
from bandwidth.logging_setup import configure_logging
from bandwidth.methods import build_methods
from bandwidth.selector import MethodSelector
from web.app import run_app
from web.dashboard import (
    console,
    print_direction_stats,
    print_error,
    print_final_results,
    print_header,
    print_samples,
)
from web.output import (
    create_error_json,
    create_result_json,
    format_text_result,
    save_json,
)

logger = logging.getLogger("speedcheck")


# ---------------------------------------------------------------------------
# Argument helpers
# ---------------------------------------------------------------------------

def parse_assignment(text: str) -> Tuple[str, Any]:
    """Split ``KEY=VALUE``; VALUE is read as JSON when it parses, else kept as a string."""
    key, sep, raw = text.partition("=")
    key = key.strip()
    if not sep or not key:
        raise ValueError(f"Expected KEY=VALUE, got {text!r}")
    try:
        value = json.loads(raw)
    except ValueError:
        value = raw
    return key, value


def apply_overrides(config: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    if args.host:
        config["host"] = args.host
    if args.port is not None:
        config["port"] = args.port
    if args.log_level:
        config["log_level"] = args.log_level
    return config


# ---------------------------------------------------------------------------
# One-shot runner
# ---------------------------------------------------------------------------

async def run_once(
    config: Dict[str, Any],
    *,
    json_output: bool = False,
    simple: bool = False,
    output_file: Optional[str] = None,
    selector: Optional[MethodSelector] = None,
) -> Optional[dict]:
    """Run one measurement and print it.  Returns the result JSON, or None on failure."""
    show_ui = not json_output and not simple
    profile = load_profile(config)
    selector = selector or MethodSelector(build_methods(config, profile), profile)

    if show_ui:
        print_header(selector.method_names)

    try:
        if show_ui:
            with console.status("[bold]Measuring bandwidth...[/bold]"):
                result = await selector.run()
        else:
            result = await selector.run()
    except AllMethodsFailed as exc:
        if json_output:
            print(json.dumps(create_error_json("Speed test failed", str(exc)), indent=2))
        else:
            print_error(f"Speed test failed: {exc}")
        return None

    result_json = create_result_json(result)

    if show_ui:
        print_samples(result.samples, profile)
        if result.download_stats:
            print_direction_stats(result.download_stats, "Download", "green")
        if result.upload_stats:
            print_direction_stats(result.upload_stats, "Upload", "blue")
        print_final_results(result)
    elif simple:
        print(format_text_result(result))
    else:
        print(json.dumps(result_json, indent=2))

    if output_file:
        save_json(result_json, output_file)
        if not json_output:
            console.print(f"[green]Results saved to:[/green] {output_file}")

    return result_json


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Speedcheck -- bandwidth estimation service",
    )
    parser.add_argument("--config", type=str, metavar="PATH", help="Config file (default: ~/.speedcheck/config.json)")

    # Server
    parser.add_argument("--host", type=str, metavar="HOST", help="Bind address for the HTTP API")
    parser.add_argument("--port", type=int, metavar="PORT", help="Port for the HTTP API")
    parser.add_argument("--log-level", type=str, metavar="LEVEL", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level")

    # One-shot mode
    parser.add_argument("--once", action="store_true", help="Run one measurement and exit")
    parser.add_argument("--json", "-j", action="store_true", help="With --once: output results as JSON")
    parser.add_argument("--simple", "-s", action="store_true", help="With --once: plain text output")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="With --once: save results to JSON file")

    # Config management
    parser.add_argument("--show-config", action="store_true", help="Print the effective config and exit")
    parser.add_argument("--set", action="append", default=[], metavar="KEY=VALUE", help="Persist a config value and exit (repeatable)")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    if args.set:
        try:
            for item in args.set:
                key, value = parse_assignment(item)
                path = set_config_value(key, value, path=args.config)
                console.print(f"[green]Set[/green] {key} = {json.dumps(value)} [dim]({path})[/dim]")
        except (ValueError, OSError) as exc:
            print_error(str(exc))
            sys.exit(1)
        return

    config = apply_overrides(load_config(args.config), args)

    try:
        validate_config(config)
    except (KeyError, TypeError, ValueError) as exc:
        print_error(str(exc))
        sys.exit(1)

    if args.show_config:
        print(json.dumps(config, indent=2))
        return

    configure_logging(config["log_level"], config.get("log_file") or None)

    if not args.once:
        logger.info("Serving speed test API on %s:%s", config["host"], config["port"])
        run_app(config)
        return

    try:
        result = asyncio.run(
            run_once(
                config,
                json_output=args.json,
                simple=args.simple,
                output_file=args.output,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Test cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as exc:
        print_error(str(exc))
        sys.exit(1)

    if result is None:
        sys.exit(1)


if __name__ == "__main__":
    main()
