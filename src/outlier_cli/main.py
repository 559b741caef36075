from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path

from outlier_api.config import AppConfig, ConfigError, load_config
from outlier_core import __version__
from outlier_core.dataset import parse_value_list, read_values_from_file
from outlier_core.errors import OutlierError
from outlier_core.percentile import compute_percentile, validate_percentile


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="outlier",
        description="Calculate percentiles from numerical datasets",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="TOML config file (falls back to OUTLIER_CONFIG_FILE)",
    )
    parser.add_argument(
        "-p",
        "--percentile",
        type=float,
        default=95.0,
        help="Percentile to calculate (e.g. 95, 99)",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "-f",
        "--file",
        type=Path,
        default=None,
        help="Input file (JSON or CSV format)",
    )
    source.add_argument(
        "-v",
        "--values",
        default=None,
        help="Comma-separated values, e.g. 1,2,3.5",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Start API server mode",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for API server, overrides server.port (only with --serve)",
    )
    return parser


def format_percentile(percentile: float) -> str:
    text = repr(float(percentile))
    return text[:-2] if text.endswith(".0") else text


def run_cli(args: argparse.Namespace, config: AppConfig) -> int:
    percentile = validate_percentile(args.percentile)
    max_values = config.limits.max_values

    if args.file is not None:
        values = read_values_from_file(args.file, max_values=max_values)
    elif args.values is not None:
        values = parse_value_list(args.values, max_values=max_values)
    else:
        raise OutlierError("Must provide either --file or --values")

    if not values:
        raise OutlierError("No values provided")

    result = compute_percentile(values, percentile)
    print(f"Number of values: {len(values)}")
    print(f"Percentile (P{format_percentile(percentile)}): {result:.2f}")
    return 0


def serve(config: AppConfig, port: int | None = None) -> int:
    import uvicorn

    from outlier_api.main import create_app
    from outlier_api.telemetry import telemetry_session

    if port is not None:
        config = config.model_copy(
            update={"server": config.server.model_copy(update={"port": port})}
        )
    host = str(config.server.bind_ip)
    with telemetry_session(config.logging) as telemetry:
        app = create_app(config, telemetry)
        logger = telemetry.logger("outlier.server")
        logger.info("server_listening", url=f"http://{host}:{config.server.port}")
        logger.info("docs_available", url=f"http://{host}:{config.server.port}/docs")
        uvicorn.run(app, host=host, port=config.server.port, log_config=None)
    return 0


def run(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args.config)
        if args.serve:
            return serve(config, args.port)
        return run_cli(args, config)
    except (ConfigError, OutlierError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    main()
