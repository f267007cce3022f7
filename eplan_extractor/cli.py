"""CLI entrypoint for the ePlan dashboard extractor."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from eplan_extractor.common.config_loader import RunConfig, load_run_config
from eplan_extractor.common.constants import (
    ARCHIVED_TAG_ACTIVE,
    EXIT_HARD_FAIL,
    EXIT_PARTIAL,
    EXIT_SUCCESS,
    STAGES,
)
from eplan_extractor.common.errors import ConfigError, PipelineError
from eplan_extractor.common.fs import read_lines
from eplan_extractor.common.http import ClientConfig, HttpClient
from eplan_extractor.common.logging import build_logger, close_logger, log_event
from eplan_extractor.common.time_utils import generate_run_id
from eplan_extractor.pipeline.delivery import DeliveryMetadata, deliver
from eplan_extractor.pipeline.parse import parse_lines
from eplan_extractor.pipeline.reports import read_batch, write_batch
from eplan_extractor.pipeline.runner import delivery_options, run


def _header(value: str) -> tuple[str, str]:
    name, sep, header_value = value.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Expected NAME=VALUE, got {value!r}")
    return name.strip(), header_value.strip()


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=STAGES)
    parser.add_argument("--config", default="./config/eplan.yml")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--log-format", default="text", choices=["text", "json"])
    parser.add_argument("--input", default=None, help="raw rows (parse) or batch JSON (deliver)")
    parser.add_argument("--archived-tag", default=ARCHIVED_TAG_ACTIVE)
    parser.add_argument("--dashboard-url", default=None)
    parser.add_argument("--username", default=None)
    parser.add_argument("--password-env", default=None)
    parser.add_argument("--endpoint", default=None)
    parser.add_argument("--user-email", default=None)
    parser.add_argument("--header", dest="headers", action="append", type=_header, default=[])
    parser.add_argument("--bearer-token-env", default=None)
    parser.add_argument("--no-metadata", action="store_true")
    parser.add_argument("--harvest-archived", action="store_true")
    parser.add_argument("--headed", action="store_true")
    return parser.parse_args(argv)


def config_overrides(args: argparse.Namespace) -> dict:
    overrides = {
        "dashboard.url": args.dashboard_url,
        "credentials.username": args.username,
        "credentials.password_env": args.password_env,
        "delivery.endpoint": args.endpoint,
        "delivery.user_email": args.user_email,
        "delivery.headers": dict(args.headers) or None,
    }
    if args.bearer_token_env:
        overrides["delivery.auth"] = {"scheme": "bearer", "token_env": args.bearer_token_env}
    if args.no_metadata:
        overrides["delivery.include_metadata"] = False
    if args.harvest_archived:
        overrides["dashboard.harvest_archived"] = True
    if args.headed:
        overrides["browser.headless"] = False
    return overrides


def _require_input(args: argparse.Namespace) -> Path:
    if not args.input:
        raise ConfigError(f"--input is required for {args.command}")
    path = Path(args.input)
    if not path.exists():
        raise ConfigError(f"Input file not found: {path}")
    return path


def run_parse(args: argparse.Namespace, config: RunConfig, run_id: str, data_dir: Path, logger: logging.Logger) -> int:
    path = _require_input(args)
    records, skipped = parse_lines(read_lines(path), args.archived_tag, schema_version=config.schema_version)
    out_path = write_batch(data_dir, run_id, records)
    log_event(
        logger,
        f"parsed {len(records)} records ({len(skipped)} skipped) into {out_path}",
        stage="parse",
        event="STAGE_END",
        status="ok" if not skipped else "partial",
        rows_out=len(records),
    )
    return EXIT_SUCCESS if not skipped else EXIT_PARTIAL


def run_deliver(args: argparse.Namespace, config: RunConfig, logger: logging.Logger) -> int:
    path = _require_input(args)
    if not config.delivery.endpoint:
        raise ConfigError("delivery.endpoint is required for deliver")
    batch = read_batch(path)
    with HttpClient(config=ClientConfig(timeout=config.delivery.timeout)) as client:
        result = deliver(
            client,
            config.delivery.endpoint,
            batch,
            DeliveryMetadata(user_email=config.delivery.user_email),
            options=delivery_options(config),
            logger=logger,
        )
    return EXIT_SUCCESS if result.success else EXIT_HARD_FAIL


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    data_dir = Path(args.data_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level, console_format=args.log_format)
    try:
        log_event(logger, f"{args.command} start", stage=args.command, event="STAGE_START", status="ok")
        try:
            config = load_run_config(
                Path(args.config),
                overlay_config_dir=overlay_config_dir,
                overrides=config_overrides(args),
            )
            if args.command == "parse":
                return run_parse(args, config, run_id, data_dir, logger)
            if args.command == "deliver":
                return run_deliver(args, config, logger)
            return run(config, run_id=run_id, data_dir=data_dir, logger=logger)
        except PipelineError as exc:
            log_event(
                logger,
                f"{args.command} failed: {exc}",
                level=logging.ERROR,
                stage=args.command,
                event="STAGE_FAIL",
                status="error",
                error_code=exc.error_code,
            )
            return EXIT_HARD_FAIL
        except Exception as exc:
            logger.exception(
                f"unexpected failure in {args.command}: {exc}",
                extra={"stage": args.command, "event": "STAGE_FAIL", "status": "error", "error_code": "UNEXPECTED_ERROR"},
            )
            return EXIT_HARD_FAIL
    finally:
        close_logger(logger)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    return run_command(args)


if __name__ == "__main__":
    raise SystemExit(main())
