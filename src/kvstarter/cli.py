from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace

from .config import load_settings, parse_store_config
from .errors import StarterError
from .launcher import build_launch_plan, exec_plan
from .models import Epoch
from .probe import PeerProbe
from .resolver import EpochResolver

logger = logging.getLogger("kvstarter")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kvstarter",
        description="start the store binary matching the node's protocol epoch",
        epilog="starter options must be followed by '--'; without '--' every argument goes to the store",
        allow_abbrev=False,
    )
    parser.add_argument("--config", default=None, help="YAML starter settings file")
    parser.add_argument("--bin-dir", default=None, help="root of the per-epoch store binaries")
    parser.add_argument("--dry-run", action="store_true", help="print the launch plan instead of executing it")
    parser.add_argument("--show-env", action="store_true", help="include the environment in the dry-run plan")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def split_argv(argv: list[str]) -> tuple[list[str], list[str]]:
    if "--" in argv:
        idx = argv.index("--")
        return argv[:idx], argv[idx + 1 :]
    return [], argv


def _configure_logging(verbose: bool) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("kvstarter: %(message)s"))
    logger.handlers[:] = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False


def _fail(exc: StarterError) -> int:
    print(
        json.dumps(
            {"error_code": exc.code, "error_message": exc.message},
            ensure_ascii=False,
            indent=2,
        ),
        file=sys.stderr,
    )
    return 1


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    own, store_args = split_argv(argv)
    args = _build_parser().parse_args(own)
    _configure_logging(args.verbose)

    try:
        settings = load_settings(args.config, argv0=sys.argv[0])
        if args.bin_dir:
            settings = replace(settings, bin_dir=args.bin_dir)
        config = parse_store_config(store_args)

        resolver = EpochResolver(
            probe=PeerProbe(timeout=settings.probe_timeout),
            discovery_timeout=settings.discovery_timeout,
        )
        resolution = resolver.resolve(config)
        if resolution.epoch is Epoch.UNKNOWN:
            logger.error("could not resolve the protocol version to start")
            return 1
        logger.info("starting version %s", resolution.epoch.value)

        plan = build_launch_plan(resolution, store_args, settings)
        if args.dry_run:
            print(json.dumps(plan.as_dict(include_env=args.show_env), ensure_ascii=False, indent=2))
            return 0
        exec_plan(plan)
    except StarterError as exc:
        return _fail(exc)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
