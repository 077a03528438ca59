"""CLI entrypoint for the dd client (dd -f deploy.yml <service>)."""

from __future__ import annotations

import argparse
import signal
import sys
from typing import List, Optional

import structlog

from dd_deploy.client.builder import ImageBuilder
from dd_deploy.client.sync import SyncDriver
from dd_deploy.client.transfer import TransferClient
from dd_deploy.core.config import ClientSettings
from dd_deploy.core.exceptions import DDError
from dd_deploy.utils.logging import setup_logging

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dd", description="Build, ship and deploy a service to a dd-server")
    parser.add_argument("-f", "--file", dest="descriptor", required=True, help="Path to deploy.yml")
    parser.add_argument("service", help="Service (stack) name on the remote host")
    parser.add_argument("--server", help="Receiver base URL (default: $DD_SERVER_URL or http://localhost:8080)")
    parser.add_argument("--context", help="Docker build context (default: .)")
    parser.add_argument("--dockerfile", help="Dockerfile path passed to docker build -f")
    parser.add_argument("--timeout", type=float, help="HTTP request timeout in seconds")
    return parser


def _settings_from_args(args: argparse.Namespace) -> ClientSettings:
    overrides = {
        "server_url": args.server,
        "build_context": args.context,
        "dockerfile": args.dockerfile,
        "request_timeout_seconds": args.timeout,
    }
    return ClientSettings(**{k: v for k, v in overrides.items() if v is not None})


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = _settings_from_args(args)
    setup_logging(settings.log_level, settings.log_format)

    # Turn SIGTERM into SystemExit so the transient image file is still removed
    def handle_sigterm(signum, frame):
        logger.info("Received SIGTERM, aborting")
        sys.exit(128 + signum)

    signal.signal(signal.SIGTERM, handle_sigterm)

    builder = ImageBuilder(
        docker_bin=settings.docker_bin,
        context=settings.build_context,
        dockerfile=settings.dockerfile,
        timeout=settings.build_timeout_seconds,
    )
    try:
        with TransferClient(settings.server_url, timeout=settings.request_timeout_seconds) as transfer:
            SyncDriver(builder, transfer).run(args.descriptor, args.service)
    except DDError as e:
        logger.error("Deployment failed", error_type=e.__class__.__name__, error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.error("Deployment interrupted")
        return 130

    print("Deployment complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
