"""Export every user of a Keycloak realm, one committed page at a time.

This module is the CLI wrapper around roster.core. It is meant to be run
by a scheduler (cron, systemd timer, Kubernetes CronJob); each run is a
full re-authentication and re-scan.
"""
from __future__ import annotations
import argparse
import dataclasses
import json
import logging
import os
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from roster.config import ExportConfig, load_settings
from roster.core import DirectorySink, StreamSink, decode_users, run_export
from roster.core.keycloak import KeycloakClient, KeycloakError
from scripts import audit

logger = logging.getLogger("roster.export")

EXIT_OK = 0
EXIT_EXPORT_FAILED = 1
EXIT_CONFIG_ERROR = 2


def _configure(args: argparse.Namespace) -> ExportConfig:
    config = load_settings()
    overrides = {}
    if args.realm:
        overrides["realm"] = args.realm
    if args.page_size is not None:
        overrides["page_size"] = args.page_size
    if args.output_dir:
        overrides["output_dir"] = args.output_dir
    if args.insecure:
        overrides["tls_verify"] = False
    return dataclasses.replace(config, **overrides) if overrides else config


def cmd_export(args: argparse.Namespace) -> int:
    try:
        config = _configure(args)
    except (ValueError, RuntimeError) as e:
        print(f"[export] Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    audit.safe_log_export_event(
        "export_started", config.realm, operator=args.operator,
        details={"base_url": config.base_url, "page_size": config.page_size},
    )

    try:
        sink = StreamSink() if args.stdout else DirectorySink(config.output_dir)
        with KeycloakClient.from_config(config) as client:
            result = run_export(
                client,
                sink,
                username=config.admin_username,
                password=config.admin_password,
                realm=config.realm,
                page_size=config.page_size,
            )
    except (KeycloakError, OSError) as e:
        logger.error("Export of realm '%s' aborted: %s", config.realm, e)
        audit.safe_log_export_event(
            "export_failed", config.realm, operator=args.operator, success=False,
            details={"error": str(e), "error_type": type(e).__name__},
        )
        return EXIT_EXPORT_FAILED

    audit.safe_log_export_event(
        "export_completed", config.realm, operator=args.operator,
        details={"pages": result.pages_emitted, "users": result.users_emitted},
    )
    summary = json.dumps(result.to_dict())
    print(summary, file=sys.stderr if args.stdout else sys.stdout)
    return EXIT_OK


def cmd_inspect(args: argparse.Namespace) -> int:
    directory = Path(args.output_dir or os.environ.get("EXPORT_OUTPUT_DIR", ".runtime/export"))
    if not directory.is_dir():
        print(f"[inspect] No export directory at {directory}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    sink = DirectorySink(directory)
    try:
        for path in sink.pages():
            for user in decode_users(path.read_bytes()):
                print(f"{user.id}\t{user.username}\tenabled={user.enabled}\torigin={user.origin or '-'}")
    except KeycloakError as e:
        print(f"[inspect] {e}", file=sys.stderr)
        return EXIT_EXPORT_FAILED
    return EXIT_OK


def cmd_verify_audit(args: argparse.Namespace) -> int:
    total, valid = audit.verify_audit_log()
    print(f"Audit log: {valid}/{total} events with valid signatures")
    return EXIT_OK if total == valid else EXIT_EXPORT_FAILED


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Keycloak realm roster export")
    parser.add_argument("--log-level", default=os.environ.get("LOG_LEVEL", "INFO"))
    parser.add_argument("--operator", default="automation",
                       help="Operator identifier for audit logs (default: automation)")

    sub = parser.add_subparsers(dest="cmd")

    se = sub.add_parser("export", help="Run one full export of the realm's users")
    se.add_argument("--realm", help="Override KEYCLOAK_REALM")
    se.add_argument("--page-size", type=int, help="Override EXPORT_PAGE_SIZE")
    out = se.add_mutually_exclusive_group()
    out.add_argument("--output-dir", help="Override EXPORT_OUTPUT_DIR")
    out.add_argument("--stdout", action="store_true", help="Write one page per line to stdout")
    se.add_argument("--insecure", action="store_true",
                    help="Disable TLS certificate and hostname verification")

    si = sub.add_parser("inspect", help="List users found in an export directory")
    si.add_argument("--output-dir")

    sub.add_parser("verify-audit", help="Check audit log signatures")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return EXIT_CONFIG_ERROR

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    handlers = {
        "export": cmd_export,
        "inspect": cmd_inspect,
        "verify-audit": cmd_verify_audit,
    }
    return handlers[args.cmd](args)


if __name__ == "__main__":
    sys.exit(main())
