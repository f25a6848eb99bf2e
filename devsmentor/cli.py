"""
DevsMentor - command-line interface

Runs gated career features and inspects entitlements from a shell.
Invoked as 'devsmentor' after installation.

Example usage:
    devsmentor run career_analysis --user u1 career_path="Data Scientist"
    devsmentor run job_search --user u1 query="backend intern" location=Pune
    devsmentor status --user u1
    devsmentor grant --user u1 --tier pro --days 30
"""

import argparse
import json
import sys
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Optional

from devsmentor.core.models import Tier, utc_now
from devsmentor.core.store import InMemoryUsageStore
from devsmentor.features.manager import CareerFeatureManager, create_feature_manager
from devsmentor.utils.config import load_config
from devsmentor.utils.errors import DevsMentorError
from devsmentor.utils.logging import setup_logging

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_DENIED = 2


def parse_inputs(pairs: List[str]) -> Dict[str, str]:
    """Turn ["key=value", ...] into a dict."""
    inputs: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected key=value, got '{pair}'")
        inputs[key.strip()] = value
    return inputs


def print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def cmd_run(manager: CareerFeatureManager, args: argparse.Namespace) -> int:
    inputs = parse_inputs(args.inputs)
    result = manager.execute(args.feature, args.user, **inputs)
    print_json(result.to_dict())
    if result.denied:
        return EXIT_DENIED
    return EXIT_OK if result.ok else EXIT_FAILED


def cmd_status(manager: CareerFeatureManager, args: argparse.Namespace) -> int:
    gate = manager.gate
    print_json(
        {
            "subscriber_id": args.user,
            "tier": gate.effective_tier(args.user).value,
            "features": manager.list_features(args.user),
            "usage": manager.usage_summary(args.user),
        }
    )
    return EXIT_OK


def cmd_grant(manager: CareerFeatureManager, args: argparse.Namespace) -> int:
    store = manager.gate.store
    if isinstance(store, InMemoryUsageStore):
        print(
            "Error: grant needs a persistent store; set storage.backend: sql in the config",
            file=sys.stderr,
        )
        return EXIT_FAILED
    if not hasattr(store, "upsert_subscription"):
        print("Error: configured store does not support tier changes", file=sys.stderr)
        return EXIT_FAILED
    expires_at = utc_now() + timedelta(days=args.days) if args.days else None
    subscription = store.upsert_subscription(args.user, Tier(args.tier), expires_at)
    print_json(subscription.to_dict())
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devsmentor",
        description="Run gated DevsMentor AI features and inspect usage",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run a feature for a subscriber")
    run.add_argument("feature", help="Feature id, e.g. career_analysis")
    run.add_argument("--user", required=True, help="Subscriber id")
    run.add_argument("inputs", nargs="*", help="Feature inputs as key=value")
    run.set_defaults(handler=cmd_run)

    status = subparsers.add_parser("status", help="Show tier, access and usage")
    status.add_argument("--user", required=True, help="Subscriber id")
    status.set_defaults(handler=cmd_status)

    grant = subparsers.add_parser("grant", help="Set a subscriber's tier")
    grant.add_argument("--user", required=True, help="Subscriber id")
    grant.add_argument("--tier", choices=[t.value for t in Tier], default=Tier.PRO.value)
    grant.add_argument("--days", type=int, default=None, help="Expire after N days")
    grant.set_defaults(handler=cmd_grant)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(str(args.config) if args.config else None)
    except DevsMentorError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED

    logging_config = config.get("logging", {})
    setup_logging(
        level="DEBUG" if args.verbose else logging_config.get("level", "INFO"),
        log_format=logging_config.get("format", "text"),
        log_file=logging_config.get("file"),
        colored=True,
        console_enabled=True,
    )

    try:
        manager = create_feature_manager(config)
        return args.handler(manager, args)
    except (KeyError, ValueError, DevsMentorError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
