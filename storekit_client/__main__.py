"""Command line entry point.

    python -m storekit_client serve      # sandbox verification endpoint
    python -m storekit_client validate   # validate the local receipt
"""

import argparse
import os
import sys

import uvicorn

from storekit_client import __version__


def _serve(args: argparse.Namespace) -> int:
    if args.log_format == "console":
        print("=" * 60)
        print(f"StoreKit Sandbox Verification v{__version__}")
        print("=" * 60)
        print(f"Host: {args.host}")
        print(f"Port: {args.port}")
        print(f"Config: {args.config}")
        print("=" * 60)

    try:
        uvicorn.run(
            "storekit_client.main:create_app",
            factory=True,
            host=args.host,
            port=args.port,
            log_level=args.log_level.lower(),
            reload=args.reload,
            access_log=False,  # RequestLoggingMiddleware logs requests
        )
    except KeyboardInterrupt:
        print("\nShutting down gracefully...")
    return 0


def _validate(args: argparse.Namespace) -> int:
    from storekit_client.config import Config, ConfigurationError
    from storekit_client.logging_config import configure_logging
    from storekit_client.repositories.ledger import PreferencesStore
    from storekit_client.repositories.receipt_store import LocalReceiptStore
    from storekit_client.services.event_bus import EventBus
    from storekit_client.services.receipt_validator import ReceiptValidator

    configure_logging(log_level=args.log_level, json_format=args.log_format == "json")

    try:
        config = Config(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    event_bus = EventBus()
    validator = ReceiptValidator(
        receipt_store=LocalReceiptStore(config.receipt_path),
        preferences=PreferencesStore(config.preferences_path),
        event_bus=event_bus,
        verify_url=args.url or config.verify_url,
        shared_secret=config.shared_secret,
        timeout=config.request_timeout,
    )

    failures = []
    event_bus.subscribe(failures.append)

    result = validator.verify_receipt()
    if result is None:
        if failures:
            print(f"Validation failed: {failures[0].error.message}", file=sys.stderr)
        else:
            print(f"No receipt found at {config.receipt_path}", file=sys.stderr)
        return 1

    for transaction_id in result.transaction_ids:
        print(transaction_id)
    if result.expiration_date is not None:
        status = validator.update_expiration(result.expiration_date)
        print(f"Expires: {result.expiration_date.isoformat()} ({status.value})")
    return 0


def main(argv=None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="storekit_client",
        description="StoreKit client - receipt validation and local sandbox",
    )
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", "config/store.yaml"),
        help="Path to store.yaml (default: config/store.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default=os.getenv("LOG_FORMAT", "console"),
        help="Log output format (default: console)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the sandbox verification endpoint")
    serve.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"), help="Host to bind to")
    serve.add_argument("--port", type=int, default=int(os.getenv("PORT", "8080")), help="Port to bind to")
    serve.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    serve.set_defaults(handler=_serve)

    validate = subparsers.add_parser("validate", help="Validate the local receipt")
    validate.add_argument("--url", help="Override the configured verification URL")
    validate.set_defaults(handler=_validate)

    args = parser.parse_args(argv)

    os.environ["LOG_LEVEL"] = args.log_level
    os.environ["LOG_FORMAT"] = args.log_format
    os.environ["CONFIG_PATH"] = args.config

    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
