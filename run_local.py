#!/usr/bin/env python3
"""
Local development server runner.

Runs the Event Relay API and its delivery worker pool in one uvicorn
process. With the default in-memory backend no AWS resources are
needed; set STORAGE_BACKEND=aws to use DynamoDB and SQS.

Usage:
    python run_local.py
    python run_local.py --port 8000
    python run_local.py --reload  # Auto-reload on code changes
    python run_local.py --seed-key user_123  # Print a usable API key
"""

import argparse
import sys
from pathlib import Path

project_root = Path(__file__).parent

try:
    import uvicorn
except ImportError:
    print("ERROR: uvicorn is not installed.")
    print("Please install the project: pip install -e .")
    sys.exit(1)


def main():
    parser = argparse.ArgumentParser(
        description="Run the Event Relay API locally with uvicorn"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the server on (default: 8000)"
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload on code changes (recommended for development)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="info",
        choices=["critical", "error", "warning", "info", "debug", "trace"],
        help="Log level for uvicorn (default: info)"
    )
    parser.add_argument(
        "--seed-key",
        metavar="OWNER_ID",
        help="With the memory backend, create an API key for OWNER_ID and print it"
    )

    args = parser.parse_args()

    if args.seed_key and args.reload:
        parser.error("--seed-key cannot be combined with --reload")

    print("=" * 60)
    print("Starting Event Relay API (Local Development)")
    print("=" * 60)
    print(f"Server: http://{args.host}:{args.port}")
    print(f"API Docs: http://{args.host}:{args.port}/docs")
    print(f"Health: http://{args.host}:{args.port}/health")
    print("=" * 60)

    if args.seed_key:
        # Seeding needs the app object itself so the key lands in its store
        import asyncio

        from event_relay.auth.api_key import ApiKeyRecord, generate_api_key, hash_api_key
        from event_relay.main import create_app

        app = create_app()
        raw_key = generate_api_key()
        record = ApiKeyRecord(owner_id=args.seed_key, key_hash=hash_api_key(raw_key))
        asyncio.run(app.state.services.api_keys.put(record))
        print(f"API key for {args.seed_key}: {raw_key}")
        print()

        uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level)
        return

    if args.reload:
        print("Auto-reload: ENABLED (code changes will restart server)")
    print()

    uvicorn.run(
        "event_relay.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
        reload_dirs=[str(project_root / "src")] if args.reload else None
    )


if __name__ == "__main__":
    main()
