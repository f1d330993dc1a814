#!/usr/bin/env python3
"""
Script: generate_api_key.py
Description: Generate and store API keys for Event Relay authentication.

Generates a random API key, stores its SHA-256 hash with the owner and
rate limit tier in the API keys DynamoDB table, and prints the raw key
once.

Usage:
    python scripts/generate_api_key.py --owner user_123 [--tier pro] [--confirm]

Security Note:
    The plaintext API key is shown only once. Store it securely!
    This script requires AWS credentials and access to DynamoDB.
"""

import argparse
import asyncio
import sys

from botocore.exceptions import ClientError

from event_relay.auth.api_key import ApiKeyRecord, generate_api_key, hash_api_key
from event_relay.config.settings import settings
from event_relay.storage.dynamodb import DynamoDBApiKeyStore
from event_relay.utils.logger import get_logger

logger = get_logger(__name__)


async def store_api_key(owner_id: str, tier: str) -> tuple:
    """
    Create a key for an owner and store its hash.

    Returns:
        (raw_key, record)
    """
    store = DynamoDBApiKeyStore(
        settings.api_keys_table_name,
        settings.usage_table_name,
        settings.aws_region
    )
    raw_key = generate_api_key()
    record = ApiKeyRecord(owner_id=owner_id, key_hash=hash_api_key(raw_key), tier=tier)
    await store.put(record)

    logger.info(
        "API key stored",
        key_id=record.key_id,
        owner_id=owner_id,
        tier=tier,
        table_name=settings.api_keys_table_name
    )
    return raw_key, record


def main():
    """Main script execution."""
    parser = argparse.ArgumentParser(
        description="Generate and store API keys for Event Relay",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/generate_api_key.py --owner user_123
  python scripts/generate_api_key.py --owner user_123 --tier pro --confirm
        """
    )
    parser.add_argument('--owner', required=True, help='Owner id the key acts as')
    parser.add_argument(
        '--tier',
        default='free',
        choices=sorted(settings.rate_limit_tiers),
        help='Rate limit tier for the key'
    )
    parser.add_argument(
        '--confirm',
        action='store_true',
        help='Confirm generation (prevents accidental key creation)'
    )
    args = parser.parse_args()

    if not args.confirm:
        print("WARNING: This will generate a new API key!")
        print("   The plaintext key will be shown only once.")
        response = input("Continue? (type 'yes' to confirm): ")
        if response.lower() != 'yes':
            print("Cancelled.")
            sys.exit(0)

    try:
        raw_key, record = asyncio.run(store_api_key(args.owner, args.tier))
    except ClientError as e:
        print(f"ERROR: {e.response['Error']['Code']}: {e.response['Error']['Message']}")
        sys.exit(1)

    print(f"API Key:  {raw_key}")
    print(f"Key ID:   {record.key_id}")
    print(f"Owner:    {record.owner_id}")
    print(f"Tier:     {record.tier}")
    print()
    print("Store this key securely! It will not be shown again.")
    print("Use it in the x-api-key header of /v1 requests.")


if __name__ == "__main__":
    main()
