#!/usr/bin/env python3
"""
User and Catalog Management Utility

This script provides utilities to manage the catalog outside the API:
- Create users and issue their first access token
- Issue and revoke access tokens
- Show catalog statistics
- Clean up reviews whose book no longer exists
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from api.auth import AccessTokenManager
from catalog.database import CatalogDatabase
from utilities.config import config
from utilities.logger import setup_logging


async def create_user(name: str, email: str):
    """Create a user and print a fresh access token for it."""
    print("\n👤 CREATING USER")
    print("=" * 80)

    db = CatalogDatabase.from_config(config)
    try:
        await db.connect()
        user = await db.insert_user(name, email)
        issued = await AccessTokenManager.issue_token(db, user["id"], config.token_expire_hours)

        print(f"✅ User created: {user['name']} <{email}>")
        print(f"   User ID: {user['id']}")
        print(f"   Token:   {issued['token']}")
        print(f"   Expires: {issued['expires_at'] or 'never'}")
        print("\n⚠️  Store the token now; only its hash is kept.")

    except Exception as e:
        print(f"❌ Error creating user: {e}")
    finally:
        await db.disconnect()


async def issue_token(user_id: str, expires_hours=None):
    """Issue an additional access token for an existing user."""
    print("\n🔑 ISSUING TOKEN")
    print("=" * 80)

    db = CatalogDatabase.from_config(config)
    try:
        await db.connect()
        issued = await AccessTokenManager.issue_token(db, user_id, expires_hours or config.token_expire_hours)
        print(f"✅ Token for {issued['name']} ({issued['user_id']}): {issued['token']}")
        print(f"   Expires: {issued['expires_at'] or 'never'}")

    except ValueError as e:
        print(f"❌ {e}")
    except Exception as e:
        print(f"❌ Error issuing token: {e}")
    finally:
        await db.disconnect()


async def revoke_token(token: str):
    """Revoke an access token."""
    db = CatalogDatabase.from_config(config)
    try:
        await db.connect()
        if await AccessTokenManager.revoke_token(db, token):
            print("✅ Token revoked")
        else:
            print("❌ Token not found")

    except Exception as e:
        print(f"❌ Error revoking token: {e}")
    finally:
        await db.disconnect()


async def show_statistics():
    """Show catalog statistics."""
    print("\n📊 CATALOG STATISTICS")
    print("=" * 80)

    db = CatalogDatabase.from_config(config)
    try:
        await db.connect()
        stats = await db.get_database_stats()

        print(f"📚 Total Books: {stats['total_books']}")
        print(f"📝 Total Reviews: {stats['total_reviews']}")
        print(f"👤 Total Users: {stats['total_users']}")
        print(f"🗑️  Orphaned Reviews: {stats['orphaned_reviews']}")

        if stats['orphaned_reviews'] > 0:
            print(f"\n⚠️  Warning: {stats['orphaned_reviews']} reviews reference deleted books!")
            print("   Run cleanup to remove them.")

    except Exception as e:
        print(f"❌ Error getting statistics: {e}")
    finally:
        await db.disconnect()


async def cleanup_orphaned_reviews():
    """Delete reviews left behind by an interrupted book deletion."""
    print("\n🧹 CLEANING UP ORPHANED REVIEWS")
    print("=" * 80)

    db = CatalogDatabase.from_config(config)
    try:
        await db.connect()
        orphaned = await db.find_orphaned_review_ids()
        print(f"🔍 Found {len(orphaned)} orphaned reviews")

        if orphaned:
            deleted = await db.delete_reviews(orphaned)
            print(f"✅ Deleted {deleted} orphaned reviews")
        else:
            print("ℹ️  No orphaned reviews found")

    except Exception as e:
        print(f"❌ Error during cleanup: {e}")
    finally:
        await db.disconnect()


def print_usage():
    print("Usage: python manage_users.py [create-user|issue-token|revoke-token|stats|cleanup] [args]")
    print()
    print("Commands:")
    print("  create-user <name> <email>    - Create a user and print an access token")
    print("  issue-token <user_id> [hours] - Issue another token for a user")
    print("  revoke-token <token>          - Revoke an access token")
    print("  stats                         - Show catalog statistics")
    print("  cleanup                       - Delete reviews of deleted books")


async def main():
    """Main function."""
    if len(sys.argv) < 2:
        print_usage()
        sys.exit(1)

    command = sys.argv[1].lower()
    args = sys.argv[2:]

    # Setup logging
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug
    )

    if command == "create-user":
        if len(args) < 2:
            print("❌ Error: name and email required")
            sys.exit(1)
        await create_user(args[0], args[1])
    elif command == "issue-token":
        if not args:
            print("❌ Error: user id required")
            sys.exit(1)
        hours = int(args[1]) if len(args) > 1 else None
        await issue_token(args[0], hours)
    elif command == "revoke-token":
        if not args:
            print("❌ Error: token required")
            sys.exit(1)
        await revoke_token(args[0])
    elif command == "stats":
        await show_statistics()
    elif command == "cleanup":
        await cleanup_orphaned_reviews()
    else:
        print(f"❌ Unknown command: {command}")
        print_usage()
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
