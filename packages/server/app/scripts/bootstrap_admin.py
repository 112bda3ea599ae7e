"""
Create or repair the TaskFlow admin account.

    taskflow-bootstrap-admin --email admin@example.com --username boss
    taskflow-bootstrap-admin --reconcile boss

The password comes from --password or the ADMIN_PASSWORD environment variable.
Safe to run repeatedly.
"""

import argparse
import asyncio
import os
import sys

from app.core.config import get_settings
from app.core.errors import TaskflowError
from app.core.logging_config import configure_logging
from app.core.supabase import (
    SupabaseIdentityStore,
    SupabaseRelationalStore,
    create_supabase_client,
)
from app.services import admin as admin_service


async def bootstrap(email: str, password: str, username: str) -> None:
    client = await create_supabase_client(get_settings())
    report = await admin_service.ensure_admin(
        email,
        password,
        username,
        SupabaseIdentityStore(client),
        SupabaseRelationalStore(client),
    )

    for user_id in report.removed_user_ids:
        print(f"Removed placeholder admin {user_id}.")
    if report.renamed_user_id:
        print(f"Renamed the profile of {report.renamed_user_id} to free '{username}'.")
    action = "Created" if report.created else "Updated"
    print(f"{action} admin {email} ({report.user_id}) with username '{username}'.")


async def reconcile(username: str) -> None:
    client = await create_supabase_client(get_settings())
    action = await admin_service.reconcile_admin_role(username, SupabaseRelationalStore(client))
    print(f"Admin role for '{username}': {action}.")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create or repair the admin user.")
    parser.add_argument("--email", help="Email address of the admin")
    parser.add_argument("--password", help="Password (default: $ADMIN_PASSWORD)")
    parser.add_argument("--username", default="admin_user", help="Profile username")
    parser.add_argument(
        "--reconcile",
        metavar="USERNAME",
        help="Only make sure the profile with this username has the admin role",
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level, "text")

    try:
        if args.reconcile:
            asyncio.run(reconcile(args.reconcile))
            return 0

        password = args.password or os.environ.get("ADMIN_PASSWORD")
        if not args.email or not password:
            parser.error("--email and --password (or ADMIN_PASSWORD) are required")
        asyncio.run(bootstrap(args.email, password, args.username))
    except TaskflowError as exc:
        print(f"Error ({exc.code}): {exc.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
