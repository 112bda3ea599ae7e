"""
Print every user with their role, newest first.
"""

import asyncio
import sys

from app.core.config import get_settings
from app.core.errors import TaskflowError
from app.core.logging_config import configure_logging
from app.core.supabase import SupabaseRelationalStore, create_supabase_client
from app.services import users as user_service


async def list_users() -> list[dict]:
    client = await create_supabase_client(get_settings())
    return await user_service.list_users(SupabaseRelationalStore(client))


def main() -> int:
    settings = get_settings()
    configure_logging(settings.log_level, "text")

    try:
        users = asyncio.run(list_users())
    except TaskflowError as exc:
        print(f"Error ({exc.code}): {exc.message}", file=sys.stderr)
        return 1

    if not users:
        print("No users found.")
        return 0
    for user in users:
        print(f"{user['id']}  {user['role']:<6}  {user['username']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
