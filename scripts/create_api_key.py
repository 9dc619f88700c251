"""Create an external API key from the shell.

    python -m scripts.create_api_key "Storefront" --permissions read checkout

The raw key is printed once; only its hash is stored.
"""

import argparse
import asyncio

from core.database import close_db, session_scope
from core.logging_config import setup_logging
from domains.settings.service import PERMISSIONS, create_api_key


async def main(name: str, permissions: list[str]) -> None:
    async with session_scope() as session:
        api_key, raw_key = await create_api_key(session, name=name, permissions=permissions)
    await close_db()

    print(f"Name:        {api_key.name}")
    print(f"Permissions: {', '.join(api_key.permissions)}")
    print(f"Key:         {raw_key}")
    print("Store this key now; it cannot be shown again.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create an external API key")
    parser.add_argument("name", help="Label for the key, e.g. the storefront's name")
    parser.add_argument(
        "--permissions",
        nargs="+",
        default=["read"],
        choices=PERMISSIONS,
        help="Permissions to grant (default: read)",
    )
    args = parser.parse_args()

    setup_logging()
    asyncio.run(main(args.name, args.permissions))
