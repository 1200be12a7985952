"""Example: List grants with their derived view fields."""

from __future__ import annotations

import asyncio
import logging
import os

from dotenv import load_dotenv

from access_grants import AccessGrantsClient, LedgerClientConfig

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOGLEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


async def main() -> None:
    """Print every grant on the AccessGrant contract."""

    config = LedgerClientConfig.from_env()

    async with AccessGrantsClient(config) as client:
        views = await client.grants.list_grants()
        if not views:
            print("No grants found")
            return

        for view in views:
            status = "open" if view.can_apply else ("expired" if view.is_expired else "closed")
            print(
                f"#{view.id} {view.grant.title!r} {view.amount_display} "
                f"deadline={view.deadline_date} ({view.time_remaining}) [{status}]"
            )
            applications = await client.grants.get_grant_applications(view.id)
            for application in applications:
                print(f"    {application.applicant} {application.status.name.lower()}")


if __name__ == "__main__":
    asyncio.run(main())
