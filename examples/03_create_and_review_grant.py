"""Example: Create a grant as an issuer, then approve the first pending application."""

from __future__ import annotations

import asyncio
import logging
import os
import time

from dotenv import load_dotenv

from access_grants import AccessGrantsClient, LedgerClientConfig

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOGLEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

TITLE = "Clean Water"
DESCRIPTION = "Provide clean drinking water to three rural schools this year."
AMOUNT = "5"
DEADLINE_DAYS = 14


async def main() -> None:
    config = LedgerClientConfig.from_env()
    if not config.private_key:
        raise ValueError("PRIVATE_KEY not found in environment variables")

    async with AccessGrantsClient(config) as client:
        client.tracker.on_still_pending(
            lambda handle: print(f"{handle.tx_hash} is taking longer than usual...")
        )

        deadline = int(time.time()) + DEADLINE_DAYS * 24 * 60 * 60
        print(f"Creating grant {TITLE!r} for {AMOUNT} tokens")
        result = await client.grants.create_grant(TITLE, DESCRIPTION, AMOUNT, deadline)
        if not result.success:
            print(f"Grant creation failed: {result.message}")
            return

        handle = await client.tracker.wait(result.handle)
        if handle.error is not None:
            print(f"Grant creation not confirmed: {handle.error.user_message}")
            return
        print(f"Grant created in block {handle.block_number}")

        owned = [view for view in client.grants.grants if view.is_owned_by_caller]
        for view in owned:
            applications = await client.grants.get_grant_applications(view.id)
            pending = [application for application in applications if application.is_pending]
            if not pending:
                continue

            applicant = pending[0].applicant
            print(f"Approving {applicant} on grant #{view.id}")
            approval = await client.grants.approve_application(view.id, applicant)
            if not approval.success:
                print(f"Approval failed: {approval.message}")
                return
            await client.tracker.wait(approval.handle)
            print(f"Approval tx hash: {approval.tx_hash}")
            return

        print("No pending applications on your grants")


if __name__ == "__main__":
    asyncio.run(main())
