"""Example: Register an issuer on the registry as the admin account."""

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
    issuer_address = os.getenv("ISSUER_ADDRESS")
    if not issuer_address:
        raise ValueError("ISSUER_ADDRESS not found in environment variables")

    config = LedgerClientConfig.from_env()
    if not config.private_key:
        raise ValueError("PRIVATE_KEY not found in environment variables")

    async with AccessGrantsClient(config) as client:
        print(f"Registering issuer {issuer_address}")
        result = await client.authorization.request_issuer_registration(issuer_address)
        if not result.success:
            print(f"Registration failed: {result.message}")
            if result.error and result.error.details:
                print("Details:", result.error.details)
            return

        print(f"Registration tx hash: {result.tx_hash}")
        handle = await client.tracker.wait(result.handle)
        if handle.error is not None:
            print(f"Registration not confirmed: {handle.error.user_message}")
            return

        print(f"Included in block: {handle.block_number}")
        issuers = await client.authorization.list_issuers()
        print("Registered issuers:", ", ".join(issuers))


if __name__ == "__main__":
    asyncio.run(main())
