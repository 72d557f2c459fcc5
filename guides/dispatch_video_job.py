"""Example: submit a video job from an API handler.

Run a worker alongside it (``runway worker run``) with the same transport
and records database configured, e.g. redis plus ``RUNWAY_RECORDS_URL``.
"""

import asyncio
import uuid

from runway import JobDispatcher, get_transport
from runway.config import load_config
from runway.models import EntityRecord, Product, RecordKind, RecordStatus, UserProfile
from runway.stores import get_stores


async def main():
    config = load_config()
    transport = get_transport(config=config)
    records, accounts = get_stores(config=config)

    # Demo data: a user with credits, a finished avatar and a product
    if await accounts.get_profile("demo-user") is None:
        await accounts.create_profile(
            UserProfile(id="demo-user", email="demo@example.com", credits=100)
        )
    if await records.get(RecordKind.AVATARS, "demo-avatar") is None:
        await records.insert(
            RecordKind.AVATARS,
            EntityRecord(
                id="demo-avatar", user_id="demo-user", status=RecordStatus.COMPLETED, name="Mina"
            ),
        )
    await records.add_product(Product(id="demo-blazer", name="linen blazer", type="outerwear"))

    dispatcher = JobDispatcher(transport, records, accounts, topic=config.transport.topic)
    trigger = await dispatcher.submit(
        "video/generate",
        EntityRecord(
            id=str(uuid.uuid4()),
            user_id="demo-user",
            avatar_id="demo-avatar",
            product_id="demo-blazer",
            background_id="city-street",
            action_type="walk",
            video_size="9:16",
        ),
    )

    print(f"✅ Video job dispatched: {trigger.payload['jobId']}")
    print(f"📋 Trigger ID: {trigger.trigger_id}")
    print(f"💳 Remaining credits: {(await accounts.get_profile('demo-user')).credits}")

    await transport.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
