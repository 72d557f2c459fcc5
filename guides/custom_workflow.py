"""Example: define and run a small workflow of your own in one process."""

import asyncio

from runway import Step, WorkflowDefinition, WorkflowEngine, WorkflowRegistry, WorkflowTrigger
from runway.persistence import InMemoryExecutionRepository
from runway.services import build_services
from runway.transports import InMemoryTransport

attempts = {"upscale": 0}


async def pick_image(ctx):
    return ctx.trigger.payload["image_url"]


async def upscale(ctx):
    attempts["upscale"] += 1
    if attempts["upscale"] == 1:
        raise RuntimeError("upscaler warming up")
    return ctx.output("pick-image") + "?scale=2"


UPSCALE = WorkflowDefinition(
    name="upscale-image",
    event="image/upscale",
    steps=(Step("pick-image", pick_image), Step("upscale", upscale)),
    retries=2,
)


async def main():
    registry = WorkflowRegistry()
    registry.register(UPSCALE)
    engine = WorkflowEngine(
        InMemoryTransport(),
        build_services(),
        registry=registry,
        repository=InMemoryExecutionRepository(),
    )

    result = await engine.handle(
        WorkflowTrigger(event_name="image/upscale", payload={"image_url": "https://img.test/a.png"})
    )
    print(f"Status: {result.status.value} after {result.attempts} attempts")
    print(f"Output: {result.outputs['upscale']}")


if __name__ == "__main__":
    asyncio.run(main())
