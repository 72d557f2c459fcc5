"""Example showing how to run a worker for the built-in workflows."""

import asyncio
import logging
import sys

from runway import WorkflowEngine, build_services, get_repository, get_transport, workflows
from runway.config import load_config


async def main():
    logging.basicConfig(level=logging.INFO)
    lifespan = float(sys.argv[1]) if len(sys.argv) > 1 else None

    config = load_config()
    engine = WorkflowEngine(
        get_transport(config=config),
        build_services(config),
        registry=workflows.REGISTRY,
        repository=get_repository(config=config),
        config=config.engine,
        topic=config.transport.topic,
    )

    # Start worker
    await engine.start(lifespan=lifespan)


if __name__ == "__main__":
    asyncio.run(main())
