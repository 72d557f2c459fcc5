"""Collaborators handed to every workflow step."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .adapters import Capabilities, build_capabilities
from .config import RunwayConfig, load_config
from .constants import DEFAULT_QUALITY_THRESHOLD
from .notify import Notifier, get_notifier
from .stores import AccountStore, EntityStore, get_stores


@dataclass
class Services:
    records: EntityStore
    accounts: AccountStore
    capabilities: Capabilities
    notifier: Notifier
    quality_threshold: int = DEFAULT_QUALITY_THRESHOLD
    storage_bucket_training: str = "avatar-training"
    storage_bucket_transfer: str = "transfer-videos"


def build_services(config: Optional[RunwayConfig] = None) -> Services:
    config = config or load_config()
    records, accounts = get_stores(config=config)
    return Services(
        records=records,
        accounts=accounts,
        capabilities=build_capabilities(config),
        notifier=get_notifier(config),
        quality_threshold=config.quality_threshold,
        storage_bucket_training=config.providers.storage_bucket_training,
        storage_bucket_transfer=config.providers.storage_bucket_transfer,
    )
