"""Shared constants for runway workflows."""

TRIGGER_TOPIC = "runway.triggers"

# Credits debited when a workflow is triggered
AVATAR_COST = 10
CUSTOM_AVATAR_COST = 20
HYBRID_AVATAR_COST = 25
VIDEO_COST = 20
TRANSFER_COST = 30

# Maximum attempts per workflow execution
AVATAR_RETRIES = 3
CUSTOM_AVATAR_RETRIES = 2
HYBRID_AVATAR_RETRIES = 2
VIDEO_RETRIES = 3
TRANSFER_RETRIES = 2

DEFAULT_QUALITY_THRESHOLD = 90
DEFAULT_MAX_CONCURRENCY = 4
DEFAULT_BACKOFF_BASE = 1.5
DEFAULT_BACKOFF_JITTER = 0.5

PREVIEW_COUNT = 4
LORA_TRAINING_STEPS = 1000
TRANSFER_SAMPLE_FPS = 1
TRANSFER_MAX_FRAMES = 30
