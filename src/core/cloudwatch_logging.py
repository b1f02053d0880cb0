"""
CloudWatch logging via watchtower.

Ships generation and history milestones, plus every ERROR record, to
CloudWatch Logs. Routine request logging stays local.

Requires:
  - pip install "abbas-image-studio[cloudwatch]"
  - IAM permissions for CloudWatch Logs (instance role or env credentials)

Environment variables:
  CLOUDWATCH_ENABLED    - Set to "true" to enable (default: disabled)
  CLOUDWATCH_LOG_GROUP  - CloudWatch log group name (default: /app/abbas-image-studio)
  CLOUDWATCH_LOG_STREAM - Stream name (default: chosen by watchtower)
"""

import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_LOG_GROUP = "/app/abbas-image-studio"


class EngineLogFilter(logging.Filter):
    """Pass INFO+ from the generation engine, ERROR+ from anywhere."""

    ENGINE_MODULES = (
        "src.services.generation_session",
        "src.services.history_cache",
        "src.core.image_generator",
    )

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.ERROR:
            return True
        if record.levelno >= logging.INFO:
            return record.name.startswith(self.ENGINE_MODULES)
        return False


def setup_cloudwatch_logging() -> bool:
    """
    Attach a CloudWatch handler to the root logger.

    Returns True if CloudWatch logging was enabled. A missing watchtower
    install or missing credentials only produce a warning.
    """
    if os.getenv("CLOUDWATCH_ENABLED", "").lower() != "true":
        return False

    try:
        import watchtower
    except ImportError:
        logger.warning("CLOUDWATCH_ENABLED=true but watchtower is not installed")
        return False

    log_group = os.getenv("CLOUDWATCH_LOG_GROUP", DEFAULT_LOG_GROUP)

    try:
        handler = watchtower.CloudWatchLogHandler(
            log_group_name=log_group,
            log_stream_name=os.getenv("CLOUDWATCH_LOG_STREAM"),
            send_interval=10,
            max_batch_count=100,
        )
    except Exception as e:
        logger.warning("Failed to initialize CloudWatch logging: %s", e)
        return False

    handler.setLevel(logging.INFO)
    handler.addFilter(EngineLogFilter())
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logging.getLogger().addHandler(handler)
    logger.info("CloudWatch logging enabled: group=%s", log_group)
    return True


def flush_cloudwatch_logging() -> None:
    """Flush and detach CloudWatch handlers. Call on app shutdown."""
    try:
        import watchtower
    except ImportError:
        return

    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, watchtower.CloudWatchLogHandler):
            handler.flush()
            handler.close()
            root.removeHandler(handler)
