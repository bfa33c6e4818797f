"""EventBridge cron target that runs one daily plant-message cycle."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from plant_monitor.config import AppConfig
from plant_monitor.messages import PlantMessenger
from plant_monitor.social import XPoster
from plant_monitor.store import PlantStore
from plant_monitor.text_generation import OpenAITextGenerator

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

_messenger: Optional[PlantMessenger] = None


def build_messenger(config: AppConfig) -> PlantMessenger:
    return PlantMessenger(
        config,
        PlantStore.from_config(config),
        OpenAITextGenerator.from_config(config),
        XPoster.from_config(config),
    )


def _get_messenger() -> PlantMessenger:
    global _messenger
    if _messenger is None:
        _messenger = build_messenger(AppConfig.from_env())
    return _messenger


def lambda_handler(event: Dict[str, Any], _context: Any, messenger: Optional[PlantMessenger] = None) -> Dict[str, Any]:
    messenger = messenger or _get_messenger()
    now = datetime.now(timezone.utc)

    # EventBridge delivers at least once; the store claim keeps it to one message per UTC day
    outcome = messenger.run_scheduled_cycle(now, claimed_by="lambda")
    if not outcome.claimed:
        logger.info("Daily message for %s already claimed; skipping", now.date().isoformat())
        return {"statusCode": 200, "generated": False, "reason": "already generated today"}

    message = outcome.message
    if message is None:
        return {"statusCode": 200, "generated": False, "reason": "cycle aborted"}

    return {
        "statusCode": 200,
        "generated": True,
        "messageId": message.id,
        "isMistreated": message.evaluation.is_mistreated,
    }
