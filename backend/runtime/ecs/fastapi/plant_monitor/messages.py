"""
Plant "personality" messages.

``PlantMessenger`` owns every way a message gets produced:

* ``generate_on_demand`` - caller supplies a reading snapshot and settings;
  the text and evaluation come straight back, nothing is persisted and
  collaborator errors propagate.
* ``run_daily_cycle`` - one scheduled firing; reads the latest reading and
  settings from the store, evaluates the trailing window, persists an
  ``AutoMessage`` and optionally posts it. Failures are logged, never raised.
* ``run_scheduled_cycle`` - ``run_daily_cycle`` behind a per-day claim in the
  store, shared by the in-process scheduler and the Lambda.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, NamedTuple, Optional, Tuple

from .config import AppConfig
from .evaluator import evaluate, window_start
from .models import (
    HUMIDITY,
    LIGHT,
    SOIL_MOISTURE,
    TEMPERATURE,
    AutoMessage,
    EvaluationResult,
    PlantSettings,
    SensorReading,
    ensure_utc,
)
from .social import SocialPoster
from .store import PlantStore
from .text_generation import TextGenerator

logger = logging.getLogger(__name__)


class ScheduledOutcome(NamedTuple):
    claimed: bool
    message: Optional[AutoMessage]


SYSTEM_PROMPT = (
    "You are a houseplant with a big personality. You speak in the first person, "
    "in one or two short sentences, with humour and a little drama. "
    "Keep it under 250 characters and never use hashtags."
)

_LABELS: Dict[str, Tuple[str, str]] = {
    TEMPERATURE: ("Temperature", "°C"),
    HUMIDITY: ("Humidity", "%"),
    SOIL_MOISTURE: ("Soil moisture", "%"),
    LIGHT: ("Light", " lux"),
}


def build_user_prompt(
    values: Dict[str, float],
    settings: PlantSettings,
    evaluation: EvaluationResult,
    owner_handle: Optional[str] = None,
) -> str:
    ranges = settings.ranges()
    lines = ["Here is how you are doing right now:"]
    for metric, (label, unit) in _LABELS.items():
        bounds = ranges[metric]
        lines.append(
            f"- {label}: {values[metric]:g}{unit} (ideal {bounds.minimum:g}-{bounds.maximum:g}{unit})"
        )

    if evaluation.is_mistreated:
        complaints = ", ".join(_LABELS[issue][0].lower() for issue in evaluation.issues if issue in _LABELS)
        lines.append(f"Over the last day your average {complaints} has been outside your ideal range.")
        lines.append("Complain about it dramatically.")
    else:
        lines.append("You have been well looked after lately. Express your gratitude.")

    if owner_handle:
        lines.append(f"Address your owner as @{owner_handle.lstrip('@')}.")
    return "\n".join(lines)


class PlantMessenger:
    def __init__(
        self,
        config: AppConfig,
        store: PlantStore,
        text_generator: TextGenerator,
        poster: Optional[SocialPoster] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.text_generator = text_generator
        self.poster = poster

    def _generate(self, values: Dict[str, float], settings: PlantSettings, evaluation: EvaluationResult, owner_handle: Optional[str]) -> str:
        user_prompt = build_user_prompt(values, settings, evaluation, owner_handle)
        return self.text_generator.generate(
            SYSTEM_PROMPT,
            user_prompt,
            max_tokens=self.config.message_max_tokens,
            temperature=self.config.message_temperature,
        )

    def generate_on_demand(
        self,
        reading: SensorReading,
        settings: PlantSettings,
        owner_handle: Optional[str] = None,
    ) -> Tuple[str, EvaluationResult]:
        evaluation = evaluate([reading], settings)
        handle = owner_handle or settings.owner_handle
        text = self._generate(reading.metric_values(), settings, evaluation, handle)
        return text, evaluation

    def run_daily_cycle(self, now: Optional[datetime] = None) -> Optional[AutoMessage]:
        """One scheduled firing. Returns the persisted message, or None when aborted."""
        now = now or datetime.now(timezone.utc)
        try:
            latest = self.store.latest_reading()
            if latest is None:
                logger.info("Daily message skipped: no sensor readings yet")
                return None

            settings = self.store.find_settings()
            if settings is None:
                logger.info("Daily message skipped: settings have not been created")
                return None

            window = self.store.list_readings(since=window_start(now, self.config.evaluation_window_hours), until=now)
            evaluation = evaluate(window, settings)
            text = self._generate(latest.metric_values(), settings, evaluation, settings.owner_handle)
            message = self.store.insert_auto_message(text, evaluation, timestamp=now)
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("Daily message cycle failed")
            return None

        logger.info("Daily message generated (mistreated=%s)", evaluation.is_mistreated)

        if self.config.auto_post_enabled and self.poster is not None:
            try:
                post_id = self.poster.post(text)
                logger.info("Daily message posted as %s", post_id)
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Posting the daily message failed")

        return message

    def run_scheduled_cycle(self, now: Optional[datetime] = None, claimed_by: str = "api") -> ScheduledOutcome:
        """Claim the UTC day in the store, then run the daily cycle.

        Every process that schedules messages (API replicas, the Lambda) goes
        through here, so at most one of them produces the day's message. An
        aborted cycle releases its claim so a later trigger that day can retry.
        """
        now = ensure_utc(now or datetime.now(timezone.utc))
        day = now.date()
        try:
            claimed = self.store.claim_daily_message(day, claimed_by)
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("Could not claim the daily message for %s", day.isoformat())
            return ScheduledOutcome(claimed=False, message=None)
        if not claimed:
            return ScheduledOutcome(claimed=False, message=None)

        message = self.run_daily_cycle(now)
        if message is None:
            try:
                self.store.release_daily_message(day)
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Could not release the daily message claim for %s", day.isoformat())
        return ScheduledOutcome(claimed=True, message=message)
