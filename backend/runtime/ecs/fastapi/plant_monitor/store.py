"""DynamoDB-backed document store for readings, settings and generated messages.

All records live in one table keyed by ``recordType`` (partition) and ``sk``
(sort).  Readings and auto messages use an ISO-8601 UTC timestamp followed by
a short random suffix as the sort key, so a key-condition range on ``sk``
doubles as a timestamp range and ``ScanIndexForward=False`` yields newest
first.  The settings singleton lives at ``SETTINGS/CURRENT``, and each
scheduled message first claims ``DAILY_MESSAGE/<YYYY-MM-DD>``.
"""
import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Key

from .config import AppConfig
from .errors import ValidationError
from .models import (
    AutoMessage,
    EvaluationResult,
    PlantSettings,
    SensorReading,
    SensorReadingPayload,
    SettingsUpdate,
    ensure_utc,
)

logger = logging.getLogger(__name__)

READING_RECORD = "READING"
SETTINGS_RECORD = "SETTINGS"
AUTO_MESSAGE_RECORD = "AUTO_MESSAGE"
DAILY_MESSAGE_RECORD = "DAILY_MESSAGE"
SETTINGS_KEY = "CURRENT"

_SETTINGS_FIELDS = (
    "minTemperature",
    "maxTemperature",
    "minHumidity",
    "maxHumidity",
    "minSoilMoisture",
    "maxSoilMoisture",
    "minLight",
    "maxLight",
)


def _to_decimal(value: Optional[float]) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


def _clean_item(item: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in item.items() if v is not None}


def _from_decimal(value: Any) -> Any:
    if isinstance(value, list):
        return [_from_decimal(v) for v in value]
    if isinstance(value, dict):
        return {k: _from_decimal(v) for k, v in value.items()}
    if isinstance(value, Decimal):
        return float(value)
    return value


def _decimalize(value: Any) -> Any:
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _decimalize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_decimalize(v) for v in value]
    return value


def format_timestamp(value: datetime) -> str:
    """Fixed-width UTC timestamp so lexical order matches chronological order."""
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S.%fZ").replace(tzinfo=timezone.utc)


def _sort_key(timestamp: datetime) -> str:
    return f"{format_timestamp(timestamp)}-{uuid.uuid4().hex[:8]}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PlantStore:
    """Thin repository over a boto3 ``Table`` resource."""

    def __init__(self, table: Any) -> None:
        self.table = table

    @classmethod
    def from_config(cls, config: AppConfig) -> "PlantStore":
        dynamodb = boto3.resource("dynamodb", region_name=config.aws_region)
        return cls(dynamodb.Table(config.table_name))

    # Readings

    def insert_reading(self, payload: SensorReadingPayload, received_at: Optional[datetime] = None) -> SensorReading:
        timestamp = ensure_utc(payload.timestamp or received_at or _utcnow())
        sort_key = _sort_key(timestamp)
        item = {
            "recordType": READING_RECORD,
            "sk": sort_key,
            "timestamp": format_timestamp(timestamp),
            "temperature": _to_decimal(payload.temperature),
            "humidity": _to_decimal(payload.humidity),
            "soilMoisture": _to_decimal(payload.soil_moisture),
            "light": _to_decimal(payload.light),
        }
        self.table.put_item(Item=_clean_item(item))
        logger.info("Stored reading %s", sort_key)
        return SensorReading(
            id=sort_key,
            timestamp=timestamp,
            temperature=payload.temperature,
            humidity=payload.humidity,
            soilMoisture=payload.soil_moisture,
            light=payload.light,
        )

    def list_readings(
        self,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[SensorReading]:
        """Readings with ``since <= timestamp <= until``, newest first."""
        condition = Key("recordType").eq(READING_RECORD)
        if since is not None and until is not None:
            # "~" sorts after the random hex suffix, making the upper bound inclusive
            condition = condition & Key("sk").between(format_timestamp(since), format_timestamp(until) + "~")
        elif since is not None:
            condition = condition & Key("sk").gte(format_timestamp(since))
        elif until is not None:
            condition = condition & Key("sk").lte(format_timestamp(until) + "~")

        items = self._query_all(condition, limit=limit)
        return [self._reading_from_item(item) for item in items]

    def latest_reading(self) -> Optional[SensorReading]:
        readings = self.list_readings(limit=1)
        return readings[0] if readings else None

    @staticmethod
    def _reading_from_item(item: Dict[str, Any]) -> SensorReading:
        data = _from_decimal(item)
        return SensorReading(
            id=data["sk"],
            timestamp=parse_timestamp(data["timestamp"]),
            temperature=data["temperature"],
            humidity=data["humidity"],
            soilMoisture=data["soilMoisture"],
            light=data["light"],
        )

    # Settings

    def find_settings(self) -> Optional[PlantSettings]:
        response = self.table.get_item(Key={"recordType": SETTINGS_RECORD, "sk": SETTINGS_KEY})
        item = response.get("Item")
        if not item:
            return None
        return self._settings_from_item(item)

    def get_or_create_settings(self) -> PlantSettings:
        existing = self.find_settings()
        if existing is not None:
            return existing

        settings = PlantSettings(lastUpdated=_utcnow())
        item = self._settings_item(settings)
        try:
            self.table.put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(recordType)",
            )
            logger.info("Created default settings")
        except self.table.meta.client.exceptions.ConditionalCheckFailedException:
            # Another request created it first
            return self.find_settings() or settings
        return settings

    def save_settings(self, settings: PlantSettings) -> PlantSettings:
        """Atomic single-document upsert of the settings singleton."""
        settings = settings.model_copy(update={"last_updated": _utcnow()})
        item = self._settings_item(settings)
        attributes = {k: v for k, v in item.items() if k not in ("recordType", "sk")}

        names = {f"#{name}": name for name in attributes}
        values = {f":{name}": value for name, value in attributes.items()}
        assignments = ", ".join(f"#{name} = :{name}" for name in attributes)
        update_expression = f"SET {assignments}"
        if settings.owner_handle is None:
            names["#ownerHandle"] = "ownerHandle"
            update_expression += " REMOVE #ownerHandle"

        self.table.update_item(
            Key={"recordType": SETTINGS_RECORD, "sk": SETTINGS_KEY},
            UpdateExpression=update_expression,
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values,
        )
        logger.info("Updated settings")
        return settings

    def update_settings(self, update: SettingsUpdate) -> PlantSettings:
        current = self.get_or_create_settings()
        changes = update.model_dump(exclude_unset=True)
        if any(changes.get(name) is None for name in changes if name != "owner_handle"):
            raise ValidationError("Range bounds cannot be null")
        merged = current.model_copy(update=changes)
        for metric, bounds in merged.ranges().items():
            if bounds.minimum > bounds.maximum:
                raise ValidationError(f"Minimum {metric} must not exceed maximum {metric}")
        return self.save_settings(merged)

    @staticmethod
    def _settings_item(settings: PlantSettings) -> Dict[str, Any]:
        data = settings.model_dump(by_alias=True, exclude={"last_updated"})
        item: Dict[str, Any] = {
            "recordType": SETTINGS_RECORD,
            "sk": SETTINGS_KEY,
            "ownerHandle": data.get("ownerHandle"),
            "lastUpdated": format_timestamp(settings.last_updated or _utcnow()),
        }
        for field_name in _SETTINGS_FIELDS:
            item[field_name] = _to_decimal(data[field_name])
        return _clean_item(item)

    @staticmethod
    def _settings_from_item(item: Dict[str, Any]) -> PlantSettings:
        data = _from_decimal(item)
        values: Dict[str, Any] = {name: data[name] for name in _SETTINGS_FIELDS if name in data}
        if data.get("ownerHandle"):
            values["ownerHandle"] = data["ownerHandle"]
        if data.get("lastUpdated"):
            values["lastUpdated"] = parse_timestamp(data["lastUpdated"])
        return PlantSettings(**values)

    # Auto messages

    def insert_auto_message(self, text: str, evaluation: EvaluationResult, timestamp: Optional[datetime] = None) -> AutoMessage:
        timestamp = ensure_utc(timestamp or _utcnow())
        sort_key = _sort_key(timestamp)
        item = {
            "recordType": AUTO_MESSAGE_RECORD,
            "sk": sort_key,
            "timestamp": format_timestamp(timestamp),
            "text": text,
            "evaluation": _decimalize(evaluation.model_dump(by_alias=True)),
        }
        self.table.put_item(Item=item)
        logger.info("Stored auto message %s", sort_key)
        return AutoMessage(id=sort_key, text=text, evaluation=evaluation, timestamp=timestamp)

    def list_auto_messages(self, limit: Optional[int] = None) -> List[AutoMessage]:
        items = self._query_all(Key("recordType").eq(AUTO_MESSAGE_RECORD), limit=limit)
        return [self._auto_message_from_item(item) for item in items]

    def latest_auto_message(self) -> Optional[AutoMessage]:
        messages = self.list_auto_messages(limit=1)
        return messages[0] if messages else None

    # Daily claims

    def claim_daily_message(self, day: date, claimed_by: str) -> bool:
        """Reserve ``day`` for one scheduled message. False when already claimed."""
        try:
            self.table.put_item(
                Item={
                    "recordType": DAILY_MESSAGE_RECORD,
                    "sk": day.isoformat(),
                    "claimedBy": claimed_by,
                    "claimedAt": format_timestamp(_utcnow()),
                },
                ConditionExpression="attribute_not_exists(recordType)",
            )
        except self.table.meta.client.exceptions.ConditionalCheckFailedException:
            logger.info("Daily message for %s already claimed", day.isoformat())
            return False
        return True

    def release_daily_message(self, day: date) -> None:
        self.table.delete_item(Key={"recordType": DAILY_MESSAGE_RECORD, "sk": day.isoformat()})

    @staticmethod
    def _auto_message_from_item(item: Dict[str, Any]) -> AutoMessage:
        data = _from_decimal(item)
        return AutoMessage(
            id=data["sk"],
            text=data["text"],
            evaluation=EvaluationResult.model_validate(data["evaluation"]),
            timestamp=parse_timestamp(data["timestamp"]),
        )

    def _query_all(self, condition: Any, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        kwargs: Dict[str, Any] = {
            "KeyConditionExpression": condition,
            "ScanIndexForward": False,
        }
        if limit is not None:
            kwargs["Limit"] = limit

        response = self.table.query(**kwargs)
        items = response.get("Items", [])

        while "LastEvaluatedKey" in response and (limit is None or len(items) < limit):
            kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]
            if limit is not None:
                kwargs["Limit"] = limit - len(items)
            response = self.table.query(**kwargs)
            items.extend(response.get("Items", []))

        return items
