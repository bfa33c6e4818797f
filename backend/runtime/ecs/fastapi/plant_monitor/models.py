from datetime import datetime, timezone
from typing import Dict, List, NamedTuple, Optional

from pydantic import BaseModel, Field, field_validator

TEMPERATURE = "temperature"
HUMIDITY = "humidity"
SOIL_MOISTURE = "soilMoisture"
LIGHT = "light"

METRICS = (TEMPERATURE, HUMIDITY, SOIL_MOISTURE, LIGHT)

INSUFFICIENT_DATA = "insufficient data"


class MetricRange(NamedTuple):
    minimum: float
    maximum: float


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalise aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SensorReadingPayload(BaseModel):
    temperature: float
    humidity: float = Field(..., ge=0.0, le=100.0)
    soil_moisture: float = Field(..., alias="soilMoisture", ge=0.0, le=100.0)
    light: float = Field(..., ge=0.0)
    timestamp: Optional[datetime] = Field(None, description="Defaults to the time of receipt")

    class Config:
        populate_by_name = True
        allow_inf_nan = False
        json_schema_extra = {
            "example": {
                "temperature": 22.5,
                "humidity": 48.0,
                "soilMoisture": 41.0,
                "light": 2300.0,
            }
        }


class SensorReading(BaseModel):
    id: str
    timestamp: datetime
    temperature: float
    humidity: float
    soil_moisture: float = Field(..., alias="soilMoisture")
    light: float

    class Config:
        populate_by_name = True

    def metric_values(self) -> Dict[str, float]:
        return {
            TEMPERATURE: self.temperature,
            HUMIDITY: self.humidity,
            SOIL_MOISTURE: self.soil_moisture,
            LIGHT: self.light,
        }


class PlantSettings(BaseModel):
    owner_handle: Optional[str] = Field(None, alias="ownerHandle")
    last_updated: Optional[datetime] = Field(None, alias="lastUpdated")
    min_temperature: float = Field(18.0, alias="minTemperature")
    max_temperature: float = Field(26.0, alias="maxTemperature")
    min_humidity: float = Field(40.0, alias="minHumidity")
    max_humidity: float = Field(60.0, alias="maxHumidity")
    min_soil_moisture: float = Field(30.0, alias="minSoilMoisture")
    max_soil_moisture: float = Field(70.0, alias="maxSoilMoisture")
    min_light: float = Field(1000.0, alias="minLight")
    max_light: float = Field(5000.0, alias="maxLight")

    class Config:
        populate_by_name = True
        allow_inf_nan = False

    def ranges(self) -> Dict[str, MetricRange]:
        return {
            TEMPERATURE: MetricRange(self.min_temperature, self.max_temperature),
            HUMIDITY: MetricRange(self.min_humidity, self.max_humidity),
            SOIL_MOISTURE: MetricRange(self.min_soil_moisture, self.max_soil_moisture),
            LIGHT: MetricRange(self.min_light, self.max_light),
        }


class SettingsUpdate(BaseModel):
    owner_handle: Optional[str] = Field(None, alias="ownerHandle", max_length=64)
    min_temperature: Optional[float] = Field(None, alias="minTemperature")
    max_temperature: Optional[float] = Field(None, alias="maxTemperature")
    min_humidity: Optional[float] = Field(None, alias="minHumidity", ge=0.0, le=100.0)
    max_humidity: Optional[float] = Field(None, alias="maxHumidity", ge=0.0, le=100.0)
    min_soil_moisture: Optional[float] = Field(None, alias="minSoilMoisture", ge=0.0, le=100.0)
    max_soil_moisture: Optional[float] = Field(None, alias="maxSoilMoisture", ge=0.0, le=100.0)
    min_light: Optional[float] = Field(None, alias="minLight", ge=0.0)
    max_light: Optional[float] = Field(None, alias="maxLight", ge=0.0)

    class Config:
        populate_by_name = True
        allow_inf_nan = False

    @field_validator("owner_handle")
    @classmethod
    def _strip_handle(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        # "@plantlover" and "plantlover" are the same handle
        return value.strip().lstrip("@") or None

    @field_validator(
        "min_temperature",
        "max_temperature",
        "min_humidity",
        "max_humidity",
        "min_soil_moisture",
        "max_soil_moisture",
        "min_light",
        "max_light",
    )
    @classmethod
    def _reject_null_bound(cls, value: Optional[float]) -> float:
        # Only ownerHandle can be cleared; omit a bound to leave it unchanged
        if value is None:
            raise ValueError("a range bound cannot be null")
        return value


class MetricAverages(BaseModel):
    temperature: float = 0.0
    humidity: float = 0.0
    soil_moisture: float = Field(0.0, alias="soilMoisture")
    light: float = 0.0

    class Config:
        populate_by_name = True


class EvaluationResult(BaseModel):
    is_mistreated: bool = Field(..., alias="isMistreated")
    issues: List[str]
    averages: MetricAverages

    class Config:
        populate_by_name = True


class AutoMessage(BaseModel):
    id: Optional[str] = None
    text: str
    evaluation: EvaluationResult
    timestamp: datetime


class AutoMessageResponse(BaseModel):
    id: Optional[str] = None
    text: Optional[str] = None
    evaluation: Optional[EvaluationResult] = None
    timestamp: Optional[datetime] = None


class GenerateMessageRequest(BaseModel):
    temperature: float
    humidity: float
    soil_moisture: float = Field(..., alias="soilMoisture")
    light: float
    settings: PlantSettings
    owner_handle: Optional[str] = Field(None, alias="ownerHandle")

    class Config:
        populate_by_name = True
        allow_inf_nan = False


class GenerateMessageResponse(BaseModel):
    message: str
    status: EvaluationResult


class TweetRequest(BaseModel):
    message: str = Field(..., min_length=1)


class TweetResponse(BaseModel):
    success: bool
    tweet_id: Optional[str] = Field(None, alias="tweetId")
    text: str

    class Config:
        populate_by_name = True


class StatusResponse(BaseModel):
    reading: Optional[SensorReading]
    statuses: Dict[str, str]
    evaluation: EvaluationResult
    window_hours: int = Field(..., alias="windowHours")

    class Config:
        populate_by_name = True
