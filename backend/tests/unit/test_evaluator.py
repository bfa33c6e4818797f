import itertools
from datetime import datetime, timedelta, timezone

import pytest

from plant_monitor.evaluator import CRITICAL, OPTIMAL, WARNING, classify, classify_reading, evaluate, window_start
from plant_monitor.models import MetricRange, PlantSettings, SensorReading

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _reading(temperature=22.0, humidity=50.0, soil_moisture=50.0, light=3000.0, minutes_ago=0):
    return SensorReading(
        id=f"r-{minutes_ago}-{temperature}",
        timestamp=NOW - timedelta(minutes=minutes_ago),
        temperature=temperature,
        humidity=humidity,
        soilMoisture=soil_moisture,
        light=light,
    )


class TestEvaluate:
    def test_empty_window_reports_insufficient_data(self):
        result = evaluate([], PlantSettings())
        assert result.is_mistreated is False
        assert result.issues == ["insufficient data"]
        assert result.averages.temperature == 0.0
        assert result.averages.humidity == 0.0
        assert result.averages.soil_moisture == 0.0
        assert result.averages.light == 0.0

    def test_high_average_temperature_is_flagged(self):
        settings = PlantSettings(minTemperature=18, maxTemperature=26)
        result = evaluate([_reading(temperature=30), _reading(temperature=34)], settings)
        assert result.averages.temperature == 32.0
        assert "temperature" in result.issues
        assert result.is_mistreated is True

    def test_humidity_inside_range_is_not_flagged(self):
        settings = PlantSettings(minHumidity=40, maxHumidity=60)
        result = evaluate([_reading(humidity=50)], settings)
        assert "humidity" not in result.issues
        assert result.is_mistreated is False
        assert result.issues == []

    @pytest.mark.parametrize("value", [18.0, 26.0])
    def test_bounds_are_inclusive(self, value):
        result = evaluate([_reading(temperature=value)], PlantSettings(minTemperature=18, maxTemperature=26))
        assert result.issues == []

    @pytest.mark.parametrize("value", [17.0, 27.0])
    def test_one_unit_outside_bounds_is_flagged(self, value):
        result = evaluate([_reading(temperature=value)], PlantSettings(minTemperature=18, maxTemperature=26))
        assert result.issues == ["temperature"]

    def test_averages_are_order_independent(self):
        readings = [
            _reading(temperature=20, humidity=41, soil_moisture=35, light=1200, minutes_ago=10),
            _reading(temperature=24, humidity=55, soil_moisture=62, light=4800, minutes_ago=20),
            _reading(temperature=28, humidity=63, soil_moisture=20, light=900, minutes_ago=30),
            _reading(temperature=16, humidity=37, soil_moisture=71, light=5100, minutes_ago=40),
        ]
        expected = evaluate(readings, PlantSettings())
        assert expected.averages.temperature == 22.0
        assert expected.averages.humidity == 49.0
        assert expected.averages.soil_moisture == 47.0
        assert expected.averages.light == 3000.0

        for permutation in itertools.permutations(readings):
            assert evaluate(list(permutation), PlantSettings()) == expected

    def test_multiple_issues_in_metric_order(self):
        result = evaluate(
            [_reading(temperature=10, humidity=90, soil_moisture=5, light=200)],
            PlantSettings(),
        )
        assert result.issues == ["temperature", "humidity", "soilMoisture", "light"]
        assert result.is_mistreated is True

    def test_evaluate_is_pure(self):
        readings = [_reading(temperature=30)]
        settings = PlantSettings()
        first = evaluate(readings, settings)
        second = evaluate(readings, settings)
        assert first == second
        assert readings[0].temperature == 30
        assert settings.max_temperature == 26.0

    def test_serialises_with_camel_case_aliases(self):
        result = evaluate([_reading()], PlantSettings())
        dumped = result.model_dump(by_alias=True)
        assert set(dumped) == {"isMistreated", "issues", "averages"}
        assert set(dumped["averages"]) == {"temperature", "humidity", "soilMoisture", "light"}


class TestWindowStart:
    def test_default_window_is_24_hours(self):
        assert window_start(NOW) == NOW - timedelta(hours=24)

    def test_naive_now_is_treated_as_utc(self):
        naive = datetime(2024, 6, 1, 12, 0)
        assert window_start(naive, 6) == datetime(2024, 6, 1, 6, 0, tzinfo=timezone.utc)


class TestClassify:
    bounds = MetricRange(40.0, 60.0)

    @pytest.mark.parametrize(
        "value,expected",
        [
            (39.9, CRITICAL),
            (60.1, CRITICAL),
            (40.0, WARNING),
            (41.9, WARNING),
            (58.5, WARNING),
            (42.0, OPTIMAL),
            (50.0, OPTIMAL),
            (58.0, OPTIMAL),
        ],
    )
    def test_classify(self, value, expected):
        assert classify(value, self.bounds) == expected

    def test_classify_reading(self):
        statuses = classify_reading(
            _reading(temperature=30, humidity=41, soil_moisture=50, light=3000),
            PlantSettings(),
        )
        assert statuses == {
            "temperature": CRITICAL,
            "humidity": WARNING,
            "soilMoisture": OPTIMAL,
            "light": OPTIMAL,
        }
