# sensors.py
"""
FILE: sensors.py
DESCRIPTION:
  Sensor collaborators polled by the acquisition task.
  - SensorDriver: begin() / provide_measurements() interface.
  - Simulated*: host stand-ins for the climate (DHT20), CO2 (MH-Z19) and
    particulate (PMS5003) sensors. Values drift as a bounded random walk.
"""
from __future__ import annotations

import random

from measurement import Measurement, MeasurementType, MeasurementUnit


class SensorDriver:
    name = "sensor"

    def begin(self) -> bool:
        return True

    def provide_measurements(self) -> list[Measurement]:
        """Return the current readings, or [] when the read failed."""
        raise NotImplementedError


def _drift(value, step, lo, hi, rng):
    return max(lo, min(hi, value + rng.uniform(-step, step)))


class SimulatedClimateSensor(SensorDriver):
    name = "DHT20"

    def __init__(self, temperature=21.0, humidity=45.0, rng=None):
        self.temperature = temperature
        self.humidity = humidity
        self.rng = rng or random.Random()

    def provide_measurements(self):
        self.temperature = _drift(self.temperature, 0.2, -10.0, 50.0, self.rng)
        self.humidity = _drift(self.humidity, 1.0, 0.0, 100.0, self.rng)
        return [
            Measurement(MeasurementType.HUMIDITY, MeasurementUnit.PERCENT, round(self.humidity, 2)),
            Measurement(MeasurementType.TEMPERATURE, MeasurementUnit.DEGREES_CELSIUS, round(self.temperature, 2)),
        ]


class SimulatedCO2Sensor(SensorDriver):
    name = "MH-Z19"

    def __init__(self, ppm=600, rng=None):
        self.ppm = ppm
        self.rng = rng or random.Random()

    def provide_measurements(self):
        self.ppm = int(_drift(self.ppm, 25, 400, 5000, self.rng))
        # The real sensor reports 0 while warming up.
        if self.ppm <= 0:
            return []
        return [Measurement(MeasurementType.CO2, MeasurementUnit.PPM, self.ppm)]


class SimulatedParticulateSensor(SensorDriver):
    name = "PMS5003"

    def __init__(self, pm25=8.0, rng=None):
        self.pm25 = pm25
        self.rng = rng or random.Random()

    def provide_measurements(self):
        self.pm25 = _drift(self.pm25, 1.5, 0.0, 500.0, self.rng)
        unit = MeasurementUnit.MICROGRAM_PER_CUBIC_METER
        return [
            Measurement(MeasurementType.PM1, unit, round(self.pm25 * 0.6, 2)),
            Measurement(MeasurementType.PM25, unit, round(self.pm25, 2)),
            Measurement(MeasurementType.PM10, unit, round(self.pm25 * 1.4, 2)),
        ]


def default_sensors() -> list[SensorDriver]:
    return [SimulatedClimateSensor(), SimulatedCO2Sensor(), SimulatedParticulateSensor()]
