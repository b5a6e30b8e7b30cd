# measurement.py
"""
FILE: measurement.py
DESCRIPTION:
  Sensor readings handed from the acquisition task to the integration.
  - MeasurementType / MeasurementUnit: what was measured and in which unit.
  - Measurement: one reading; formatted_value is what gets published.
  - friendly_name() / display_unit(): text used by the display.
"""
from dataclasses import dataclass
from enum import Enum


class MeasurementType(Enum):
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    PM1 = "pm1"
    PM25 = "pm25"
    PM10 = "pm10"
    CO2 = "co2"


class MeasurementUnit(Enum):
    DEGREES_CELSIUS = "°C"
    PERCENT = "%"
    PPM = "ppm"
    MICROGRAM_PER_CUBIC_METER = "µg/m³"


@dataclass(frozen=True)
class Measurement:
    type: MeasurementType
    unit: MeasurementUnit
    value: float

    @property
    def formatted_value(self) -> str:
        # Integer readings (CO2 ppm) are published without decimals.
        if isinstance(self.value, int) and not isinstance(self.value, bool):
            return str(self.value)
        return f"{float(self.value):.2f}"


_FRIENDLY_NAMES = {
    MeasurementType.TEMPERATURE: "Temperature",
    MeasurementType.HUMIDITY: "Humidity",
    MeasurementType.PM1: "PM1",
    MeasurementType.PM25: "PM2.5",
    MeasurementType.PM10: "PM10",
    MeasurementType.CO2: "CO2",
}

# The display font has no µ or ³.
_DISPLAY_UNITS = {
    MeasurementUnit.DEGREES_CELSIUS: "C",
    MeasurementUnit.PERCENT: "%",
    MeasurementUnit.PPM: "ppm",
    MeasurementUnit.MICROGRAM_PER_CUBIC_METER: "ug/m3",
}


def friendly_name(mtype: MeasurementType) -> str:
    return _FRIENDLY_NAMES.get(mtype, "")


def display_unit(unit: MeasurementUnit) -> str:
    return _DISPLAY_UNITS.get(unit, "")


def human_readable(m: Measurement) -> str:
    """e.g. 'Temperature: 21.50 C'"""
    return f"{friendly_name(m.type)}: {m.formatted_value} {display_unit(m.unit)}".rstrip()
