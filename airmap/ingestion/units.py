"""
Unit conversion for map display values.

Gas concentrations arrive in µg/m³ and are displayed in ppm; everything else
is displayed as measured. Stateless, no side effects.
"""

from typing import Mapping, Optional

from airmap.rules.map_config import get_map_config

# Parameters reported as mass/volume that the map shows in ppm
PPM_PARAMETERS = ("co", "so2", "no2", "o3")


def convert(reading, conversion: Optional[Mapping[str, float]] = None) -> float:
    """
    Return the display value for a reading.

    Args:
        reading: A Reading (or anything with parameter and value attributes).
        conversion: parameter -> factor mapping. Defaults to the configured
                    parameterConversion.

    Returns:
        value * factor for ppm parameters with a configured factor,
        otherwise value unchanged.
    """
    if conversion is None:
        conversion = get_map_config().parameter_conversion

    parameter = reading.parameter.lower()
    if parameter in PPM_PARAMETERS:
        factor = conversion.get(parameter)
        if factor is not None:
            return reading.value * factor
    return reading.value
