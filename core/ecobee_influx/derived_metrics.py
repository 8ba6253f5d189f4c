"""
Derived Comfort Metrics

Pure helpers for consumers of the written data. Temperatures are in °F.
"""

# (lower bound °F, recommended max indoor RH %), warmest first
HUMIDITY_BANDS = [
    (50, 50),
    (40, 45),
    (30, 40),
    (20, 35),
    (10, 30),
    (0, 25),
    (-10, 20),
]
HUMIDITY_FLOOR = 15


def wind_chill(temp_f: float, wind_speed_mph: float) -> float:
    """Calculate NWS wind chill.

    The formula only holds at or below 50°F with wind of at least 3 mph;
    outside that range the temperature is returned unchanged.

    Args:
        temp_f: Air temperature (°F)
        wind_speed_mph: Wind speed (mph)

    Returns:
        Apparent temperature (°F)
    """
    if temp_f > 50.0 or wind_speed_mph < 3.0:
        return temp_f
    v = wind_speed_mph**0.16
    return 35.74 + (0.6215 * temp_f) - (35.75 * v) + (0.4275 * temp_f * v)


def indoor_humidity_recommendation(outdoor_temp_f: float) -> int:
    """Maximum recommended indoor relative humidity for an outdoor temperature."""
    for lower_bound, humidity in HUMIDITY_BANDS:
        if outdoor_temp_f >= lower_bound:
            return humidity
    return HUMIDITY_FLOOR
