"""Utility functions for data point strings and map configurations."""
import logging
from typing import Any, Iterable, Optional
from models import MapConfiguration, Measurement

logger = logging.getLogger(__name__)


def format_data_point(measurement: Optional[Measurement]) -> str:
    """
    Build the "fragment.series" string for a stored measurement.

    An unset measurement formats like an empty one (".").
    """
    if measurement is None:
        measurement = Measurement()
    return f"{measurement.fragment}.{measurement.series}"


def split_data_point(data_point: str) -> Measurement:
    """
    Split a "fragment.series" string on the first dot.

    Examples:
        "c8y_Temperature.T" -> (c8y_Temperature, T)
        "c8y_Acc.x.raw"     -> (c8y_Acc, x.raw)
    """
    fragment, _, series = data_point.partition(".")
    return Measurement(fragment=fragment, series=series)


def _marker_device_id(marker: Any) -> str:
    if isinstance(marker, str):
        return marker
    if isinstance(marker, dict):
        return str(marker.get("id") or marker.get("deviceId") or "")
    return ""


def get_device_id_from_map_configuration(map_configuration: Optional[MapConfiguration]) -> str:
    """
    Derive the device backing a map configuration.

    Walks building levels and their markers in order and returns the first
    marker device id. All markers of one map share a device type, so any of
    them tells which measurement series are supported.

    Returns:
        Device id, or "" if the configuration has no markers
    """
    if map_configuration is None or not map_configuration.building:
        return ""

    levels: Iterable = map_configuration.building.get("levels") or []
    for level in levels:
        if not isinstance(level, dict):
            continue
        for marker in level.get("markers") or []:
            device_id = _marker_device_id(marker)
            if device_id:
                return device_id

    logger.debug(f"No marker devices in map configuration {map_configuration.id}")
    return ""
