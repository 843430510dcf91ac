"""
Cascading selection and list synchronization for the widget configuration.

Dependency chain, always run in this order and restarted on every map change:
    map configuration -> device id -> supported series -> selected measurement
"""

import logging
from typing import List, Optional, Union
from config import DEFAULT_ZOOM_LEVEL
from models import (
    Complete,
    ConfigurationState,
    Legend,
    MapConfiguration,
    MapSettings,
    Measurement,
    Partial,
    Threshold,
    Uninitialized,
    WidgetConfiguration,
)
from storage import DataProvider
from alerts import AlertSink
from utils import format_data_point, split_data_point

logger = logging.getLogger(__name__)

DEVICE_NOT_FOUND_WARNING = "Could not load device configuration based on selected map configuration!"

DEFAULT_FIELDS = ("map_configuration_id", "measurement", "map_settings", "legend", "datapoints_popup")


class WidgetConfigError(ValueError):
    """Base error for rejected configuration changes."""


class UnknownMapConfigurationError(WidgetConfigError):
    pass


class UnknownDataPointError(WidgetConfigError):
    pass


def classify_configuration(config: Optional[WidgetConfiguration]) -> ConfigurationState:
    """Tell whether a configuration is absent, partially or fully populated."""
    if config is None:
        return Uninitialized()

    missing = [name for name in DEFAULT_FIELDS if getattr(config, name) is None]
    if config.map_settings is not None and config.map_settings.zoom_level is None:
        missing.append("map_settings.zoom_level")

    if missing:
        return Partial(config=config, missing=tuple(missing))
    return Complete(config=config)


class ConfigurationInitializer:
    """Brings any configuration into the fully populated default shape."""

    def __init__(self, default_zoom_level: int = DEFAULT_ZOOM_LEVEL):
        self.default_zoom_level = default_zoom_level

    def initialize(self, config: Union[WidgetConfiguration, dict, None]) -> WidgetConfiguration:
        """
        Fill in defaults for absent fields, in place.

        Present values (including fields the host added) are never
        overwritten, so a configuration that already has a map configuration
        and a measurement keeps all of its values. Idempotent.

        Args:
            config: Host configuration, a raw dict of it, or None

        Returns:
            The same configuration object (a new one if None was given)
        """
        if isinstance(config, dict):
            config = WidgetConfiguration.model_validate(config)

        state = classify_configuration(config)

        if isinstance(state, Complete):
            return state.config

        if isinstance(state, Uninitialized):
            logger.info("No configuration supplied, creating defaults")
            return self._fill_defaults(WidgetConfiguration())

        logger.info(f"Filling default configuration fields: {', '.join(state.missing)}")
        return self._fill_defaults(state.config)

    def _fill_defaults(self, config: WidgetConfiguration) -> WidgetConfiguration:
        if config.map_configuration_id is None:
            config.map_configuration_id = ""
        if config.measurement is None:
            config.measurement = Measurement()
        if config.map_settings is None:
            config.map_settings = MapSettings(zoom_level=self.default_zoom_level)
        elif config.map_settings.zoom_level is None:
            config.map_settings.zoom_level = self.default_zoom_level
        if config.legend is None:
            config.legend = Legend()
        if config.datapoints_popup is None:
            config.datapoints_popup = []
        return config


class DataPointSeriesResolver:
    """Resolves the measurement series supported by a map configuration's device."""

    def __init__(self, provider: DataProvider, alert_sink: AlertSink):
        self.provider = provider
        self.alert_sink = alert_sink

    async def resolve(self, map_configuration: Optional[MapConfiguration]) -> List[str]:
        """
        Resolve device, then its supported series.

        A missing device is reported as a warning and resolution continues
        with an empty device id; the provider answers [] for it.

        Returns:
            Series strings in provider order
        """
        device_id = self.provider.get_device_id_from_map_configuration(map_configuration)

        if not device_id:
            self.alert_sink.warn(DEVICE_NOT_FOUND_WARNING)
            device_id = ""

        series = await self.provider.load_supported_data_point_series(device_id)
        logger.info(f"Resolved {len(series)} data point series for device '{device_id}'")
        return list(series)


def reconcile(config: WidgetConfiguration, data_point_series: List[str]) -> Optional[str]:
    """
    Re-derive the selected data point after the series list changed.

    On a match the measurement is rewritten from the matched string. On a
    miss the stored measurement is left as is, since the series list may be
    only transiently unavailable.

    Returns:
        The matching series string, or None
    """
    candidate = format_data_point(config.measurement)
    selected = next((data_point for data_point in data_point_series if data_point == candidate), None)

    if selected is None:
        logger.debug(f"Stored measurement {candidate} not among supported series")
        return None

    config.measurement = split_data_point(selected)
    return selected


def select_data_point(config: WidgetConfiguration, data_point: str, data_point_series: List[str]) -> str:
    """
    Apply a data point the user picked explicitly.

    Raises:
        UnknownDataPointError: If the data point is not a supported series
    """
    if data_point not in data_point_series:
        raise UnknownDataPointError(f"Data point '{data_point}' is not supported by the selected device")

    config.measurement = split_data_point(data_point)
    return data_point


def upsert_threshold(thresholds: List[Threshold], threshold: Threshold) -> List[Threshold]:
    """
    Insert or replace a threshold by id.

    An edited threshold keeps its position in the legend; new ones are
    appended. Mutates and returns `thresholds`.
    """
    index = next((i for i, existing in enumerate(thresholds) if existing.id == threshold.id), -1)

    if index != -1:
        thresholds[index] = threshold.model_copy()
    else:
        thresholds.append(threshold)
    return thresholds


def remove_threshold(thresholds: List[Threshold], threshold: Threshold) -> List[Threshold]:
    """Remove the threshold with the same id. Absent ids are a no-op."""
    index = next((i for i, existing in enumerate(thresholds) if existing.id == threshold.id), -1)

    if index == -1:
        return thresholds

    del thresholds[index]
    return thresholds


def replace_datapoints_popup(config: WidgetConfiguration, datapoints_popup: List[str]) -> WidgetConfiguration:
    """Replace the popup data point list with the editor's result verbatim."""
    config.datapoints_popup = datapoints_popup
    return config
