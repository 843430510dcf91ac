"""
Widget configuration session.
Owns the resolved selection state for one configuration object supplied by
the host and applies every inbound event to it.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Union
from config import WidgetSettings
from models import MapConfiguration, Threshold, WidgetConfiguration
from storage import DataProvider
from alerts import AlertSink
from dialogs import (
    DATAPOINTS_POPUP_EDITOR,
    DELETE,
    THRESHOLD_EDITOR,
    DialogCancelled,
    DialogHandle,
    DialogHost,
)
from widget_config import (
    ConfigurationInitializer,
    DataPointSeriesResolver,
    UnknownMapConfigurationError,
    WidgetConfigError,
    reconcile,
    remove_threshold,
    replace_datapoints_popup,
    select_data_point,
    upsert_threshold,
)

logger = logging.getLogger(__name__)


class WidgetConfigSession:
    """
    Selection state for a single widget configuration.

    Events arrive one at a time from the host. Series lookups are the only
    suspension points; each map configuration change starts a new generation
    and results of older generations are dropped.
    """

    def __init__(
        self,
        provider: DataProvider,
        alert_sink: AlertSink,
        dialog_host: Optional[DialogHost] = None,
        settings: Optional[WidgetSettings] = None
    ):
        """
        Initialize configuration session.

        Args:
            provider: Source of map configurations and supported series
            alert_sink: Receives non-fatal warnings
            dialog_host: Shows threshold and popup editors (optional)
            settings: Widget settings, defaults if omitted
        """
        self.settings = settings or WidgetSettings()
        self.provider = provider
        self.alert_sink = alert_sink
        self.dialog_host = dialog_host

        self.initializer = ConfigurationInitializer(self.settings.default_zoom_level)
        self.resolver = DataPointSeriesResolver(provider, alert_sink)

        self.config: Optional[WidgetConfiguration] = None
        self.map_configurations: List[MapConfiguration] = []
        self.selected_map_configuration: Optional[MapConfiguration] = None
        self.data_point_series: Optional[List[str]] = None
        self.selected_data_point: Optional[str] = None

        self._generation = 0
        self._open_dialogs: Dict[str, DialogHandle] = {}
        self._dialog_tasks: Dict[str, asyncio.Task] = {}

    @property
    def generation(self) -> int:
        return self._generation

    async def initialize(self, config: Union[WidgetConfiguration, dict, None]) -> WidgetConfiguration:
        """
        Startup entry point: normalize the configuration, load candidates and
        restore the stored map configuration selection.

        Returns:
            The initialized configuration
        """
        # A new configuration invalidates everything resolved for the previous one
        self._generation += 1
        self.selected_map_configuration = None
        self.data_point_series = None
        self.selected_data_point = None
        self.cancel_dialogs("configuration re-initialized")

        self.config = self.initializer.initialize(config)
        self.map_configurations = await self.provider.load_map_configurations()

        if not self.config.map_configuration_id:
            return self.config

        selected = self.find_map_configuration(self.config.map_configuration_id)
        if selected is None:
            # stored id no longer exists, keep it until the user picks another
            logger.warning(f"Stored map configuration {self.config.map_configuration_id} not found")
            return self.config

        await self.map_configuration_changed(selected)
        return self.config

    def find_map_configuration(self, map_configuration_id: str) -> Optional[MapConfiguration]:
        return next(
            (candidate for candidate in self.map_configurations if candidate.id == map_configuration_id),
            None
        )

    async def select_map_configuration(self, map_configuration_id: str) -> Optional[str]:
        """
        Select a map configuration by id.

        Raises:
            UnknownMapConfigurationError: If no candidate has that id
        """
        selected = self.find_map_configuration(map_configuration_id)
        if selected is None:
            raise UnknownMapConfigurationError(f"Unknown map configuration: {map_configuration_id}")
        return await self.map_configuration_changed(selected)

    async def map_configuration_changed(self, selection: MapConfiguration) -> Optional[str]:
        """
        Restart the chain from a newly selected map configuration.

        Returns:
            The reconciled data point, or None
        """
        config = self._require_config()

        self._generation += 1
        generation = self._generation

        self.selected_map_configuration = selection
        config.map_configuration_id = selection.id
        logger.info(f"Map configuration selected: {selection.id} (generation {generation})")

        data_point_series = await self.resolver.resolve(selection)

        if generation != self._generation:
            logger.info(
                f"Dropping series for map configuration {selection.id}: "
                f"generation {generation} superseded by {self._generation}"
            )
            return self.selected_data_point

        self.data_point_series = data_point_series
        self.selected_data_point = reconcile(config, data_point_series)
        logger.info(f"Selected data point: {self.selected_data_point}")
        return self.selected_data_point

    def measurement_changed(self, selection: str) -> str:
        """
        Apply a data point the user picked.

        Raises:
            UnknownDataPointError: If it is not among the current series
        """
        config = self._require_config()
        self.selected_data_point = select_data_point(config, selection, self.data_point_series or [])
        logger.info(f"Measurement changed: {selection}")
        return self.selected_data_point

    def save_threshold(self, threshold: Threshold) -> List[Threshold]:
        config = self._require_config()
        thresholds = upsert_threshold(config.legend.thresholds, threshold)
        logger.info(f"Threshold saved: {threshold.id} ({len(thresholds)} total)")
        return thresholds

    def delete_threshold(self, threshold: Threshold) -> List[Threshold]:
        config = self._require_config()
        thresholds = remove_threshold(config.legend.thresholds, threshold)
        logger.info(f"Threshold deleted: {threshold.id} ({len(thresholds)} total)")
        return thresholds

    def delete_threshold_by_id(self, threshold_id: str) -> List[Threshold]:
        """
        Delete by id as received from a URL, where numeric ids arrive as strings.

        An exact string id wins over a numeric id with the same digits, so
        with both "1" and 1 present, "1" is deleted.
        """
        config = self._require_config()
        existing = next((item for item in config.legend.thresholds if item.id == threshold_id), None)
        if existing is None:
            existing = next(
                (item for item in config.legend.thresholds
                 if isinstance(item.id, int) and str(item.id) == threshold_id),
                Threshold(id=threshold_id)
            )
        return self.delete_threshold(existing)

    def replace_datapoints_popup(self, datapoints_popup: List[str]) -> List[str]:
        config = self._require_config()
        replace_datapoints_popup(config, datapoints_popup)
        logger.info(f"Popup data points replaced: {len(config.datapoints_popup)} entries")
        return config.datapoints_popup

    def open_threshold_editor(self, threshold: Optional[Threshold] = None) -> DialogHandle:
        """
        Show the threshold editor, for an existing threshold or a new one.
        Its save/delete result is applied when it arrives.
        """
        initial_state = {"threshold": threshold.to_dict()} if threshold is not None else {}
        return self._open_editor(THRESHOLD_EDITOR, initial_state)

    def open_datapoints_popup_editor(self) -> DialogHandle:
        config = self._require_config()
        initial_state: Dict[str, Any] = {}
        if self.data_point_series is not None:
            initial_state = {
                "supportedDatapoints": list(self.data_point_series),
                "datapointsPopup": list(config.datapoints_popup)
            }
        return self._open_editor(DATAPOINTS_POPUP_EDITOR, initial_state)

    async def apply_dialog_result(self, handle: DialogHandle) -> bool:
        """
        Wait for a dialog and apply its result.

        Returns:
            True if a result was applied, False if the dialog was cancelled
        """
        try:
            result = await handle.result()
        except DialogCancelled as e:
            logger.info(str(e))
            return False
        finally:
            if self._open_dialogs.get(handle.editor_kind) is handle:
                del self._open_dialogs[handle.editor_kind]

        if handle.token.cancelled:
            logger.info(f"Discarding result of cancelled dialog {handle.id}")
            return False

        if handle.editor_kind == THRESHOLD_EDITOR:
            if result.action == DELETE:
                self.delete_threshold(result.value)
            else:
                self.save_threshold(result.value)
        else:
            self.replace_datapoints_popup(result.value)
        return True

    async def wait_for_dialog(self, dialog_id: str) -> bool:
        """Wait until a completed dialog's result has been applied."""
        task = self._dialog_tasks.get(dialog_id)
        if task is None:
            return False
        return await task

    def _open_editor(self, editor_kind: str, initial_state: Dict[str, Any]) -> DialogHandle:
        if self.dialog_host is None:
            raise WidgetConfigError("No dialog host configured")

        previous = self._open_dialogs.get(editor_kind)
        if previous is not None and not previous.done:
            previous.cancel("superseded by a newer editor")

        handle = self.dialog_host.show(editor_kind, initial_state)
        self._open_dialogs[editor_kind] = handle
        task = asyncio.ensure_future(self.apply_dialog_result(handle))
        self._dialog_tasks[handle.id] = task
        task.add_done_callback(lambda _: self._dialog_tasks.pop(handle.id, None))
        return handle

    def _require_config(self) -> WidgetConfiguration:
        if self.config is None:
            raise WidgetConfigError("Configuration not initialized")
        return self.config

    def cancel_dialogs(self, reason: str = "shutdown"):
        for handle in list(self._open_dialogs.values()):
            handle.cancel(reason)
        self._open_dialogs.clear()

    def get_state(self) -> Dict:
        """
        Current configuration plus resolved selection state.

        Returns:
            Dict in camelCase layout
        """
        return {
            "configuration": self.config.to_dict() if self.config else None,
            "mapConfigurations": [candidate.to_dict() for candidate in self.map_configurations],
            "selectedMapConfiguration": (
                self.selected_map_configuration.to_dict() if self.selected_map_configuration else None
            ),
            "dataPointSeries": self.data_point_series,
            "selectedDataPoint": self.selected_data_point,
            "generation": self._generation
        }
