from fastapi import Body, FastAPI
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional
import logging
from pydantic import ValidationError
from config import get_default_config
from models import CamelModel, Threshold
from storage import InventoryStore
from alerts import AlertLog
from dialogs import DialogCancelled, PendingDialogHost
from session import WidgetConfigSession
from widget_config import WidgetConfigError

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

settings = get_default_config()
inventory_store = InventoryStore(settings.inventory_path)
alert_log = AlertLog(settings.alert_history_size)
dialog_host = PendingDialogHost()
session = WidgetConfigSession(inventory_store, alert_log, dialog_host, settings)


class MapConfigurationSelection(CamelModel):
    id: str


class MeasurementSelection(CamelModel):
    data_point: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan: startup and shutdown logic."""
    logger.info("Indoor map widget configuration service starting up...")
    logger.info(f"Inventory: {settings.inventory_path}, default zoom level: {settings.default_zoom_level}")

    yield

    logger.info("Indoor map widget configuration service shutting down...")

    # Pending editors must not apply anything after shutdown
    session.cancel_dialogs("shutdown")
    dialog_host.cancel_all("shutdown")

    logger.info("Shutdown complete")

app = FastAPI(
    title="Indoor Map Widget Configuration",
    description="Configuration state for the data point indoor map widget",
    version="1.0.0",
    lifespan=lifespan
)


def error_response(e: Exception) -> Dict:
    return {"status": "error", "message": str(e)}


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "initialized": session.config is not None,
        "open_dialogs": len(dialog_host.open_dialogs)
    }


@app.post("/configuration/initialize")
async def initialize_configuration(config: Optional[Dict[str, Any]] = Body(None)):
    """
    Startup entry point.
    Fills in defaults, loads map configurations and restores the stored selection.
    """
    try:
        await session.initialize(config)
    except ValidationError as e:
        return error_response(e)
    return {"status": "success", **session.get_state()}


@app.get("/configuration")
async def get_configuration():
    """Current configuration and resolved selection state."""
    return session.get_state()


@app.get("/map-configurations")
async def get_map_configurations():
    return {"data": [candidate.to_dict() for candidate in session.map_configurations]}


@app.post("/map-configuration")
async def change_map_configuration(selection: MapConfigurationSelection):
    """
    Select a map configuration.
    Resolves its device and supported series, then reconciles the measurement.
    """
    try:
        await session.select_map_configuration(selection.id)
    except WidgetConfigError as e:
        return error_response(e)
    return {"status": "success", **session.get_state()}


@app.post("/measurement")
async def change_measurement(selection: MeasurementSelection):
    """Select the primary measurement from the supported series."""
    try:
        session.measurement_changed(selection.data_point)
    except WidgetConfigError as e:
        return error_response(e)
    return {"status": "success", **session.get_state()}


@app.put("/thresholds")
async def save_threshold(threshold: Threshold):
    """Add a threshold, or replace the one with the same id in place."""
    try:
        thresholds = session.save_threshold(threshold)
    except WidgetConfigError as e:
        return error_response(e)
    return {"status": "success", "thresholds": [item.to_dict() for item in thresholds]}


@app.delete("/thresholds/{threshold_id}")
async def delete_threshold(threshold_id: str):
    """Delete a threshold by id. Deleting an unknown id succeeds without changes."""
    try:
        thresholds = session.delete_threshold_by_id(threshold_id)
    except WidgetConfigError as e:
        return error_response(e)
    return {"status": "success", "thresholds": [item.to_dict() for item in thresholds]}


@app.put("/datapoints-popup")
async def replace_datapoints_popup(datapoints_popup: List[str] = Body(...)):
    """Replace the list of data points shown in marker popups."""
    try:
        result = session.replace_datapoints_popup(datapoints_popup)
    except WidgetConfigError as e:
        return error_response(e)
    return {"status": "success", "datapointsPopup": result}


@app.post("/editors/thresholds")
async def open_threshold_editor(threshold: Optional[Threshold] = Body(None)):
    """Open the threshold editor, for an existing threshold or a new one."""
    try:
        handle = session.open_threshold_editor(threshold)
    except WidgetConfigError as e:
        return error_response(e)
    return {"status": "success", "dialog": {"id": handle.id, "editorKind": handle.editor_kind, "initialState": handle.initial_state}}


@app.post("/editors/datapoints-popup")
async def open_datapoints_popup_editor():
    """Open the popup data point editor."""
    try:
        handle = session.open_datapoints_popup_editor()
    except WidgetConfigError as e:
        return error_response(e)
    return {"status": "success", "dialog": {"id": handle.id, "editorKind": handle.editor_kind, "initialState": handle.initial_state}}


@app.get("/dialogs")
async def list_dialogs():
    return {"data": dialog_host.list_open()}


async def complete_dialog(dialog_id: str, action: str, value: Any) -> Dict:
    """
    Deliver an editor result and wait until it has been applied.

    Returns:
        Dict with status and the updated state
    """
    handle = dialog_host.get(dialog_id)
    if handle is None:
        return {"status": "error", "message": f"No open dialog: {dialog_id}"}

    try:
        handle.complete(action, value)
    except (ValueError, DialogCancelled) as e:
        return error_response(e)

    applied = await session.wait_for_dialog(dialog_id)
    return {"status": "success" if applied else "cancelled", **session.get_state()}


@app.post("/dialogs/{dialog_id}/save")
async def save_dialog(dialog_id: str, value: Any = Body(...)):
    return await complete_dialog(dialog_id, "save", value)


@app.post("/dialogs/{dialog_id}/delete")
async def delete_dialog(dialog_id: str, value: Any = Body(...)):
    return await complete_dialog(dialog_id, "delete", value)


@app.get("/alerts")
async def get_alerts():
    """Recent non-fatal warnings for the user."""
    return {"data": alert_log.recent()}
