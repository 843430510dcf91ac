import asyncio
import json
import pytest
from fastapi.testclient import TestClient
from typing import Dict, List, Optional
from models import MapConfiguration
from utils import get_device_id_from_map_configuration

INVENTORY = {
    "mapConfigurations": [
        {
            "id": "M1",
            "name": "Office floor 1",
            "building": {"levels": [{"name": "L1", "markers": ["Dev1", "Dev2"]}]}
        },
        {
            "id": "M2",
            "name": "Warehouse",
            "building": {"levels": [{"name": "L0", "markers": []}, {"name": "L1", "markers": [{"id": "Dev3"}]}]}
        },
        {
            "id": "M3",
            "name": "Empty map",
            "building": {"levels": []}
        }
    ],
    "supportedSeries": {
        "Dev1": ["c8y_Temperature.T"],
        "Dev3": ["c8y_Humidity.H", "c8y_Temperature.T"]
    }
}


class FakeProvider:
    """In-memory data provider. Devices listed in `gates` block until released."""

    def __init__(self, map_configurations: List[Dict], supported_series: Dict[str, List[str]]):
        self.map_configurations = [MapConfiguration.model_validate(item) for item in map_configurations]
        self.supported_series = supported_series
        self.gates: Dict[str, asyncio.Event] = {}
        self.series_requests: List[str] = []

    async def load_map_configurations(self) -> List[MapConfiguration]:
        return list(self.map_configurations)

    def get_device_id_from_map_configuration(self, map_configuration: Optional[MapConfiguration]) -> str:
        return get_device_id_from_map_configuration(map_configuration)

    async def load_supported_data_point_series(self, device_id: str) -> List[str]:
        self.series_requests.append(device_id)
        if device_id in self.gates:
            await self.gates[device_id].wait()
        return list(self.supported_series.get(device_id, []))


class RecordingAlertSink:
    def __init__(self):
        self.warnings: List[str] = []

    def warn(self, message: str) -> None:
        self.warnings.append(message)


@pytest.fixture
def provider():
    return FakeProvider(INVENTORY["mapConfigurations"], INVENTORY["supportedSeries"])


@pytest.fixture
def alert_sink():
    return RecordingAlertSink()


@pytest.fixture
def inventory_file(tmp_path):
    path = tmp_path / "inventory.json"
    path.write_text(json.dumps(INVENTORY))
    return path


@pytest.fixture
def client(inventory_file, monkeypatch):
    """HTTP client against a fresh session backed by the test inventory."""
    import main
    from alerts import AlertLog
    from dialogs import PendingDialogHost
    from session import WidgetConfigSession
    from storage import InventoryStore

    alert_log = AlertLog(10)
    dialog_host = PendingDialogHost()
    session = WidgetConfigSession(InventoryStore(str(inventory_file)), alert_log, dialog_host, main.settings)

    monkeypatch.setattr(main, "alert_log", alert_log)
    monkeypatch.setattr(main, "dialog_host", dialog_host)
    monkeypatch.setattr(main, "session", session)

    with TestClient(main.app) as test_client:
        yield test_client
