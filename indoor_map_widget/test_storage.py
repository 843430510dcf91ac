import json
from pathlib import Path
import pytest
from alerts import AlertLog
from config import WidgetSettings, get_default_config, load_config
from models import MapConfiguration, Measurement
from storage import InventoryStore
from utils import format_data_point, get_device_id_from_map_configuration, split_data_point


@pytest.mark.asyncio
async def test_inventory_store_loads_map_configurations(inventory_file):
    store = InventoryStore(str(inventory_file))

    configurations = await store.load_map_configurations()

    assert [c.id for c in configurations] == ["M1", "M2", "M3"]
    assert configurations[0].name == "Office floor 1"


@pytest.mark.asyncio
async def test_inventory_store_supported_series(inventory_file):
    store = InventoryStore(str(inventory_file))

    assert await store.load_supported_data_point_series("Dev3") == ["c8y_Humidity.H", "c8y_Temperature.T"]
    assert await store.load_supported_data_point_series("unknown") == []
    assert await store.load_supported_data_point_series("") == []


@pytest.mark.asyncio
async def test_inventory_store_rereads_file(inventory_file):
    """Test edits to the inventory file apply without a new store."""
    store = InventoryStore(str(inventory_file))
    assert await store.load_supported_data_point_series("Dev2") == []

    inventory = json.loads(inventory_file.read_text())
    inventory["supportedSeries"]["Dev2"] = ["c8y_Battery.level"]
    inventory_file.write_text(json.dumps(inventory))

    assert await store.load_supported_data_point_series("Dev2") == ["c8y_Battery.level"]


@pytest.mark.asyncio
async def test_inventory_store_missing_file(tmp_path):
    store = InventoryStore(str(tmp_path / "missing.json"))

    with pytest.raises(FileNotFoundError):
        await store.load_map_configurations()


@pytest.mark.asyncio
async def test_inventory_store_invalid_file(tmp_path):
    path = tmp_path / "inventory.json"
    path.write_text("{not json")
    store = InventoryStore(str(path))

    with pytest.raises(ValueError):
        await store.load_map_configurations()


def test_device_id_from_map_configuration():
    """Test the first marker device across levels backs the map."""
    string_markers = MapConfiguration(id="a", building={"levels": [{"markers": ["Dev1", "Dev2"]}]})
    object_markers = MapConfiguration(id="b", building={"levels": [{"markers": []}, {"markers": [{"deviceId": "Dev9"}]}]})
    no_markers = MapConfiguration(id="c", building={"levels": [{"markers": []}]})

    assert get_device_id_from_map_configuration(string_markers) == "Dev1"
    assert get_device_id_from_map_configuration(object_markers) == "Dev9"
    assert get_device_id_from_map_configuration(no_markers) == ""
    assert get_device_id_from_map_configuration(MapConfiguration(id="d")) == ""
    assert get_device_id_from_map_configuration(None) == ""


def test_data_point_strings():
    assert format_data_point(Measurement(fragment="c8y_Temperature", series="T")) == "c8y_Temperature.T"
    assert format_data_point(None) == "."
    assert split_data_point("c8y_Temperature.T") == Measurement(fragment="c8y_Temperature", series="T")
    assert split_data_point("nodot") == Measurement(fragment="nodot", series="")


def test_load_config(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"default_zoom_level": 18, "inventory_path": "maps.json"}))

    settings = load_config(str(path))

    assert settings.default_zoom_level == 18
    assert settings.inventory_path == "maps.json"
    assert settings.alert_history_size == 50


def test_load_config_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.json"))

    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"default_zoom_level": -1}))
    with pytest.raises(ValueError):
        load_config(str(path))


def test_get_default_config(tmp_path, monkeypatch):
    monkeypatch.delenv("INDOOR_MAP_SETTINGS", raising=False)
    assert get_default_config() == WidgetSettings()

    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"alert_history_size": 5}))
    monkeypatch.setenv("INDOOR_MAP_SETTINGS", str(path))
    assert get_default_config().alert_history_size == 5


def test_alert_log_keeps_bounded_history():
    alert_log = AlertLog(history_size=2)

    for i in range(3):
        alert_log.warn(f"warning {i}")

    assert [alert["message"] for alert in alert_log.recent()] == ["warning 1", "warning 2"]
    alert_log.clear()
    assert alert_log.recent() == []


@pytest.mark.asyncio
async def test_sample_inventory_resolves():
    """Test the inventory.json shipped beside the modules is a valid inventory."""
    sample = Path(__file__).parent / WidgetSettings().inventory_path
    store = InventoryStore(str(sample))

    configurations = await store.load_map_configurations()
    device_id = store.get_device_id_from_map_configuration(configurations[0])

    assert device_id
    assert await store.load_supported_data_point_series(device_id)
