"""
Map configuration and measurement series storage.
Provides the data provider the configuration session resolves against.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Protocol
from models import MapConfiguration
from utils import get_device_id_from_map_configuration

logger = logging.getLogger(__name__)


class DataProvider(Protocol):
    """Source of map configurations and the measurement series devices support."""

    async def load_map_configurations(self) -> List[MapConfiguration]:
        ...

    def get_device_id_from_map_configuration(self, map_configuration: Optional[MapConfiguration]) -> str:
        ...

    async def load_supported_data_point_series(self, device_id: str) -> List[str]:
        ...


class InventoryStore:
    """
    JSON-file backed data provider.

    File layout:
        {
            "mapConfigurations": [{"id": ..., "name": ..., "building": {...}}, ...],
            "supportedSeries": {"<deviceId>": ["fragment.series", ...], ...}
        }

    The file is re-read on every call so edits apply without a restart.
    """

    def __init__(self, inventory_path: str = "inventory.json"):
        """
        Initialize inventory store.

        Args:
            inventory_path: Path to the inventory JSON file
        """
        self.inventory_path = Path(inventory_path)
        logger.info(f"Inventory store initialized: {self.inventory_path}")

    async def load_map_configurations(self) -> List[MapConfiguration]:
        """
        Load all selectable map configurations.

        Returns:
            Map configurations in file order

        Raises:
            FileNotFoundError: If the inventory file doesn't exist
            ValueError: If the inventory file is invalid
        """
        inventory = self._read_inventory()
        try:
            configurations = [
                MapConfiguration.model_validate(item)
                for item in inventory.get("mapConfigurations", [])
            ]
        except Exception as e:
            raise ValueError(f"Invalid map configuration in {self.inventory_path}: {e}") from e

        logger.info(f"Loaded {len(configurations)} map configurations")
        return configurations

    def get_device_id_from_map_configuration(self, map_configuration: Optional[MapConfiguration]) -> str:
        return get_device_id_from_map_configuration(map_configuration)

    async def load_supported_data_point_series(self, device_id: str) -> List[str]:
        """
        Load the measurement series a device supports.

        Args:
            device_id: Device id, may be empty

        Returns:
            "fragment.series" strings in file order, [] for unknown or empty ids
        """
        if not device_id:
            return []

        supported: Dict[str, List[str]] = self._read_inventory().get("supportedSeries", {})
        series = [str(item) for item in supported.get(device_id, [])]
        logger.info(f"Device {device_id} supports {len(series)} series")
        return series

    def _read_inventory(self) -> Dict:
        """
        Read and parse the inventory file.

        Returns:
            Parsed inventory dict
        """
        if not self.inventory_path.exists():
            raise FileNotFoundError(f"Inventory file not found: {self.inventory_path}")

        with open(self.inventory_path, 'r') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid inventory file {self.inventory_path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Invalid inventory file {self.inventory_path}: expected an object")
        return data
