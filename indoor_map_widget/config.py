"""Settings for the indoor map widget configuration engine."""
import json
import os
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field

DEFAULT_ZOOM_LEVEL = 20
SETTINGS_ENV_VAR = "INDOOR_MAP_SETTINGS"


class WidgetSettings(BaseModel):
    """Runtime settings injected into the configuration session."""
    default_zoom_level: int = Field(DEFAULT_ZOOM_LEVEL, ge=0, description="Zoom level for new configurations")
    inventory_path: str = Field("inventory.json", description="JSON file holding map configurations and series")
    alert_history_size: int = Field(50, gt=0, description="Number of warnings kept for the host")


def load_config(config_path: str) -> WidgetSettings:
    """
    Load widget settings from JSON file.

    Args:
        config_path: Path to settings file

    Returns:
        WidgetSettings instance

    Raises:
        FileNotFoundError: If settings file doesn't exist
        ValueError: If settings are invalid
    """
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {config_path}")

    with open(path, 'r') as f:
        data = json.load(f)

    try:
        return WidgetSettings(**data)
    except Exception as e:
        raise ValueError(f"Invalid settings: {e}") from e


def get_default_config(config_path: Optional[str] = None) -> WidgetSettings:
    """Load settings from the given path or $INDOOR_MAP_SETTINGS, else defaults."""
    config_path = config_path or os.environ.get(SETTINGS_ENV_VAR)
    if not config_path:
        return WidgetSettings()
    return load_config(config_path)
