from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base for the persisted widget configuration.
    Fields are camelCase on the wire; unknown fields added by the host
    are kept and written back unchanged.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class Measurement(CamelModel):
    """A (fragment, series) pair identifying one measurement type."""
    fragment: str = ""
    series: str = ""


class MapSettings(CamelModel):
    zoom_level: Optional[int] = Field(None, description="Map zoom level")


class Threshold(CamelModel):
    """
    Legend threshold. Only `id` is interpreted; every other field is
    carried along opaquely and replaced wholesale on update.
    """
    id: Union[int, str]


class Legend(CamelModel):
    title: str = ""
    thresholds: List[Threshold] = Field(default_factory=list)


class WidgetConfiguration(CamelModel):
    """
    Persisted widget configuration.
    Fields are None while absent; ConfigurationInitializer fills them in.
    """
    map_configuration_id: Optional[str] = None
    measurement: Optional[Measurement] = None
    map_settings: Optional[MapSettings] = None
    legend: Optional[Legend] = None
    datapoints_popup: Optional[List[str]] = None


class MapConfiguration(CamelModel):
    """Selectable indoor map configuration, as supplied by the data provider."""
    id: str
    name: str = ""
    building: Optional[Dict[str, Any]] = None


# Initialization states of a widget configuration

@dataclass(frozen=True)
class Uninitialized:
    """No configuration was supplied by the host."""


@dataclass(frozen=True)
class Partial:
    """Configuration with at least one default field still absent."""
    config: WidgetConfiguration
    missing: tuple


@dataclass(frozen=True)
class Complete:
    """Configuration with every default field defined."""
    config: WidgetConfiguration


ConfigurationState = Union[Uninitialized, Partial, Complete]
