"""
Suggested Content Models

Mods and charts advertised by the installer manifest and offered as extras
during an install.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

logger = logging.getLogger("MLInstaller")


def _field(descriptor: Any, name: str) -> Optional[str]:
    """Read a scalar descriptor field as text, None if missing or not scalar."""
    if not isinstance(descriptor, dict):
        return None
    value = descriptor.get(name)
    if value is None or isinstance(value, (bool, dict, list)):
        return None
    return str(value)


def _file_name(descriptor: Any, name: str) -> Optional[str]:
    """Read a field used as a file name, None if it could leave its folder."""
    value = _field(descriptor, name)
    if value is None or value.strip() in ("", ".", ".."):
        return None
    if "/" in value or "\\" in value or ":" in value:
        return None
    return value


@dataclass(frozen=True)
class SuggestedMod:
    """A mod listed in the manifest."""
    id: str
    name: str
    version: str

    @property
    def filename(self) -> str:
        return f"{self.name}.dll"

    @classmethod
    def from_descriptor(cls, descriptor: Any) -> Optional["SuggestedMod"]:
        """Build a mod from a manifest entry, or None when a required field is missing."""
        mod_id = _field(descriptor, "id")
        name = _file_name(descriptor, "name")
        version = _field(descriptor, "version")
        if mod_id is None or name is None or version is None:
            return None
        return cls(id=mod_id, name=name, version=version)


@dataclass(frozen=True)
class SuggestedChart:
    """A custom chart listed in the manifest."""
    id: str
    name: str

    @property
    def filename(self) -> str:
        return f"{self.name}.mdm"

    @classmethod
    def from_descriptor(cls, descriptor: Any) -> Optional["SuggestedChart"]:
        """Build a chart from a manifest entry, or None when a required field is missing."""
        chart_id = _field(descriptor, "id")
        name = _file_name(descriptor, "name")
        if chart_id is None or name is None:
            return None
        return cls(id=chart_id, name=name)


def parse_mods(descriptors: List[Any]) -> List[SuggestedMod]:
    mods = []
    for descriptor in descriptors:
        mod = SuggestedMod.from_descriptor(descriptor)
        if mod is None:
            logger.debug(f"Skipping incomplete mod descriptor: {descriptor}")
            continue
        mods.append(mod)
    return mods


def parse_charts(descriptors: List[Any]) -> List[SuggestedChart]:
    charts = []
    for descriptor in descriptors:
        chart = SuggestedChart.from_descriptor(descriptor)
        if chart is None:
            logger.debug(f"Skipping incomplete chart descriptor: {descriptor}")
            continue
        charts.append(chart)
    return charts
