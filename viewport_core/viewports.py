"""Viewport registry - named device classes and their dimensions"""

from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from .errors import UnknownDevice
from .models import ViewportSpec

DEFAULT_VIEWPORTS: Mapping[str, ViewportSpec] = MappingProxyType({
    "mobile": ViewportSpec("mobile", 375, 667),
    "tablet": ViewportSpec("tablet", 768, 1024),
    "desktop": ViewportSpec("desktop", 1920, 1080),
})


class ViewportRegistry:
    """Read-only lookup of viewports by (case-insensitive) name"""

    def __init__(self, viewports: Optional[Dict[str, ViewportSpec]] = None):
        source = DEFAULT_VIEWPORTS if viewports is None else viewports
        self._viewports = MappingProxyType({name.lower(): spec for name, spec in source.items()})

    def lookup(self, name: str) -> ViewportSpec:
        spec = self._viewports.get(str(name).strip().lower())
        if spec is None:
            raise UnknownDevice(name, known=self.names())
        return spec

    def names(self) -> List[str]:
        return list(self._viewports)

    def __contains__(self, name: str) -> bool:
        return str(name).strip().lower() in self._viewports

    def __len__(self) -> int:
        return len(self._viewports)


default_registry = ViewportRegistry()
