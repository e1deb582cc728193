"""
Route and marker geometry for tracking maps.

Pure functions: given up to three optional points (store, agent,
destination) they produce the map center, the route polyline and the
labelled markers that any map widget can draw. No network or storage access.

Points are anything with ``latitude`` and ``longitude`` attributes
(schema ``LocationPoint``, ``PositionFix``, ``LatLng``), or ``None``.
"""

import enum
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple, Optional

EARTH_RADIUS_KM = 6371.0

DEFAULT_ZOOM = 13


class LatLng(NamedTuple):
    latitude: float
    longitude: float


# Kovilpatti; used when there is nothing else to center on
DEFAULT_CENTER = LatLng(9.1700, 77.8700)


class MarkerKind(str, enum.Enum):
    STORE = "store"
    AGENT = "agent"
    DESTINATION = "destination"


@dataclass(frozen=True)
class Marker:
    kind: MarkerKind
    position: LatLng
    label: str
    description: Optional[str] = None


@dataclass(frozen=True)
class MapView:
    """Everything a map widget needs: center, zoom, markers, route."""
    center: LatLng
    zoom: int = DEFAULT_ZOOM
    markers: List[Marker] = field(default_factory=list)
    route: List[LatLng] = field(default_factory=list)

    def marker(self, kind: MarkerKind) -> Optional[Marker]:
        return next((m for m in self.markers if m.kind is kind), None)

    def to_geojson(self) -> Dict[str, Any]:
        """GeoJSON FeatureCollection (lon/lat order) of markers and route."""
        features = [
            {
                "type": "Feature",
                "geometry": {
                    "type": "Point",
                    "coordinates": [m.position.longitude, m.position.latitude],
                },
                "properties": {
                    "kind": m.kind.value,
                    "label": m.label,
                    "description": m.description,
                },
            }
            for m in self.markers
        ]
        if len(self.route) >= 2:
            features.append({
                "type": "Feature",
                "geometry": {
                    "type": "LineString",
                    "coordinates": [[p.longitude, p.latitude] for p in self.route],
                },
                "properties": {"kind": "route"},
            })
        return {
            "type": "FeatureCollection",
            "features": features,
            "properties": {
                "center": [self.center.longitude, self.center.latitude],
                "zoom": self.zoom,
            },
        }


def to_latlng(point) -> Optional[LatLng]:
    if point is None:
        return None
    return LatLng(float(point.latitude), float(point.longitude))


def map_center(store=None, agent=None, default: LatLng = DEFAULT_CENTER) -> LatLng:
    """Agent first, then store, then the fixed default."""
    for point in (agent, store):
        if point is not None:
            return to_latlng(point)
    return default


def route_line(store=None, agent=None, destination=None) -> List[LatLng]:
    """The non-null points in store → agent → destination order."""
    return [to_latlng(p) for p in (store, agent, destination) if p is not None]


def haversine_km(a, b) -> float:
    """Great-circle distance between two points in kilometers."""
    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def route_length_km(points: List[LatLng]) -> float:
    return sum(haversine_km(a, b) for a, b in zip(points, points[1:]))


def format_coordinates(point) -> str:
    """Human readable "9.1700°N, 77.8700°E"."""
    lat_dir = "N" if point.latitude >= 0 else "S"
    lon_dir = "E" if point.longitude >= 0 else "W"
    return f"{abs(point.latitude):.4f}°{lat_dir}, {abs(point.longitude):.4f}°{lon_dir}"


def _description(point) -> Optional[str]:
    return getattr(point, "address", None) or format_coordinates(point)


def build_map_view(
    store=None,
    agent=None,
    destination=None,
    zoom: int = DEFAULT_ZOOM,
    default_center: LatLng = DEFAULT_CENTER,
    agent_label: str = "Delivery Agent",
) -> MapView:
    """
    Assemble a MapView from the three optional points.

    Markers appear only for points that are present; the route runs through
    the same points in store → agent → destination order.
    """
    markers = []
    if store is not None:
        markers.append(Marker(MarkerKind.STORE, to_latlng(store), "Store", _description(store)))
    if agent is not None:
        markers.append(Marker(MarkerKind.AGENT, to_latlng(agent), agent_label, _description(agent)))
    if destination is not None:
        markers.append(
            Marker(MarkerKind.DESTINATION, to_latlng(destination), "Delivery Location", _description(destination))
        )

    return MapView(
        center=map_center(store, agent, default=default_center),
        zoom=zoom,
        markers=markers,
        route=route_line(store, agent, destination),
    )
