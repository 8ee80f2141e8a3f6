"""
Roof polygon geometry helpers.

Polygons are lists of Coordinates (lat/lng). Areas are computed by
projecting into the local UTM zone with pyproj and applying the shoelace
formula via shapely, so the result is independent of winding order.
"""

import math
import logging
from typing import List, Sequence, Tuple

import pyproj
from shapely.geometry import Polygon
from shapely.ops import transform
from shapely import affinity

from roofai.schemas.roof import Coordinates

logger = logging.getLogger(__name__)

SQFT_PER_SQM = 10.7639
SQM_PER_SQFT = 1 / SQFT_PER_SQM
DEFAULT_ASPECT_RATIO = 1.5

_WGS84 = pyproj.CRS("EPSG:4326")


def close_polygon(polygon: Sequence[Coordinates]) -> List[Coordinates]:
    """Return the vertex list with the first vertex repeated at the end."""
    points = list(polygon)
    if points and points[0] != points[-1]:
        points.append(points[0])
    return points


def _open_vertices(polygon: Sequence[Coordinates]) -> List[Coordinates]:
    points = list(polygon)
    if len(points) > 1 and points[0] == points[-1]:
        points = points[:-1]
    return points


def _utm_transformer(lat: float, lng: float) -> pyproj.Transformer:
    utm_zone = int((lng + 180) / 6) % 60 + 1
    hemisphere = "north" if lat >= 0 else "south"
    utm = pyproj.CRS(f"+proj=utm +zone={utm_zone} +{hemisphere} +ellps=WGS84")
    return pyproj.Transformer.from_crs(_WGS84, utm, always_xy=True)


def polygon_area_sqft(polygon: Sequence[Coordinates]) -> float:
    """Planar area of a lat/lng polygon in square feet (0 for < 3 vertices)."""
    vertices = _open_vertices(polygon)
    if len(vertices) < 3:
        return 0.0

    center = polygon_centroid(vertices)
    shape = Polygon([(p.lng, p.lat) for p in close_polygon(vertices)])
    projected = transform(_utm_transformer(center.lat, center.lng).transform, shape)

    return abs(projected.area) * SQFT_PER_SQM


def polygon_centroid(polygon: Sequence[Coordinates]) -> Coordinates:
    """Arithmetic mean of the distinct vertices."""
    vertices = _open_vertices(polygon)
    if not vertices:
        raise ValueError("Cannot compute centroid of an empty polygon")

    lat = sum(p.lat for p in vertices) / len(vertices)
    lng = sum(p.lng for p in vertices) / len(vertices)
    return Coordinates(lat=lat, lng=lng)


def scale_polygon_to_area(
    polygon: Sequence[Coordinates],
    target_area_sqft: float,
) -> Tuple[List[Coordinates], bool]:
    """
    Scale a polygon radially about its centroid so it covers the target area.

    Returns:
        (polygon, scaled). When the current area is zero or the input is not
        a polygon, the original vertices come back with scaled=False.
    """
    points = list(polygon)
    current = polygon_area_sqft(points)
    if current <= 0 or target_area_sqft <= 0:
        logger.debug("Polygon scaling skipped: zero area")
        return points, False

    factor = math.sqrt(target_area_sqft / current)
    center = polygon_centroid(points)
    shape = Polygon([(p.lng, p.lat) for p in _open_vertices(points)])
    scaled = affinity.scale(shape, xfact=factor, yfact=factor, origin=(center.lng, center.lat))

    coords = list(scaled.exterior.coords)
    result = [Coordinates(lat=y, lng=x) for x, y in coords[:-1]]
    if len(points) > 1 and points[0] == points[-1]:
        result = close_polygon(result)
    return result, True


def reposition_polygon(polygon: Sequence[Coordinates], center: Coordinates) -> List[Coordinates]:
    """Translate a polygon so its centroid lands on the given center."""
    points = list(polygon)
    if len(_open_vertices(points)) < 3:
        return points

    current = polygon_centroid(points)
    d_lat = center.lat - current.lat
    d_lng = center.lng - current.lng
    return [Coordinates(lat=p.lat + d_lat, lng=p.lng + d_lng) for p in points]


def meters_per_degree(lat: float) -> Tuple[float, float]:
    """(meters per degree latitude, meters per degree longitude) at a latitude."""
    phi = math.radians(lat)
    m_per_lat = 111132.92 - 559.82 * math.cos(2 * phi) + 1.175 * math.cos(4 * phi)
    m_per_lng = 111412.84 * math.cos(phi) - 93.5 * math.cos(3 * phi)
    return m_per_lat, m_per_lng


def synthetic_polygon(
    center: Coordinates,
    area_sqft: float,
    aspect_ratio: float = DEFAULT_ASPECT_RATIO,
    closed: bool = False,
) -> List[Coordinates]:
    """
    Axis-aligned rectangle of the given area centered on a point.

    The long side runs east-west; aspect_ratio is length / width.
    """
    if area_sqft <= 0:
        raise ValueError("area_sqft must be positive")
    if aspect_ratio <= 0:
        aspect_ratio = DEFAULT_ASPECT_RATIO

    area_m2 = area_sqft * SQM_PER_SQFT
    length_m = math.sqrt(area_m2 * aspect_ratio)
    width_m = area_m2 / length_m

    m_per_lat, m_per_lng = meters_per_degree(center.lat)
    lat_offset = (width_m / 2) / m_per_lat
    lng_offset = (length_m / 2) / m_per_lng

    vertices = [
        Coordinates(lat=center.lat - lat_offset, lng=center.lng - lng_offset),
        Coordinates(lat=center.lat - lat_offset, lng=center.lng + lng_offset),
        Coordinates(lat=center.lat + lat_offset, lng=center.lng + lng_offset),
        Coordinates(lat=center.lat + lat_offset, lng=center.lng - lng_offset),
    ]
    return close_polygon(vertices) if closed else vertices
