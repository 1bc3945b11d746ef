"""Geodesic area of GeoJSON polygons."""

import json
import logging
from typing import Literal

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pyproj import Geod
from shapely.errors import ShapelyError
from shapely.geometry import MultiPolygon, Polygon, shape
from shapely.geometry.polygon import orient
from shapely.validation import explain_validity

from jobs.base import Job
from models.state import Task

logger = logging.getLogger(__name__)

# Spherical earth with the WGS84 equatorial radius
EARTH_RADIUS_M = 6378137.0
GEOD = Geod(a=EARTH_RADIUS_M, b=EARTH_RADIUS_M)

Position = list[float]
LinearRing = list[Position]


class InvalidGeometryError(Exception):
    """Raised when the task input is not a valid polygon geometry."""

    pass


def _validate_ring(ring: LinearRing) -> LinearRing:
    if len(ring) < 4:
        raise ValueError("linear ring must have at least 4 positions")
    for position in ring:
        if len(position) < 2:
            raise ValueError("position must have longitude and latitude")
        lon, lat = position[0], position[1]
        if not -180.0 <= lon <= 180.0 or not -90.0 <= lat <= 90.0:
            raise ValueError(f"position out of range: {position}")
    if ring[0][:2] != ring[-1][:2]:
        raise ValueError("linear ring must be closed")
    return ring


class PolygonGeometry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["Polygon"]
    coordinates: list[LinearRing]

    @field_validator("coordinates")
    @classmethod
    def rings_valid(cls, v: list[LinearRing]) -> list[LinearRing]:
        if not v:
            raise ValueError("polygon must have an exterior ring")
        return [_validate_ring(ring) for ring in v]


class MultiPolygonGeometry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["MultiPolygon"]
    coordinates: list[list[LinearRing]]

    @field_validator("coordinates")
    @classmethod
    def polygons_valid(cls, v: list[list[LinearRing]]) -> list[list[LinearRing]]:
        if not v:
            raise ValueError("multipolygon must have at least one polygon")
        for polygon in v:
            if not polygon:
                raise ValueError("polygon must have an exterior ring")
            for ring in polygon:
                _validate_ring(ring)
        return v


class Feature(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["Feature"]
    geometry: PolygonGeometry | MultiPolygonGeometry
    properties: dict | None = None


def parse_geometry(geo_json: str) -> Polygon | MultiPolygon:
    """Parse a Feature or bare geometry into a valid shapely polygon.

    Structure is checked by the pydantic models; topology (self-intersecting
    rings, overlapping parts, holes outside the shell) by shapely.
    """
    try:
        data = json.loads(geo_json)
    except (TypeError, ValueError) as e:
        raise InvalidGeometryError(f"Invalid GeoJSON: {e}") from e

    if not isinstance(data, dict):
        raise InvalidGeometryError("Invalid GeoJSON: expected an object")

    try:
        if data.get("type") == "Feature":
            model = Feature.model_validate(data).geometry
        elif data.get("type") == "MultiPolygon":
            model = MultiPolygonGeometry.model_validate(data)
        else:
            model = PolygonGeometry.model_validate(data)
    except ValidationError as e:
        raise InvalidGeometryError(f"Invalid polygon geometry provided: {e}") from e

    try:
        geometry = shape(model.model_dump())
    except (ShapelyError, ValueError) as e:
        raise InvalidGeometryError(f"Invalid polygon geometry provided: {e}") from e

    if geometry.is_empty or not geometry.is_valid:
        raise InvalidGeometryError(
            f"Invalid polygon geometry provided: {explain_validity(geometry)}"
        )
    return geometry


def geodesic_area(geometry: Polygon | MultiPolygon) -> float:
    """Area in square metres on the sphere, holes subtracted."""
    if isinstance(geometry, MultiPolygon):
        return sum(geodesic_area(polygon) for polygon in geometry.geoms)

    # Shell counter-clockwise, holes clockwise: holes come back negative
    area, _ = GEOD.geometry_area_perimeter(orient(geometry, sign=1.0))
    return abs(area)


class PolygonAreaJob(Job):
    """Computes the area of the task's polygon in square metres."""

    def run(self, task: Task) -> str:
        logger.info(f"Running area calculation for task {task.task_id}")

        area = geodesic_area(parse_geometry(task.geo_json))

        logger.info(f"Area of the input polygon: {area:.1f} square meters")
        return str(area)
