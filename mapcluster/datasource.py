from typing import Any, Dict, Iterable, List, Mapping, Optional
import logging
import json
from pathlib import Path

import pyarrow as pa
import pyarrow.parquet as pq
import shapely.wkb as swkb
from shapely.geometry import Point, shape as shapely_shape

from .errors import SnapshotError
from .points import GeoPoint

logger = logging.getLogger(__name__)

LAT_KEYS = ("latitude", "lat")
LON_KEYS = ("longitude", "lng", "lon")


class DataSource:
    def iter_points(self) -> Iterable[GeoPoint]:
        raise NotImplementedError

    def load(self) -> List[GeoPoint]:
        """Read the whole snapshot."""
        return list(self.iter_points())


# ------------------------- Helpers ------------------------- #
def _first(record: Mapping[str, Any], keys) -> Any:
    for k in keys:
        if record.get(k) is not None:
            return record[k]
    return None


def _as_float(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def record_to_point(record: Mapping[str, Any], fallback_id: str) -> Optional[GeoPoint]:
    """
    Convert one listings-API record to a GeoPoint.

    Returns None when latitude or longitude cannot be read as a number;
    range checks happen later, at index build time.
    """
    lat = _as_float(_first(record, LAT_KEYS))
    lon = _as_float(_first(record, LON_KEYS))
    if lat is None or lon is None:
        return None

    return GeoPoint(
        id=str(record.get("id") or fallback_id),
        latitude=lat,
        longitude=lon,
        rating=_as_float(record.get("rating")),
        category=record.get("category") or "unknown",
        title=record.get("title") or record.get("name") or "Untitled",
        description=record.get("description") or "No description",
        image_url=record.get("imageUrl") or record.get("image_url") or None,
    )


def records_to_points(records: Iterable[Mapping[str, Any]]) -> List[GeoPoint]:
    points: List[GeoPoint] = []
    skipped = 0
    for idx, rec in enumerate(records):
        p = record_to_point(rec, fallback_id=f"point-{idx}")
        if p is None:
            skipped += 1
            continue
        points.append(p)
    if skipped:
        logger.warning("Skipped %d records without numeric coordinates", skipped)
    return points


# ------------------------- JSON / GeoJSON ------------------------- #
class GeoJSONSnapshot(DataSource):
    """
    Reads a listings snapshot from JSON.

    Accepts a GeoJSON FeatureCollection (Point geometries, listing fields in
    ``properties``) or a plain list of listing records, optionally wrapped
    as ``{"data": [...]}`` like the listings API returns it.
    """

    def __init__(self, path: str):
        self.path = path
        if not Path(path).exists():
            raise SnapshotError(f"Snapshot not found: {path}")
        logger.info("GeoJSONSnapshot opened %s", path)

    def iter_points(self) -> Iterable[GeoPoint]:
        with open(self.path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise SnapshotError(f"{self.path} is not valid JSON: {e}") from e

        if isinstance(data, dict) and data.get("type") == "FeatureCollection":
            yield from records_to_points(self._feature_records(data.get("features") or []))
        elif isinstance(data, dict) and isinstance(data.get("data"), list):
            yield from records_to_points(data["data"])
        elif isinstance(data, list):
            yield from records_to_points(data)
        else:
            raise SnapshotError(f"{self.path}: expected a FeatureCollection or a list of listings")

    def _feature_records(self, features) -> Iterable[Dict[str, Any]]:
        for idx, feat in enumerate(features):
            props = dict(feat.get("properties") or {})
            props.setdefault("id", feat.get("id") or f"point-{idx}")
            geom = feat.get("geometry")
            if geom is None:
                continue
            try:
                g = shapely_shape(geom)
            except Exception as e:
                logger.warning("Invalid geometry in feature %s skipped: %s", props["id"], e)
                continue
            if not isinstance(g, Point) or g.is_empty:
                logger.debug("Non-point geometry in feature %s skipped", props["id"])
                continue
            props["longitude"] = g.x
            props["latitude"] = g.y
            yield props


# ------------------------- GeoParquet ------------------------- #
class GeoParquetSnapshot(DataSource):
    """
    Streams listings from (Geo)Parquet, row group by row group.

    Coordinates come from ``latitude``/``longitude`` columns when present,
    otherwise from a WKB ``geometry`` column of points.
    """

    def __init__(self, path: str):
        if not Path(path).exists():
            raise SnapshotError(f"Snapshot not found: {path}")
        self._pf = pq.ParquetFile(path)
        self._schema = self._pf.schema_arrow
        self._num_row_groups = self._pf.num_row_groups

        names = set(self._schema.names)
        self._has_latlon = bool(names & set(LAT_KEYS)) and bool(names & set(LON_KEYS))
        if not self._has_latlon and "geometry" not in names:
            raise SnapshotError(
                f"{path}: needs latitude/longitude columns or a 'geometry' column"
            )
        logger.info("GeoParquetSnapshot opened %s with %d row groups", path, self._num_row_groups)

    def schema(self) -> pa.Schema:
        return self._schema

    def iter_points(self) -> Iterable[GeoPoint]:
        offset = 0
        for i in range(self._num_row_groups):
            logger.debug("Reading row group %d/%d", i, self._num_row_groups)
            table = self._pf.read_row_group(i)
            rows = table.to_pylist()
            if not self._has_latlon:
                rows = list(self._decode_geometry(rows))
            for idx, row in enumerate(rows):
                p = record_to_point(row, fallback_id=f"point-{offset + idx}")
                if p is not None:
                    yield p
            offset += table.num_rows

    def _decode_geometry(self, rows):
        for row in rows:
            wkb = row.pop("geometry", None)
            if wkb is None:
                continue
            try:
                geom = swkb.loads(wkb)
            except Exception as e:
                logger.warning("Invalid WKB geometry skipped: %s", e)
                continue
            if not isinstance(geom, Point) or geom.is_empty:
                continue
            row["longitude"] = geom.x
            row["latitude"] = geom.y
            yield row
