"""
Build a cluster index from a listings snapshot and check, zoom by zoom, that
every point is represented exactly once (sum of cluster sizes + singletons ==
number of indexed points), including a query split at the antimeridian.

    python scripts/verify_index.py --snapshot listings.parquet
"""
import argparse
import logging

from tqdm import tqdm

from mapcluster.config import ClusterConfig, load_config
from mapcluster.datasource import GeoJSONSnapshot, GeoParquetSnapshot
from mapcluster.index import build_index
from mapcluster.log import setup_logging
from mapcluster.nodes import Cluster
from mapcluster.query import query
from mapcluster.region import WORLD_BOUNDS, Bounds

log = logging.getLogger("verify_index")


def open_snapshot(path):
    if path.lower().endswith((".parquet", ".geoparquet")):
        return GeoParquetSnapshot(path)
    return GeoJSONSnapshot(path)


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--snapshot", required=True)
    parser.add_argument("--config", default=None)
    parser.add_argument("--zoom-min", type=int, default=None)
    parser.add_argument("--zoom-max", type=int, default=None)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    config = load_config(args.config)[0] if args.config else ClusterConfig()
    points = open_snapshot(args.snapshot).load()
    log.info(f"Loaded {len(points)} listings from {args.snapshot}")

    index = build_index(points, config, show_progress=True)
    total = index.point_count

    z0 = config.min_zoom if args.zoom_min is None else args.zoom_min
    z1 = config.max_zoom if args.zoom_max is None else args.zoom_max

    # same area asked for as one wrapping box and as two plain boxes
    seam = Bounds(90.0, -90.0, -90.0, 90.0)
    halves = (Bounds(90.0, -90.0, 180.0, 90.0), Bounds(-180.0, -90.0, -90.0, 90.0))

    failures = 0
    for z in tqdm(range(z0, z1 + 1), desc="Checking zooms"):
        nodes = query(index, WORLD_BOUNDS, z)
        covered = sum(n.point_count for n in nodes)
        clusters = sum(1 for n in nodes if isinstance(n, Cluster))

        wrapped = [(type(n), n.id) for n in query(index, seam, z)]
        split = {(type(n), n.id) for b in halves for n in query(index, b, z)}
        seam_ok = len(wrapped) == len(set(wrapped)) and set(wrapped) == split

        if covered != total or not seam_ok:
            failures += 1
        log.info(f"  z={z:2d}: nodes={len(nodes)} clusters={clusters} "
                 f"covered={covered}/{total} seam={'ok' if seam_ok else 'MISMATCH'}")

    if failures:
        log.error(f"{failures} zoom/bounds combinations lost or double-counted points")
        raise SystemExit(1)
    log.info("All zoom levels conserve the point count.")


if __name__ == "__main__":
    main()
