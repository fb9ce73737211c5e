# main.py
import argparse
import json

from geonav.app.build import build
from geonav.domain.entities.geography import GeoPoint


def _geo(text: str) -> GeoPoint:
    lat, lon = (float(v) for v in text.split(","))
    return GeoPoint(lat, lon)


def run(graph_file: str, origin: GeoPoint, destination: GeoPoint, config: str | None = None):
    cfg = {}
    if config:
        with open(config, encoding="utf-8") as f:
            cfg = json.load(f)
    cfg.setdefault("graph", {})["file"] = graph_file

    app = build(cfg)
    nav = app.navigation
    result = nav.find_path_geo(origin, destination)
    return {
        "status": result.status.value,
        "reason": result.reason,
        "distance": result.distance,
        "algorithm": result.algorithm,
        "path": [[g.lat, g.lon] for g in nav.route_to_geo(result)],
    }


if __name__ == "__main__":
    ap = argparse.ArgumentParser(description="Route between two GPS points on a map graph.")
    ap.add_argument("graph", help="JSON graph blob {nodesById, adjacency, ...}")
    ap.add_argument("origin", type=_geo, help="lat,lon")
    ap.add_argument("destination", type=_geo, help="lat,lon")
    ap.add_argument("--config", help="JSON NavigationModel overrides")
    args = ap.parse_args()
    print(json.dumps(run(args.graph, args.origin, args.destination, args.config)))
