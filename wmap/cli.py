#!/usr/bin/env python3
"""
CLI entry point for the wmap Wi-Fi location-cluster toolkit.

Defines the following commands:
  wmap ingest NAME <samples.jsonl> [--mode walking|driving] [--radius M]
  wmap count NAME
  wmap export NAME [--out FILE]
  wmap serve NAME [--port 8000]
  wmap version

NAME selects the store `wmap_{NAME}.sqlite`; `--store PATH` overrides it
(a `.json` path uses a plain file instead of SQLite).
"""

import sys
from argparse import ArgumentParser, Namespace
from importlib.metadata import PackageNotFoundError, version as _get_version
from pathlib import Path

import uvicorn

from wmap.utils.log import get_logger
from wmap.analysis.config import StoreConfig
from wmap.errors import InvalidLocation
from wmap.parsers.samples import parse_samples
from wmap.server import create_app
from wmap.storage.backing import open_backing
from wmap.storage.store import ClusterStore

logger = get_logger(__name__)

DEFAULT_EXPORT_NAME = "wifi_map_data.json"


def _store_path(name: str, store: str | None) -> str:
    return store or f"wmap_{name}.sqlite"


def _store_exists(name: str, store: str | None) -> bool:
    """
    Read-only commands must not create a store for a mistyped name.
    """
    path = _store_path(name, store)
    if Path(path).exists():
        return True
    logger.error("No store at %s", path)
    return False


def _open_store(name: str, store: str | None, cfg: StoreConfig | None = None) -> ClusterStore:
    """
    Open and load the named store. A corrupt store is reported and replaced
    by an empty one; a missing one is created on first write.
    """
    path = _store_path(name, store)
    if not Path(path).exists():
        logger.info("Store %s does not exist yet, starting a new one", path)
    cs = ClusterStore(open_backing(path), cfg)
    loaded = cs.load()
    if not loaded.ok:
        logger.warning("Store %s could not be loaded; continuing with an empty store", path)
    return cs


def ingest(name: str, samples: str, mode: str | None, radius: float | None, store: str | None) -> int:
    """
    Feed every sample in a JSON-lines file to the store, then flush once.

    Parameters
    ----------
    name
        Store name, which dictates the SQLite database file name.
    samples
        Path to the JSON-lines sample file.
    mode
        Radius preset, "walking", "driving" or None for the default radius.
    radius
        Explicit proximity radius in metres; overrides the preset.
    store
        Explicit store path; overrides the name.

    Returns
    -------
    int
        Process exit code.
    """
    logger.info("Ingest: name=%s, samples=%s, mode=%s, radius=%s", name, samples, mode, radius)
    overrides = {"autoflush": False}
    if radius is not None:
        overrides["radius_m"] = radius
    match mode:
        case "walking":
            cfg = StoreConfig.walking(**overrides)
        case "driving":
            cfg = StoreConfig.driving(**overrides)
        case _:
            cfg = StoreConfig(**overrides)
    cs = _open_store(name, store, cfg)

    n_samples = n_rejected = n_created = 0
    try:
        for sample in parse_samples(samples):
            n_samples += 1
            outcome = cs.ingest(sample.lat, sample.lon, sample.networks)
            if isinstance(outcome.error, InvalidLocation):
                n_rejected += 1
            elif outcome.created:
                n_created += 1
    finally:
        # keep whatever was ingested even if reading the file fails midway
        flushed = cs.flush()
        if not flushed.ok:
            logger.error("Could not write store %s: %s", _store_path(name, store), flushed.error)

    logger.info(
        "Processed %d samples (%d rejected), %d new clusters",
        n_samples, n_rejected, n_created,
    )
    if not flushed.ok:
        return 1
    logger.info(
        "Store now holds %d networks in %d clusters",
        cs.network_count(), cs.cluster_count(),
    )
    return 0


def count(name: str, store: str | None) -> int:
    """
    Log network/cluster counts and the security breakdown.
    """
    if not _store_exists(name, store):
        return 1
    cs = _open_store(name, store)
    logger.info("[Networks Captured]: %d", cs.network_count())
    logger.info("[Clusters]: %d", cs.cluster_count())
    for security, n in cs.security_counts():
        logger.info("  %-6s %d", security, n)
    return 0


def export(name: str, out: str | None, store: str | None) -> int:
    """
    Write the deterministic JSON export to a file.

    Parameters
    ----------
    name
        Store name, which dictates the SQLite database file name.
    out
        Destination file, defaults to wifi_map_data.json.
    store
        Explicit store path; overrides the name.
    """
    out_path = Path(out or DEFAULT_EXPORT_NAME)
    logger.info("Export: name=%s, out=%s", name, out_path)
    if not _store_exists(name, store):
        return 1
    cs = _open_store(name, store)
    out_path.write_text(cs.export_snapshot(), encoding="utf-8")
    logger.info("Exported %d clusters to %s", cs.cluster_count(), out_path)
    return 0


def serve(name: str, port: int, store: str | None) -> int:
    """
    Spin up FastAPI+Uvicorn to serve counts, exports and sample ingest.
    """
    logger.info("Serve: name=%s, port=%d", name, port)
    app = create_app(_open_store(name, store))
    uvicorn.run(app, host="127.0.0.1", port=port)
    return 0


def version() -> int:
    """
    Print the installed wmap package version.
    """
    try:
        ver = _get_version("wmap")
    except PackageNotFoundError:
        ver = "unknown"
    logger.info("wmap version %s", ver)
    return 0


def parse_args(argv: list[str] | None = None) -> Namespace:
    """
    Parse command-line arguments and return the populated namespace.
    """
    parser = ArgumentParser(prog="wmap")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # wmap ingest
    p = subparsers.add_parser("ingest", help="Ingest a JSON-lines sample file.")
    p.add_argument("name", type=str, help="Store name.")
    p.add_argument("samples", type=str, help="JSON-lines file of scan samples.")
    p.add_argument(
        "--mode", choices=["walking", "driving"],
        help="Proximity radius preset.",
    )
    p.add_argument("--radius", type=float, help="Proximity radius in metres.")
    p.add_argument("--store", type=str, help="Explicit store path.")

    # wmap count
    p = subparsers.add_parser("count", help="Show network and cluster counts.")
    p.add_argument("name", type=str, help="Store name.")
    p.add_argument("--store", type=str, help="Explicit store path.")

    # wmap export
    p = subparsers.add_parser("export", help="Export the store as JSON.")
    p.add_argument("name", type=str, help="Store name.")
    p.add_argument("--out", type=str, help=f"Output file (default {DEFAULT_EXPORT_NAME}).")
    p.add_argument("--store", type=str, help="Explicit store path.")

    # wmap serve
    p = subparsers.add_parser("serve", help="Serve via FastAPI + Uvicorn.")
    p.add_argument("name", type=str, help="Store name.")
    p.add_argument(
        "--port", type=int, default=8000, help="Port number to serve on."
    )
    p.add_argument("--store", type=str, help="Explicit store path.")

    # wmap version
    subparsers.add_parser("version", help="Show wmap version and exit.")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Entry point: dispatch to the selected subcommand.
    """
    args = parse_args(argv)
    match args.command:
        case "ingest":
            return ingest(args.name, args.samples, args.mode, args.radius, args.store)
        case "count":
            return count(args.name, args.store)
        case "export":
            return export(args.name, args.out, args.store)
        case "serve":
            return serve(args.name, args.port, args.store)
        case "version":
            return version()
        case _:
            return 1


if __name__ == "__main__":
    sys.exit(main())
