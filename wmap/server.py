# wmap/server.py
"""
FastAPI server for the wmap CLI.
"""

from fastapi import FastAPI, Request
from starlette.responses import JSONResponse, Response

from wmap.errors import InvalidLocation
from wmap.storage.store import ClusterStore
from wmap.utils.log import get_logger
from wmap.utils.validate import ScanSample

logger = get_logger(__name__)


def create_app(store: ClusterStore) -> FastAPI:
    """
    Build a FastAPI instance bound to a loaded cluster store.

    Store calls block on the store lock, so those endpoints are plain `def`
    and run in the threadpool.
    """
    app = FastAPI()
    app.state.store = store

    @app.get("/api/status", response_class=JSONResponse)
    async def status() -> JSONResponse:
        return JSONResponse(status_code=200, content={"status": "ok"})

    @app.get("/api/count", response_class=JSONResponse)
    def get_count(request: Request) -> JSONResponse:
        """
        return the network and cluster counts.
        """
        store: ClusterStore = request.app.state.store
        return JSONResponse(
            status_code=200,
            content={
                "network_count": store.network_count(),
                "cluster_count": store.cluster_count(),
        })

    @app.get("/api/security", response_class=JSONResponse)
    def get_security(request: Request) -> JSONResponse:
        """
        return record counts per security class, most common first.
        """
        store: ClusterStore = request.app.state.store
        return JSONResponse(
            status_code=200,
            content={"security_counts": store.security_counts()},
        )

    @app.get("/api/export")
    def get_export(request: Request) -> Response:
        """
        return the deterministic snapshot export, byte for byte.
        """
        store: ClusterStore = request.app.state.store
        return Response(content=store.export_snapshot(), media_type="application/json")

    @app.post("/api/ingest", response_class=JSONResponse)
    def post_ingest(request: Request, sample: ScanSample) -> JSONResponse:
        """
        Fold one scan sample into the store.
        """
        store: ClusterStore = request.app.state.store
        outcome = store.ingest(sample.lat, sample.lon, sample.networks)
        if isinstance(outcome.error, InvalidLocation):
            return JSONResponse(status_code=422, content={"detail": str(outcome.error)})

        content = {
            "cluster_id": outcome.cluster_id,
            "created": outcome.created,
            "added": outcome.added,
            "updated": outcome.updated,
            "persisted": outcome.flushed,
        }
        if outcome.error is not None:
            content["error"] = str(outcome.error)
            return JSONResponse(status_code=503, content=content)
        return JSONResponse(status_code=200, content=content)

    return app
