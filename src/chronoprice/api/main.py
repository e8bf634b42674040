import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from chronoprice.api.oracle import router as oracle_router
from chronoprice.container import Container
from chronoprice.exceptions import PriceUnavailableError, UpstreamUnavailableError
from chronoprice.infra.cache.redis_cache import RedisCache

logger = logging.getLogger("chronoprice.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    container = Container()
    app.state.container = container
    settings = container.settings()

    worker = None
    if settings.queue_backend == "local":
        worker = container.collection_worker()
        worker.start()

    yield

    if worker is not None:
        await worker.stop()
    await container.fetch_http_client().close()
    await container.etherscan_http_client().close()
    cache = container.cache()
    if isinstance(cache, RedisCache):
        await cache.close()
    engine = container.engine()
    await engine.dispose()


app = FastAPI(title="Chronoprice", version="0.1.0", lifespan=lifespan)


@app.exception_handler(PriceUnavailableError)
async def price_unavailable_handler(request: Request, exc: PriceUnavailableError):
    if exc.storage_degraded:
        return JSONResponse(status_code=503, content={"detail": str(exc), "storage_degraded": True})
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(UpstreamUnavailableError)
async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailableError):
    logger.warning("Upstream unavailable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled error on %s %s:\n%s", request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"detail": str(exc)})


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(oracle_router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": "0.1.0"}
