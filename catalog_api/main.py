import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from catalog_api.config import LOG_LEVEL
from catalog_api.errors import CatalogError, InvalidFilterError
from catalog_api.routers import listings, saved_searches, stream
from catalog_api.stream.channel import ChannelHub

logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO),
                    format="%(asctime)s | %(levelname)s | %(message)s")
LOG = logging.getLogger("api")

app = FastAPI(
    title="Listing Catalog API",
    version="1.0.0",
    description="Search, nearby lookup and live updates over the property listing catalog."
)
app.state.channel_hub = ChannelHub()

app.include_router(listings.router)
app.include_router(saved_searches.router)
app.include_router(stream.router)

@app.exception_handler(InvalidFilterError)
async def invalid_filter(request: Request, exc: InvalidFilterError):
    return JSONResponse(status_code=400, content={"error": exc.message, "details": exc.details})

@app.exception_handler(CatalogError)
async def catalog_unavailable(request: Request, exc: CatalogError):
    LOG.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"error": "Catalog store unavailable"})

@app.get("/api/health")
def health():
    return {"status": "ok"}
