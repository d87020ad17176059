import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
from auth import router as auth_router
from banners import router as banners_router
from bestselling import router as bestselling_router
from cart import router as cart_router
from catalog import router as catalog_router
from collections_admin import router as collections_router
from content import instructions_router, media_router, nav_router, quotes_router, search_router, timing_banner_router
from database import db, ensure_indexes, get_db
from errors import AppError
from orders import router as orders_router

config.setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        ensure_indexes(db)
    except PyMongoError as exc:
        logger.warning("Could not ensure indexes at startup: %s", exc)
    yield


app = FastAPI(title="Storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------------------- Error envelope -----------------------
def envelope(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder({"success": False, "message": message, **extra}))


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return envelope(exc.status_code, exc.message, **exc.extra)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return envelope(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return envelope(400, "Invalid request data", errors=exc.errors())


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    extra = {"error": str(exc)} if config.is_development() else {}
    return envelope(500, "Database error", **extra)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    extra = {"error": str(exc)} if config.is_development() else {}
    return envelope(500, "Internal server error", **extra)


# ----------------------- Routers -----------------------
for router in (
    auth_router,
    catalog_router,
    cart_router,
    orders_router,
    collections_router,
    banners_router,
    bestselling_router,
    quotes_router,
    nav_router,
    media_router,
    instructions_router,
    timing_banner_router,
    search_router,
):
    app.include_router(router)


@app.get("/")
def root():
    return {"status": "ok", "service": "storefront-backend"}


@app.get("/schema")
def schema_overview():
    # For platform inspector
    return {
        "collections": [
            "user", "product", "cart", "order", "collection", "banner",
            "bestselling", "quote", "navitem", "media", "instruction", "timingbanner",
        ],
    }


# Simple health
@app.get("/test")
def test_database(database: Database = Depends(get_db)):
    status = {
        "backend": "running",
        "database": "not-configured",
    }
    try:
        database.list_collection_names()
        status["database"] = "connected"
    except PyMongoError as exc:
        logger.warning("Database health check failed: %s", exc)
        status["database"] = "error"
    return status


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
