import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from phonehub import config
from phonehub.api.offers import router as offers_router
from phonehub.database import init_db
from phonehub.exceptions import OfferValidationError, PhoneHubError

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Database ready (env=%s)", config.ENV)
    yield


app = FastAPI(
    title="PhoneHub Special Offers",
    lifespan=lifespan,
    docs_url=None if config.ENV == "prod" else "/docs",
    redoc_url=None if config.ENV == "prod" else "/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count"],
)

app.include_router(offers_router)

# Directory is created on first upload
app.mount("/uploads", StaticFiles(directory=config.UPLOAD_ROOT, check_dir=False), name="uploads")


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.exception_handler(PhoneHubError)
async def phonehub_error_handler(request: Request, exc: PhoneHubError):
    content = {"success": False, "error": exc.code, "message": exc.message}
    if isinstance(exc, OfferValidationError) and exc.errors:
        content["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": OfferValidationError.code, "message": "Invalid request", "errors": errors},
    )


# Anything unclassified is a 500; detail only leaks in development
@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {"success": False, "message": "Internal server error"}
    if config.ENV == "dev":
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)
