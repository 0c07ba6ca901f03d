# In main.py

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

import config
from domain.errors import ApiError, ValidationFailed
from services.datastore import DocumentStore

# Import routers
from routers import authors, comments, posts

logger = logging.getLogger('uvicorn.error')


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup: Initializing resources...")
    try:
        store = DocumentStore(project=config.FIRESTORE_PROJECT, database=config.FIRESTORE_DATABASE)
        await store.connect()
        app.state.store = store
    except Exception as e:
        logger.error(f"Failed to initialize Firestore Async client: {e}")
        app.state.store = None

    yield
    logger.info("Application shutdown: Cleaning up resources...")
    if getattr(app.state, 'store', None):
        try:
            await app.state.store.close()
        except Exception as e:
            logger.error(f"Error closing Firestore client: {e}")


app = FastAPI(title="Blog Content API", lifespan=lifespan)
app.include_router(posts.router)
app.include_router(comments.router)
app.include_router(authors.router)

app.add_middleware(
    TrustedHostMiddleware, allowed_hosts=config.ALLOWED_HOSTS
)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message}, headers=exc.headers)


@app.exception_handler(ValidationFailed)
async def validation_failed_handler(request: Request, exc: ValidationFailed):
    # Field errors are reported with a 200, the client reads the errors array
    return JSONResponse(status_code=exc.status_code, content={"errors": exc.errors})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Bodies the models cannot parse are reported like any other field error, one per field
    errors_by_path = {}
    for error in exc.errors():
        loc = error.get("loc") or ("body",)
        path = str(loc[1]) if len(loc) > 1 else ""
        errors_by_path.setdefault(path, {
            "type": "field",
            "value": error.get("input"),
            "msg": "Invalid value",
            "path": path,
            "location": loc[0],
        })
    errors = list(errors_by_path.values())
    logger.warning(f"Rejected unparseable request on {request.method} {request.url.path}: {[e['path'] for e in errors]}")
    return JSONResponse(status_code=200, content=jsonable_encoder({"errors": errors}))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)}, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=config.PORT, log_level=config.LOG_LEVEL)
