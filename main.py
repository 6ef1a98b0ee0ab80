import os
import logging

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

import database
from database import ensure_indexes
from errors import APIError
from categories import router as categories_router
from products import router as products_router

logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Catalog API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(categories_router)
app.include_router(products_router)


# Error rendering

@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.setdefault(".".join(loc) or "body", err.get("msg", "Invalid value"))
    return JSONResponse(status_code=400, content={"errors": errors})


@app.on_event("startup")
def create_indexes() -> None:
    if database.db is None:
        logger.warning("DATABASE_URL/DATABASE_NAME not set, store calls will fail")
        return
    try:
        ensure_indexes(database.db)
    except PyMongoError as e:
        logger.error("Could not create indexes: %s", e)


@app.get("/")
def read_root():
    return {"message": "Catalog API ready"}


@app.get("/test")
def test_database():
    """Report whether the store is configured and reachable."""
    if database.db is None:
        return {"database": "not configured", "collections": []}
    try:
        collections = database.db.list_collection_names()
    except PyMongoError as e:
        logger.warning("Store status check failed: %s", e)
        return {"database": "unreachable", "collections": []}
    return {"database": "connected", "collections": sorted(collections)}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
