import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from doorstep.core.config import settings
from doorstep.db.mongo import connect_to_mongo, close_mongo_connection
from doorstep.api.v1.api import api_router
from doorstep.utils import errors

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

STATUS_CODES = {
    errors.ValidationError: 400,
    errors.UnsupportedQuantity: 400,
    errors.InsufficientBalance: 402,
    errors.NotFound: 404,
    errors.ConcurrentModification: 409,
    errors.CutoffExceeded: 409,
    errors.PastDateNotAllowed: 409,
    errors.ExceedsBalance: 409,
    errors.InvalidTransition: 409,
}

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    description=settings.DESCRIPTION,
)

app.add_event_handler("startup", connect_to_mongo)
app.add_event_handler("shutdown", close_mongo_connection)


@app.exception_handler(errors.DomainError)
async def domain_error_handler(request: Request, exc: errors.DomainError):
    return JSONResponse(status_code=STATUS_CODES.get(type(exc), 500), content=exc.to_dict())


@app.get("/")
async def root():
    return {"message": "Welcome to Doorstep Ledger API"}


app.include_router(api_router, prefix=settings.API_V1_STR)
