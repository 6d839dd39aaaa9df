from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from config import LOG_LEVEL
from db import create_db_and_tables
from errors import FulfillmentError, ValidationError
from logging_config import configure_logging, get_logger
from routers import auth, donations, requests, users

configure_logging(level=LOG_LEVEL)
logger = get_logger("main")

app = FastAPI(title="HungerLink")


@app.on_event("startup")
def on_startup() -> None:
    create_db_and_tables()


@app.exception_handler(FulfillmentError)
def fulfillment_error_handler(request: Request, exc: FulfillmentError) -> JSONResponse:
    # Tells the client which rule failed so it can pick a fix.
    logger.info(
        "request_rejected",
        extra={"path": request.url.path, "code": exc.code},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "code": exc.code,
            "detail": exc.message,
            **exc.details(),
        },
    )


@app.exception_handler(RequestValidationError)
def payload_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed payloads answer in the same shape as every other rejection."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    error = ValidationError(
        first.get("msg", "Invalid request payload"),
        field=".".join(loc) or None,
    )
    return fulfillment_error_handler(request, error)


@app.get("/")
def read_root():
    return {"service": "HungerLink", "status": "ok"}


app.include_router(auth.router)
app.include_router(users.router, prefix="/users")
app.include_router(requests.router, prefix="/requests")
app.include_router(donations.router, prefix="/donations")
