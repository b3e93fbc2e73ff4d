"""
Inventra FastAPI application entry point.
"""
import logging
import uuid
from contextvars import ContextVar

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.routes.health import router as health_router
from app.routes.import_route import router as import_router

# Request ID context variable
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("")
        return True


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s level=%(levelname)s logger=%(name)s msg=%(message)s request_id=%(request_id)s"
)

# Filter on the handlers so records from every named logger get a request_id
for handler in logging.getLogger().handlers:
    handler.addFilter(RequestIDFilter())

app = FastAPI(
    title="Inventra",
    description="Inventory and order management: bulk data import",
    version="0.1.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
    request_id_var.set(request_id)

    logger = logging.getLogger("app.request")
    logger.info(
        f"Request started method={request.method} url={str(request.url)} client_ip={request.client.host if request.client else 'unknown'}"
    )

    response = await call_next(request)
    response.headers["X-Request-Id"] = request_id

    logger.info(
        f"Request completed status_code={response.status_code}"
    )

    return response


app.include_router(health_router, tags=["health"])
app.include_router(import_router, tags=["import"])
