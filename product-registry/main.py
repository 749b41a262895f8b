import os
import re
import sys
import time
import uuid
from typing import List, Optional
import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Path, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from dotenv import load_dotenv
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from models import Product, ProductStore
from openapi_export import install_openapi, write_openapi
from schemas import Error, ProductCreate

load_dotenv()

SERVICE_NAME = "product-registry"

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8080))
PUBLIC_URL = os.getenv("PUBLIC_URL", f"http://localhost:{PORT}")
LOG_FILE = os.getenv("LOG_FILE", "logs.json")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
OPENAPI_OUTPUT = os.getenv("OPENAPI_OUTPUT", "openapi.yaml")

MISSING_NAME = "Missing product name"
NOT_FOUND = "Product not found"
PRODUCT_PATH = "/products/{productId}"
UNMATCHED_ROUTE = "unmatched"

# JSON file logs plus console
logger.remove()
logger.add(
    sink=LOG_FILE,
    format="{time:YYYY-MM-DDTHH:mm:ss.SSSZ} | {level} | {message} | {extra}",
    level=LOG_LEVEL,
    serialize=True,
    rotation="1 day",
)
logger.add(sys.stderr, level=LOG_LEVEL)

# Prometheus metrics
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "method", "endpoint", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["service", "method", "endpoint"]
)
ERROR_COUNT = Counter(
    "http_errors_total",
    "Total HTTP errors",
    ["service", "endpoint", "error_type"]
)

PRODUCT_ID_PATTERN = re.compile(r"[+-]?[0-9]+")

CREATE_REQUEST_BODY = {
    "required": True,
    "content": {
        "application/json": {
            "schema": {
                "type": "object",
                "properties": {"name": {"type": "string"}},
                "required": ["name"],
            }
        }
    },
}


def parse_product_id(raw: str) -> Optional[int]:
    """Strict integer parse of a path segment; None means "matches nothing"."""
    if not PRODUCT_ID_PATTERN.fullmatch(raw):
        return None
    try:
        return int(raw)
    except ValueError:
        # Beyond the interpreter's int/str digit limit
        return None


def get_store(request: Request) -> ProductStore:
    return request.app.state.store


def route_label(request: Request) -> str:
    """Route template for metric labels, so arbitrary ids share one series."""
    route = request.scope.get("route")
    return getattr(route, "path", UNMATCHED_ROUTE)


async def log_requests(request: Request, call_next):
    # Generate or propagate correlation ID (trace-id)
    trace_id = request.headers.get("X-Trace-ID", str(uuid.uuid4()))
    start_time = time.time()

    with logger.contextualize(trace_id=trace_id, service=SERVICE_NAME):
        logger.bind(method=request.method, url=str(request.url)).info(
            "Request: {} {}", request.method, request.url.path
        )

        response = await call_next(request)

        latency = time.time() - start_time
        endpoint = route_label(request)

        REQUEST_COUNT.labels(
            service=SERVICE_NAME,
            method=request.method,
            endpoint=endpoint,
            status=response.status_code
        ).inc()
        REQUEST_LATENCY.labels(
            service=SERVICE_NAME,
            method=request.method,
            endpoint=endpoint
        ).observe(latency)

        logger.bind(status=response.status_code, latency=latency).info(
            "Response status: {}", response.status_code
        )

        response.headers["X-Trace-ID"] = trace_id
        return response


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Render every HTTP error as ``{"error": detail}``."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=exc.headers,
    )


async def metrics():
    """Endpoint /metrics compatible Prometheus"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


async def health():
    """Health check endpoint"""
    return {"status": "healthy", "service": SERVICE_NAME}


async def list_products(store: ProductStore = Depends(get_store)):
    logger.info("Fetching all products")
    return store.all()


async def create_product(request: Request, store: ProductStore = Depends(get_store)):
    # Malformed or non-object JSON counts as a missing name
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    try:
        name = ProductCreate.model_validate(payload).name
    except ValidationError:
        name = None

    if not name:
        logger.info("Rejected product creation without a name")
        ERROR_COUNT.labels(service=SERVICE_NAME, endpoint="/products", error_type="missing_name").inc()
        raise HTTPException(status_code=400, detail=MISSING_NAME)

    product = store.create(name)
    logger.info("Product created with ID {}", product.id)
    return product


def _not_found(product_id: str) -> HTTPException:
    logger.info("Product {} not found", product_id)
    ERROR_COUNT.labels(service=SERVICE_NAME, endpoint=PRODUCT_PATH, error_type="not_found").inc()
    return HTTPException(status_code=404, detail=NOT_FOUND)


async def get_product(
    product_id: str = Path(alias="productId"),
    store: ProductStore = Depends(get_store),
):
    logger.info("Fetching product {}", product_id)
    parsed = parse_product_id(product_id)
    product: Optional[Product] = store.get(parsed) if parsed is not None else None
    if product is None:
        raise _not_found(product_id)
    return product


async def delete_product(
    product_id: str = Path(alias="productId"),
    store: ProductStore = Depends(get_store),
):
    logger.info("Deleting product {}", product_id)
    parsed = parse_product_id(product_id)
    if parsed is None or not store.delete(parsed):
        raise _not_found(product_id)
    logger.info("Product {} deleted", parsed)
    return Response(status_code=204)


def create_app(store: Optional[ProductStore] = None) -> FastAPI:
    """Build the service around its own store (a fresh empty one by default)."""
    app = FastAPI(title="OpenAPI demo", version="1.0.0", servers=[{"url": PUBLIC_URL}])
    app.state.store = store if store is not None else ProductStore()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(log_requests)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    app.add_api_route("/metrics", metrics, methods=["GET"], include_in_schema=False)
    app.add_api_route("/health", health, methods=["GET"], include_in_schema=False)

    app.add_api_route(
        "/products",
        list_products,
        methods=["GET"],
        operation_id="getProducts",
        tags=["product"],
        response_model=List[Product],
        response_description="OK",
    )
    app.add_api_route(
        "/products",
        create_product,
        methods=["POST"],
        operation_id="createProduct",
        tags=["product"],
        status_code=201,
        response_model=Product,
        response_description="Created",
        responses={400: {"model": Error, "description": "Invalid data"}},
        openapi_extra={"requestBody": CREATE_REQUEST_BODY},
    )
    app.add_api_route(
        PRODUCT_PATH,
        get_product,
        methods=["GET"],
        operation_id="getProduct",
        tags=["product"],
        response_model=Product,
        response_description="OK",
        responses={404: {"model": Error, "description": "Not found"}},
    )
    app.add_api_route(
        PRODUCT_PATH,
        delete_product,
        methods=["DELETE"],
        operation_id="deleteProduct",
        tags=["product"],
        status_code=204,
        response_class=Response,
        response_description="Deleted",
        responses={404: {"model": Error, "description": "Not found"}},
    )

    install_openapi(app)
    return app


app = create_app()


def main():
    """Write the API description (unless OPENAPI_OUTPUT is empty), then serve."""
    if OPENAPI_OUTPUT:
        write_openapi(app, OPENAPI_OUTPUT)
    logger.info("OpenAPI demo server listening on port {}", PORT)
    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    main()
