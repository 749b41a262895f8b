"""
Generation of the OpenAPI description for the product registry.

The document is built from the FastAPI route metadata, then tidied so it
only describes the real wire surface: handlers never answer 422, and the
product id path segment is documented as an integer even though the
handlers read it as text to keep lookups lenient.
"""
import argparse
from pathlib import Path
from typing import Any, Dict

import yaml
from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from loguru import logger

INTEGER_PATH_PARAMS = {"productId"}
VALIDATION_SCHEMAS = ("HTTPValidationError", "ValidationError")


def build_openapi(app: FastAPI) -> Dict[str, Any]:
    schema = get_openapi(
        title=app.title,
        version=app.version,
        openapi_version=app.openapi_version,
        description=app.description,
        routes=app.routes,
        servers=app.servers,
    )

    for path_item in schema.get("paths", {}).values():
        for operation in path_item.values():
            operation.get("responses", {}).pop("422", None)
            for param in operation.get("parameters", []):
                if param.get("in") == "path" and param.get("name") in INTEGER_PATH_PARAMS:
                    param["schema"] = {"type": "integer"}

    components = schema.get("components", {}).get("schemas", {})
    for name in VALIDATION_SCHEMAS:
        components.pop(name, None)

    return schema


def install_openapi(app: FastAPI) -> None:
    """Make ``app.openapi()`` (and /openapi.json, /docs) serve the tidied document."""

    def openapi() -> Dict[str, Any]:
        if app.openapi_schema is None:
            app.openapi_schema = build_openapi(app)
        return app.openapi_schema

    app.openapi = openapi


def write_openapi(app: FastAPI, path) -> Path:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    with output.open("w", encoding="utf-8") as f:
        yaml.safe_dump(app.openapi(), f, default_flow_style=False, allow_unicode=True, sort_keys=False)
    logger.info("Wrote OpenAPI spec to {}", output)
    return output


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Write the product registry OpenAPI description as YAML")
    parser.add_argument("-o", "--output", default=None, help="target file (defaults to OPENAPI_OUTPUT)")
    args = parser.parse_args()

    from main import OPENAPI_OUTPUT, app

    write_openapi(app, args.output or OPENAPI_OUTPUT or "openapi.yaml")
