"""Loading and serialization of the OpenAPI document the service implements.

The document is the source of truth for the HTTP surface: every operation it
declares is bound to a handler at startup (see ``src.api.operations``) and
the document itself is served verbatim as JSON. A document that cannot be
read, parsed, validated or serialized raises ``SchemaLoadError`` so that the
application never starts with a partial API.
"""

from collections.abc import Iterator
from importlib import resources
from pathlib import Path
from typing import Any, Final

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.api.constants import OPENAPI_HTTP_METHODS
from src.core.exceptions import SchemaLoadError

BUNDLED_DESCRIPTION: Final[str] = "openapi.json"


class ApiInfo(BaseModel):
    """The ``info`` object of the document."""

    model_config = ConfigDict(extra="allow")

    title: str
    version: str
    description: str | None = None


class ApiOperation(BaseModel):
    """A single operation declared under a path item."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    operation_id: str = Field(alias="operationId", min_length=1)
    summary: str | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    responses: dict[str, Any] = Field(default_factory=dict)


class PathItem(BaseModel):
    """Operations available on one path, keyed by lower-case method."""

    model_config = ConfigDict(extra="allow")

    get: ApiOperation | None = None
    put: ApiOperation | None = None
    post: ApiOperation | None = None
    delete: ApiOperation | None = None
    options: ApiOperation | None = None
    head: ApiOperation | None = None
    patch: ApiOperation | None = None
    trace: ApiOperation | None = None

    def operations(self) -> Iterator[tuple[str, ApiOperation]]:
        """Yield ``(method, operation)`` pairs in a stable order."""
        for method in OPENAPI_HTTP_METHODS:
            operation = getattr(self, method)
            if operation is not None:
                yield method, operation


class ApiDescription(BaseModel):
    """In-memory form of the OpenAPI document.

    Unknown keys are preserved, so a document survives a load/serialize
    cycle unchanged.
    """

    model_config = ConfigDict(extra="allow")

    openapi: str
    info: ApiInfo
    servers: list[dict[str, Any]] = Field(default_factory=list)
    paths: dict[str, PathItem] = Field(default_factory=dict)
    components: dict[str, Any] = Field(default_factory=dict)

    @field_validator("openapi")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Only OpenAPI 3.x documents are supported."""
        if not v.startswith("3."):
            msg = f"Unsupported OpenAPI version: {v}"
            raise ValueError(msg)
        return v

    @field_validator("paths")
    @classmethod
    def validate_paths(cls, v: dict[str, PathItem]) -> dict[str, PathItem]:
        """Paths are absolute and operation ids are unique."""
        seen: set[str] = set()
        for path, item in v.items():
            if not path.startswith("/"):
                msg = f"Path must start with '/': {path}"
                raise ValueError(msg)
            for _, operation in item.operations():
                if operation.operation_id in seen:
                    msg = f"Duplicate operationId: {operation.operation_id}"
                    raise ValueError(msg)
                seen.add(operation.operation_id)
        return v

    def operations(self) -> Iterator[tuple[str, str, ApiOperation]]:
        """Yield ``(path, method, operation)`` for every declared operation."""
        for path, item in self.paths.items():
            for method, operation in item.operations():
                yield path, method, operation

    def to_dict(self) -> dict[str, Any]:
        """Return the document as plain JSON-compatible data."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


def _read_document(path: Path | None) -> bytes:
    if path is not None:
        return path.read_bytes()
    return resources.files("src.api").joinpath(BUNDLED_DESCRIPTION).read_bytes()


def load_api_description(path: Path | None = None) -> ApiDescription:
    """Load and validate the OpenAPI document.

    Args:
        path: Document to load. The bundled ``openapi.json`` is used when None.

    Returns:
        ApiDescription: The validated document.

    Raises:
        SchemaLoadError: If the document cannot be read, is not valid JSON or
            is not a valid OpenAPI 3 document.
    """
    source = str(path) if path is not None else BUNDLED_DESCRIPTION
    context = {"source": source}

    try:
        raw = _read_document(path)
    except OSError as exc:
        msg = f"Cannot read API description {source}: {exc}"
        raise SchemaLoadError(msg, context=context, cause=exc) from exc

    try:
        document = orjson.loads(raw)
    except orjson.JSONDecodeError as exc:
        msg = f"API description {source} is not valid JSON: {exc}"
        raise SchemaLoadError(msg, context=context, cause=exc) from exc

    try:
        return ApiDescription.model_validate(document)
    except ValidationError as exc:
        msg = f"API description {source} is invalid: {exc.error_count()} error(s)"
        context["errors"] = [error["msg"] for error in exc.errors()]
        raise SchemaLoadError(msg, context=context, cause=exc) from exc


def serialize_api_description(description: ApiDescription) -> bytes:
    """Serialize the document to JSON bytes.

    Args:
        description: Document to serialize.

    Returns:
        bytes: UTF-8 encoded JSON.

    Raises:
        SchemaLoadError: If the document cannot be encoded.
    """
    try:
        return orjson.dumps(description.to_dict())
    except orjson.JSONEncodeError as exc:
        msg = f"Cannot serialize API description: {exc}"
        raise SchemaLoadError(msg, cause=exc) from exc
