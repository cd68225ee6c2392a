"""Embedded JSON Schema for workflow definitions."""
import json
import logging
from functools import lru_cache
from importlib import resources

from jsonschema import Draft7Validator

from .errors import InternalError

logger = logging.getLogger("conductor.core.schema")

SCHEMA_RESOURCE = "workflow.schema.json"


@lru_cache(maxsize=1)
def get_embedded_schema() -> bytes:
    """Raw bytes of the schema shipped with the package."""
    return resources.files(__package__).joinpath("schemas", SCHEMA_RESOURCE).read_bytes()


def load_schema() -> dict:
    """Parse the embedded schema into a fresh dict.

    Raises:
        InternalError: If the embedded document is not valid JSON (build defect)
    """
    try:
        schema = json.loads(get_embedded_schema())
    except ValueError as e:
        logger.error(f"Embedded workflow schema failed to parse: {e}")
        raise InternalError("embedded workflow schema is invalid") from e
    if not isinstance(schema, dict):
        logger.error("Embedded workflow schema is not a JSON object")
        raise InternalError("embedded workflow schema is invalid")
    return schema


@lru_cache(maxsize=1)
def schema_validator() -> Draft7Validator:
    """Compiled validator for the embedded schema, built once."""
    return Draft7Validator(load_schema())
