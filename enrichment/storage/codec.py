"""Schema-versioned JSON envelopes for stored payloads.

Every blob persisted by the stores is wrapped as
``{"schema": <name>, "version": <int>, "data": <model dump>}`` so the stored
format can evolve without guessing at old rows.
"""

import json
from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError

from enrichment.constants import PAYLOAD_SCHEMA_VERSION
from enrichment.utils.errors import SerializationError
from enrichment.utils.result import Err, Ok, Result

M = TypeVar("M", bound=BaseModel)

SUPPORTED_VERSIONS = frozenset({PAYLOAD_SCHEMA_VERSION})


def encode(schema: str, model: BaseModel) -> str:
    """Wrap a model in a versioned envelope and serialize it"""
    return json.dumps({
        "schema": schema,
        "version": PAYLOAD_SCHEMA_VERSION,
        "data": model.model_dump(mode="json"),
    })


def decode(raw: str, schema: str, model_cls: Type[M]) -> Result[M, str]:
    """
    Parse a versioned envelope back into a model.

    Args:
        raw: Stored JSON text
        schema: Expected schema name
        model_cls: Pydantic model to validate ``data`` against

    Returns:
        Ok(model) or Err(reason)
    """
    try:
        envelope = json.loads(raw)
    except (TypeError, ValueError) as e:
        return Err(f"undecodable {schema} payload: {e}")

    if not isinstance(envelope, dict):
        return Err(f"{schema} payload is not an object")
    if envelope.get("schema") != schema:
        return Err(f"expected schema {schema!r}, found {envelope.get('schema')!r}")
    if envelope.get("version") not in SUPPORTED_VERSIONS:
        return Err(f"unsupported {schema} version {envelope.get('version')!r}")

    try:
        return Ok(model_cls.model_validate(envelope.get("data")))
    except ValidationError as e:
        return Err(f"invalid {schema} data: {e}")


def decode_or_raise(raw: str, schema: str, model_cls: Type[M]) -> M:
    """
    Decode, raising SerializationError on failure.

    Raises:
        SerializationError: If the payload is corrupt or of an unknown version
    """
    outcome = decode(raw, schema, model_cls)
    if isinstance(outcome, Err):
        raise SerializationError(outcome.error)
    return outcome.value
