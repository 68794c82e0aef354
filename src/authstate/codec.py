"""
Binary-safe codec for authstate records.

Key material is mostly raw bytes nested inside ordinary mappings and lists.
Document stores are not guaranteed to keep raw binary intact in every
position, so every byte string is replaced by a tagged mapping:

    {"type": "Buffer", "data": "<standard base64>"}

Everything else passes through structurally unchanged. A mapping that
happens to have the exact shape of a tag (or of an escape) is escaped as
``{"_literal": {...}}`` so it is never mistaken for bytes. Decoding walks
the structure again and turns each tag back into the exact original bytes.

The codec does not depend on the key category, so it works for all of them.
"""

import base64
import binascii
from typing import Any

from .types import (
    BUFFER_TYPE_TAG,
    DOCUMENT_ID_FIELD,
    LITERAL_MAPPING_FIELD,
    WRAPPED_VALUE_FIELD,
    CodecError,
)


_BINARY_TYPES = (bytes, bytearray, memoryview)
_SCALAR_TYPES = (str, int, float, bool, type(None))


def encode(value: Any) -> Any:
    """
    Encode a record into its transport form.

    Args:
        value: Any nesting of mappings (str keys), lists, tuples, byte
            strings, str, int, float, bool and None.

    Returns:
        The same structure with every byte string replaced by a Buffer tag.
        Tuples come back as lists.

    Raises:
        CodecError: If the record contains an unsupported type or a
            mapping with non-string keys.
    """
    if isinstance(value, _BINARY_TYPES):
        return {
            "type": BUFFER_TYPE_TAG,
            "data": base64.b64encode(bytes(value)).decode("ascii"),
        }
    if isinstance(value, _SCALAR_TYPES):
        return value
    if isinstance(value, dict):
        encoded = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise CodecError(
                    f"Mapping keys must be str, got {type(key).__name__}: {key!r}"
                )
            encoded[key] = encode(item)
        # Mappings shaped like a tag or an escape are escaped
        if is_tagged_buffer(encoded) or _is_literal(encoded):
            return {LITERAL_MAPPING_FIELD: encoded}
        return encoded
    if isinstance(value, (list, tuple)):
        return [encode(item) for item in value]
    raise CodecError(f"Cannot encode value of type {type(value).__name__}")


def decode(value: Any) -> Any:
    """
    Decode a transport form back into the original record.

    Raises:
        CodecError: If a Buffer tag is malformed.
    """
    if isinstance(value, dict):
        if is_tagged_buffer(value):
            return _decode_buffer(value)
        if _is_literal(value):
            value = value[LITERAL_MAPPING_FIELD]
        return {key: decode(item) for key, item in value.items()}
    if isinstance(value, list):
        return [decode(item) for item in value]
    return value


def is_tagged_buffer(value: Any) -> bool:
    """
    Whether a value is a Buffer tag produced by this or a compatible encoder.

    Two exact shapes are recognised: ``{"type": "Buffer", "data": ...}`` and
    the older ``{"buffer": true, "value": ...}``, each with str or list data.
    Mappings with any other keys are ordinary mappings.
    """
    if not isinstance(value, dict) or len(value) != 2:
        return False
    if value.get("type") == BUFFER_TYPE_TAG:
        data = value.get("data")
    elif value.get("buffer") is True:
        data = value.get("value")
    else:
        return False
    return isinstance(data, (str, list))


def _is_literal(value: dict) -> bool:
    return set(value) == {LITERAL_MAPPING_FIELD} and isinstance(value[LITERAL_MAPPING_FIELD], dict)


def _decode_buffer(tag: dict) -> bytes:
    data = tag["data"] if "data" in tag else tag["value"]

    if isinstance(data, str):
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CodecError(f"Invalid base64 in Buffer tag: {e}") from e

    # Legacy form: list of byte values
    if isinstance(data, list):
        try:
            return bytes(data)
        except (TypeError, ValueError) as e:
            raise CodecError(f"Invalid byte list in Buffer tag: {e}") from e

    raise CodecError(f"Buffer tag has unsupported data of type {type(data).__name__}")


# MARK: - Documents


def encode_document(doc_id: str, value: Any) -> dict:
    """
    Encode a record into a store document addressed by ``doc_id``.

    Mappings are stored inline. Any other value, or a mapping that uses a
    reserved field name, is stored under the ``_value`` field.
    """
    encoded = encode(value)
    if _stores_inline(encoded):
        return {DOCUMENT_ID_FIELD: doc_id, **encoded}
    return {DOCUMENT_ID_FIELD: doc_id, WRAPPED_VALUE_FIELD: encoded}


def decode_document(document: dict) -> Any:
    """Decode a store document produced by :func:`encode_document`."""
    if not isinstance(document, dict):
        raise CodecError(f"Document must be a mapping, got {type(document).__name__}")

    body = {k: v for k, v in document.items() if k != DOCUMENT_ID_FIELD}
    if set(body) == {WRAPPED_VALUE_FIELD}:
        return decode(body[WRAPPED_VALUE_FIELD])
    return decode(body)


def _stores_inline(encoded: Any) -> bool:
    if not isinstance(encoded, dict) or is_tagged_buffer(encoded):
        return False
    if DOCUMENT_ID_FIELD in encoded:
        return False
    return set(encoded) != {WRAPPED_VALUE_FIELD}
