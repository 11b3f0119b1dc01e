"""Opaque continuation tokens for list queries.

A token wraps the store's last-evaluated key (a DynamoDB key in
AttributeValue form, e.g. ``{"id": {"S": "..."}}``)::

    key -> compact JSON -> gzip -> base64

Clients must treat the result as an unstructured string.
"""

from __future__ import annotations

import base64
import binascii
import gzip
import json
import zlib
from typing import Any

from loguru import logger

from dave.user_api.errors import InternalError

LastEvaluatedKey = dict[str, Any]


class PaginationCodec:
    """Encode / decode list cursors.  Stateless; one instance is shared by the app."""

    def encode(self, key: LastEvaluatedKey | None) -> str | None:
        if key is None:
            return None
        raw = json.dumps(key, separators=(",", ":"), sort_keys=True).encode("utf-8")
        return base64.b64encode(gzip.compress(raw)).decode("ascii")

    def decode(self, token: str | None) -> LastEvaluatedKey | None:
        """Inverse of :meth:`encode`.  Raises ``InternalError`` on a malformed token."""
        if token is None:
            return None
        try:
            compressed = base64.b64decode(token, validate=True)
            key = json.loads(gzip.decompress(compressed).decode("utf-8"))
        except (binascii.Error, OSError, EOFError, zlib.error, ValueError) as exc:
            logger.opt(exception=exc).error("Error deserializing pagination token")
            raise InternalError from exc
        if not isinstance(key, dict):
            logger.error("Pagination token does not wrap a key mapping: {!r}", type(key).__name__)
            raise InternalError
        return key
