"""Idempotency keys for checkout requests.

A client that retries a checkout (double click, flaky network) with the
same ``Idempotency-Key`` gets the stored response instead of a second set
of orders. Reusing a key with a different payload is a conflict.
"""

import hashlib
import json

from django.db import IntegrityError, transaction

from .models import IdempotencyKey


class IdempotencyConflict(ValueError):
    code = "IDEMPOTENCY_CONFLICT"


def request_hash(payload: dict) -> str:
    """SHA-256 of the payload serialized with sorted keys and compact separators."""
    body = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


@transaction.atomic
def get_or_create_idempotent(key: str, payload: dict):
    """Get-or-create the idempotency record for ``key``.

    Returns:
        tuple[bool, IdempotencyKey]: ``(existing, rec)``; ``existing`` is
        False when this call created the record and the caller must
        ``finalize`` it once the response is known.

    Raises:
        IdempotencyConflict: If the key was used with a different payload.
    """
    h = request_hash(payload)
    try:
        # Nested savepoint: an IntegrityError only rolls back the insert.
        with transaction.atomic():
            rec = IdempotencyKey.objects.create(key=key, request_hash=h)
            return False, rec
    except IntegrityError:
        rec = IdempotencyKey.objects.select_for_update().get(key=key)
        if rec.request_hash != h:
            raise IdempotencyConflict(key)
        return True, rec


def finalize(rec: IdempotencyKey, status_code: int, body: dict) -> None:
    """Store the final response so retries can replay it."""
    rec.response_status = status_code
    rec.response_body = body
    rec.save(update_fields=["response_status", "response_body"])


def discard(rec: IdempotencyKey) -> None:
    """Forget a key whose request failed unexpectedly so a retry runs again."""
    IdempotencyKey.objects.filter(pk=rec.pk).delete()
