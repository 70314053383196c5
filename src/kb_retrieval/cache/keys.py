"""Canonical cache key construction."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any

RETRIEVAL_NAMESPACE = "vs"
GLOBAL_TENANT = "_"


def stable_hash(payload: Mapping[str, Any]) -> str:
    """Hash a flat mapping independently of its key order."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:24]


def text_digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def retrieval_cache_key_parts(
    query: str,
    tenant_id: str | None,
    top_k: int,
    min_score: float,
) -> tuple[str, str, str]:
    """Key parts for one retrieval request.

    Only these four fields identify a request. ``top_k`` and ``min_score`` are
    coerced so that ``0`` and ``0.0`` produce the same key.
    """
    tenant = str(tenant_id) if tenant_id else None
    digest = stable_hash(
        {
            "q": str(query or ""),
            "tenant": tenant,
            "top_k": int(top_k),
            "min_score": float(min_score),
        }
    )
    return (RETRIEVAL_NAMESPACE, tenant or GLOBAL_TENANT, digest)
