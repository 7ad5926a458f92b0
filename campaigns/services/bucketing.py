"""Deterministic traffic bucketing.

A visitor id always maps to the same bucket in [0, 99]; the bucket is then
matched against the cumulative traffic percentages of a campaign's variants.
"""

import hashlib
from typing import Sequence

from campaigns.models.orm.campaign import VariantORM

BUCKET_COUNT = 100


def visitor_hash(visitor_id: str) -> int:
    """Unsigned 32-bit hash of the visitor id (first 4 bytes of its SHA-256)."""
    digest = hashlib.sha256(visitor_id.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big")


def bucket_for(visitor_id: str) -> int:
    return visitor_hash(visitor_id) % BUCKET_COUNT


def order_variants(variants: Sequence[VariantORM]) -> list[VariantORM]:
    """Largest traffic share first; ties broken by variant id so the walk
    order does not depend on the order rows come back from the database."""
    return sorted(variants, key=lambda v: (-v.traffic_percentage, v.variant_id))


def select_variant(variants: Sequence[VariantORM], bucket: int) -> VariantORM:
    """
    Picks the first variant (in ``order_variants`` order) whose running
    traffic total exceeds ``bucket``.

    Weights are not required to sum to 100. When they sum to less, buckets
    past the total fall through to the last variant; negative weights count
    as zero.

    Raises:
        ValueError: ``variants`` is empty.
    """
    if not variants:
        raise ValueError("Cannot select from an empty variant list.")

    ordered = order_variants(variants)

    cumulative = 0.0
    for variant in ordered:
        cumulative += max(variant.traffic_percentage, 0.0)
        if bucket < cumulative:
            return variant

    return ordered[-1]
