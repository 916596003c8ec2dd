"""Provider unit prices and money helpers."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from adstudio.storage.models import AssetType

MONEY_QUANTUM = Decimal("0.0001")
CENTS = Decimal("0.01")

# USD per provider call, by job kind.
API_COSTS: dict[str, Decimal] = {
    "text": Decimal("0.01"),
    "image": Decimal("0.07"),
    "image_edit": Decimal("0.07"),
    "video": Decimal("1.20"),
    "tts": Decimal("0.05"),
    "render": Decimal("0.50"),
}

# Provider job kind used to produce each asset type.
ASSET_JOB_KINDS: dict[str, str] = {
    AssetType.KEYFRAME_START.value: "image",
    AssetType.KEYFRAME_END.value: "image",
    AssetType.VIDEO.value: "video",
    AssetType.AUDIO.value: "tts",
    AssetType.BROLL.value: "image",
}

EDIT_JOB_KIND = "image_edit"


def to_money(value: Decimal | float | int | str) -> Decimal:
    """Normalize to the ledger's fixed-point precision."""
    return Decimal(str(value)).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def round_cents(value: Decimal) -> Decimal:
    """Round half-up to whole cents."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def job_kind_for(asset_type: str) -> str:
    try:
        return ASSET_JOB_KINDS[asset_type]
    except KeyError:
        raise ValueError(f"No provider job kind for asset type '{asset_type}'") from None


def price_for(kind: str) -> Decimal:
    """Return the unit price for a provider job kind (0 for unpriced kinds)."""
    return API_COSTS.get(kind, Decimal("0"))
