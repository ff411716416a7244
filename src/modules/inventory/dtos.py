"""Read-side snapshots returned by the Inventory Gateway.

Snapshots are immutable: the caller never mutates stock through them, only
through the gateway's explicit write operations.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class VariantSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    stock: int
    is_available: bool


class ProductSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    stock: int
    is_available: bool
    variants: List[VariantSnapshot] = []

    def variant(self, variant_id: str) -> Optional[VariantSnapshot]:
        """Return the variant with *variant_id*, or ``None``."""
        return next((v for v in self.variants if v.id == str(variant_id)), None)
