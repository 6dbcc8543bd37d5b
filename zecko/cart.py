"""Client-local shopping cart persisted to a JSON file."""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

LOGGER = logging.getLogger(__name__)

_CENT = Decimal("0.01")


class CartItem(BaseModel):
    """One product line in the cart."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    title: str
    price: Decimal = Field(ge=0)
    quantity: int = Field(default=1, ge=1)
    vendor_id: int
    image_url: str | None = None

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


class CartContents(BaseModel):
    """On-disk form of the cart."""

    items: list[CartItem] = Field(default_factory=list)


class Cart:
    """Cart contents plus the file they are stored in.

    Every mutation is written back immediately when a path is set.

    :param path: JSON file backing the cart, or None to keep it in memory
    :param items: Initial contents
    """

    def __init__(
        self,
        path: str | Path | None = None,
        items: list[CartItem] | None = None,
    ) -> None:
        self._path = Path(path) if path is not None else None
        self.items: list[CartItem] = list(items or [])

    @classmethod
    def load(cls, path: str | Path) -> Cart:
        """Read a cart from disk; a missing or unreadable file gives an empty cart."""
        path = Path(path)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return cls(path)
        except UnicodeDecodeError:
            LOGGER.warning("Ignoring cart file with invalid encoding at %s", path)
            return cls(path)

        try:
            stored = CartContents.model_validate_json(raw)
        except ValidationError:
            LOGGER.warning("Ignoring unreadable cart file at %s", path)
            return cls(path)
        return cls(path, items=stored.items)

    def save(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            CartContents(items=self.items).model_dump_json(by_alias=True, indent=2),
            encoding="utf-8",
        )

    def _find(self, product_id: int) -> CartItem | None:
        return next((item for item in self.items if item.id == product_id), None)

    def add_item(self, item: CartItem) -> CartItem:
        """Add a product, or bump its quantity by one if already present."""
        existing = self._find(item.id)
        if existing is not None:
            existing.quantity += 1
        else:
            existing = item.model_copy(update={"quantity": 1})
            self.items.append(existing)
        self.save()
        return existing

    def remove_item(self, product_id: int) -> None:
        self.items = [item for item in self.items if item.id != product_id]
        self.save()

    def update_quantity(self, product_id: int, quantity: int) -> None:
        """Set a line's quantity. Zero or less removes the line."""
        if quantity <= 0:
            self.remove_item(product_id)
            return
        existing = self._find(product_id)
        if existing is None:
            return
        existing.quantity = quantity
        self.save()

    def clear(self) -> None:
        self.items = []
        self.save()

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def total(self) -> Decimal:
        return sum((item.subtotal for item in self.items), Decimal(0))

    @property
    def total_cents(self) -> int:
        """Total in the smallest currency unit, as payment providers expect."""
        return int((self.total / _CENT).quantize(Decimal(1), rounding=ROUND_HALF_UP))
