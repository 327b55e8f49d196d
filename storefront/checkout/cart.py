from decimal import Decimal
from pathlib import Path
from typing import List, Optional, Protocol, Union
import json
import logging

from pydantic import ValidationError

from storefront.checkout.pricing import cart_subtotal
from storefront.checkout.schemas import CartItem

logger = logging.getLogger(__name__)


class CartStorage(Protocol):
    def load(self) -> List[CartItem]: ...

    def save(self, items: List[CartItem]) -> None: ...


class MemoryCartStorage:
    def __init__(self, items: Optional[List[CartItem]] = None):
        self.items = list(items or [])

    def load(self) -> List[CartItem]:
        return [item.model_copy() for item in self.items]

    def save(self, items: List[CartItem]) -> None:
        self.items = [item.model_copy() for item in items]


class JsonFileCartStorage:
    """Keeps the cart in a JSON file, the way a browser keeps it in localStorage."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> List[CartItem]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text())
            return [CartItem(**item) for item in raw]
        except (ValueError, TypeError, ValidationError):
            logger.warning(f"Discarding unreadable cart file {self.path}")
            return []

    def save(self, items: List[CartItem]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [item.model_dump(mode="json", by_alias=True) for item in items]
        self.path.write_text(json.dumps(payload, indent=2))


class Cart:
    """
    Client-local shopping cart.

    Lines are keyed by (product id, size, color): adding a matching line
    bumps its quantity. Every mutation is written through to the storage.
    """

    def __init__(self, storage: Optional[CartStorage] = None):
        self.storage = storage or MemoryCartStorage()
        self._items: List[CartItem] = self.storage.load()

    @property
    def items(self) -> List[CartItem]:
        return list(self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    def _find(self, product_id: int, size: Optional[str], color: Optional[str]) -> Optional[CartItem]:
        for item in self._items:
            if item.key == (product_id, size, color):
                return item
        return None

    def _persist(self):
        self.storage.save(self._items)

    def add(self, product, size: Optional[str] = None, color: Optional[str] = None, quantity: int = 1) -> CartItem:
        """
        `product` is anything with id/name/price and images or image, such as
        a ProductResponse. Name, image and price are copied at this point.
        """
        if quantity < 1:
            raise ValueError("quantity must be at least 1")

        existing = self._find(product.id, size, color)
        if existing:
            existing.quantity += quantity
            self._persist()
            return existing

        images = getattr(product, "images", None) or []
        item = CartItem(
            product_id=product.id,
            name=product.name,
            image=images[0] if images else getattr(product, "image", None),
            price=product.price,
            size=size,
            color=color,
            quantity=quantity,
        )
        self._items.append(item)
        self._persist()
        return item

    def remove(self, product_id: int, size: Optional[str] = None, color: Optional[str] = None) -> bool:
        item = self._find(product_id, size, color)
        if item is None:
            return False
        self._items.remove(item)
        self._persist()
        return True

    def update_quantity(self, product_id: int, size: Optional[str], color: Optional[str], quantity: int) -> bool:
        # Below 1 is ignored; removal goes through remove()
        if quantity < 1:
            return False
        item = self._find(product_id, size, color)
        if item is None:
            return False
        item.quantity = quantity
        self._persist()
        return True

    def clear(self):
        self._items = []
        self._persist()

    def total(self) -> Decimal:
        return cart_subtotal(self._items)

    def item_count(self) -> int:
        return sum(item.quantity for item in self._items)
