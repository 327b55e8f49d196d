"""
Filter facets for a category listing.

Works on raw product documents so that values outside the Size enum
(legacy or hand-edited records) still show up in the sidebar.
"""
from typing import Iterable, Optional

from storefront.products.models import Category
from storefront.products.schemas import ProductFilters

SIZE_ORDER = ["XS", "S", "M", "L", "XL", "XXL", "2XL", "3XL", "4XL", "5XL", "6XL"]
SIZE_RANK = {size: rank for rank, size in enumerate(SIZE_ORDER)}


def size_rank(size: str) -> int:
    # Unranked sizes go first, in the order they were seen
    return SIZE_RANK.get(size, -1)


def derive_facets(category: Optional[Category], products: Iterable[dict]) -> ProductFilters:
    if category is None:
        return ProductFilters()

    counts = {}
    sizes = {}
    colors = {}
    fits = set()

    for product in products:
        subcategory = product.get("subcategory")
        if subcategory:
            counts[subcategory] = counts.get(subcategory, 0) + 1

        for size in product.get("sizes") or []:
            sizes.setdefault(size, None)

        for color in product.get("colors") or []:
            colors.setdefault(color, None)

        fit = product.get("fit")
        if fit:
            fits.add(fit)

    return ProductFilters(
        subcategories=sorted(counts),
        sizes=sorted(sizes, key=size_rank),
        colors=list(colors),
        fits=sorted(fits),
        category_counts=counts,
    )
