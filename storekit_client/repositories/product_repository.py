"""Product repository - provides access to configured product definitions.

Backs the simulated store catalog.
"""

from typing import Dict, Iterable, Optional

from storekit_client.models import ProductDefinition


class ProductRepository:
    """Repository of product definitions indexed by identifier."""

    def __init__(self, products: Iterable[ProductDefinition] = ()):
        """Initialize product repository.

        Args:
            products: Product definitions (typically Config.products)
        """
        self._products_by_id: Dict[str, ProductDefinition] = {}
        for product in products:
            self._products_by_id[product.id] = product

    def find_by_id(self, product_id: str) -> Optional[ProductDefinition]:
        return self._products_by_id.get(product_id)

    def __len__(self) -> int:
        return len(self._products_by_id)

    def __contains__(self, product_id: str) -> bool:
        return product_id in self._products_by_id

    def __repr__(self) -> str:
        return f"ProductRepository(products={len(self._products_by_id)})"
