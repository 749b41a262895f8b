import threading
from typing import List, Optional
from pydantic import BaseModel


class Product(BaseModel):
    id: int
    name: str


class ProductStore:
    """Ordered in-memory collection of products, owned by one app instance.

    All access goes through a single lock so a create or delete is fully
    applied before any other call reads the collection.
    """

    def __init__(self, products: Optional[List[Product]] = None):
        self._products: List[Product] = list(products or [])
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._products)

    def all(self) -> List[Product]:
        with self._lock:
            return list(self._products)

    def create(self, name: str) -> Product:
        with self._lock:
            # Max-based, not a counter: deleting the highest id lets it be issued again
            new_id = max((p.id for p in self._products), default=0) + 1
            product = Product(id=new_id, name=name)
            self._products.append(product)
            return product

    def get(self, product_id: int) -> Optional[Product]:
        with self._lock:
            return next((p for p in self._products if p.id == product_id), None)

    def delete(self, product_id: int) -> bool:
        with self._lock:
            index = next((i for i, p in enumerate(self._products) if p.id == product_id), None)
            if index is None:
                return False
            del self._products[index]
            return True
