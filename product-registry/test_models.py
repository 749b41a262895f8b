"""
Unit tests for the in-memory product store.
"""
import threading
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from models import Product, ProductStore


class TestProductStore:
    """Tests for ProductStore operations."""

    def test_starts_empty(self):
        store = ProductStore()
        assert store.all() == []
        assert len(store) == 0

    def test_create_uses_current_max(self):
        store = ProductStore([Product(id=7, name="Seeded")])
        product = store.create("Next")
        assert product == Product(id=8, name="Next")
        assert [p.id for p in store.all()] == [7, 8]

    def test_get(self):
        store = ProductStore()
        created = store.create("A")
        assert store.get(created.id) == created
        assert store.get(created.id + 1) is None

    def test_delete_removes_only_the_match(self):
        store = ProductStore()
        for name in ("A", "B", "C"):
            store.create(name)
        assert store.delete(2) is True
        assert [p.name for p in store.all()] == ["A", "C"]
        assert store.delete(2) is False
        assert len(store) == 2

    def test_all_returns_a_snapshot(self):
        store = ProductStore()
        store.create("A")
        snapshot = store.all()
        snapshot.clear()
        assert len(store) == 1

    def test_seed_list_is_copied(self):
        seed = [Product(id=1, name="A")]
        store = ProductStore(seed)
        store.create("B")
        assert len(seed) == 1

    def test_concurrent_creates_get_unique_ids(self):
        store = ProductStore()
        threads = [
            threading.Thread(target=lambda: [store.create("item") for _ in range(50)])
            for _ in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        ids = [p.id for p in store.all()]
        assert len(ids) == 400
        assert sorted(ids) == list(range(1, 401))
