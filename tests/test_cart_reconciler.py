"""
Tests for cart reconciliation against the catalog.

A fake catalog client stands in for the API so tests can control which
products exist and when each fetch resolves.
"""
import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from common.exceptions import NotFoundError, CatalogUnavailableError
from modules.cart.events import CartEvents
from modules.cart.reconciler import CartReconciler, CartDisplay
from modules.cart.storage import MemoryStorage
from modules.cart.store import CartStore, CartEntry
from modules.catalog.client import CatalogClient

KEY = "test-cart"


class FakeCatalog:
    """Answers get_product from a dict; ids listed in `gates` wait for their event."""

    def __init__(self, products=None):
        self.products = dict(products or {})
        self.gates = {}
        self.calls = []
        self.failures = {}

    async def get_product(self, pid):
        self.calls.append(pid)
        gate = self.gates.get(pid)
        if gate is not None:
            await gate.wait()
        if pid in self.failures:
            raise self.failures[pid]
        if pid not in self.products:
            raise NotFoundError("Product not found.")
        return dict(self.products[pid])


def product(pid, price="10.00", name=None):
    return {"pid": pid, "catid": 1, "name": name or f"Drink {pid}", "price": price,
            "description": "", "image_path": None, "thumb_path": f"/uploads/thumb/{pid}_thumb.jpg"}


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return CartStore(storage, key=KEY)


@pytest.fixture
def events_log():
    return []


def make_cart(store, catalog, events_log):
    display = CartDisplay()
    events = CartEvents()
    events.subscribe(events_log.append)
    return CartReconciler(store, catalog, view=display, events=events), display


class TestRender:

    @pytest.mark.asyncio
    async def test_missing_product_is_dropped_and_persisted(self, storage, store, events_log):
        store.set_quantity(5, 2)
        store.set_quantity(9, 1)
        cart, display = make_cart(store, FakeCatalog({5: product(5)}), events_log)

        snapshot = await cart.render()

        assert json.loads(storage.get_item(KEY)) == {"5": 2}
        assert [line.product_id for line in snapshot.lines] == [5]
        assert events_log[-1].total_quantity == 2
        assert events_log[-1].line_count == 1

    @pytest.mark.asyncio
    async def test_total_is_price_times_quantity(self, store, events_log):
        store.set_quantity(3, 2)
        cart, display = make_cart(store, FakeCatalog({3: product(3, "20.00")}), events_log)

        snapshot = await cart.render()

        assert snapshot.total == Decimal("40.00")
        assert snapshot.total_text == "$40.00"
        assert display.total_text == "$40.00"
        assert display.count == 2

    @pytest.mark.asyncio
    async def test_total_across_lines(self, store, events_log):
        store.set_quantity(1, 3)
        store.set_quantity(2, 1)
        catalog = FakeCatalog({1: product(1, "1.10"), 2: product(2, 2.5)})
        cart, display = make_cart(store, catalog, events_log)

        snapshot = await cart.render()

        assert snapshot.total_text == "$5.80"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_price", ["-4.00", "abc", None, "NaN", "Infinity"])
    async def test_unusable_price_counts_as_zero(self, store, events_log, bad_price):
        store.set_quantity(1, 2)
        store.set_quantity(2, 1)
        catalog = FakeCatalog({1: product(1, bad_price), 2: product(2, "3.00")})
        cart, display = make_cart(store, catalog, events_log)

        snapshot = await cart.render()

        assert snapshot.total_text == "$3.00"
        assert len(snapshot.lines) == 2

    @pytest.mark.asyncio
    async def test_huge_total_still_renders(self, store, events_log):
        store.set_quantity(1, 999)
        cart, display = make_cart(store, FakeCatalog({1: product(1, "1e26")}), events_log)

        snapshot = await cart.render()

        assert snapshot.total_text == f"${999 * 10 ** 26}.00"
        assert display.total_text == snapshot.total_text
        assert display.rows()[0]["price_text"] == f"${10 ** 26}.00 each"

    @pytest.mark.asyncio
    async def test_empty_cart_renders_zero_and_notifies(self, store, events_log):
        cart, display = make_cart(store, FakeCatalog(), events_log)

        snapshot = await cart.render()

        assert snapshot.lines == []
        assert display.total_text == "$0.00"
        assert display.message == CartDisplay.EMPTY_MESSAGE
        assert events_log[-1].line_count == 0
        assert events_log[-1].total_quantity == 0

    @pytest.mark.asyncio
    async def test_all_products_gone_renders_empty(self, storage, store, events_log):
        store.set_quantity(4, 1)
        store.set_quantity(6, 2)
        cart, display = make_cart(store, FakeCatalog(), events_log)

        await cart.render()

        assert store.load() == {}
        assert display.total_text == "$0.00"
        assert display.lines == []
        assert events_log[-1].total_quantity == 0

    @pytest.mark.asyncio
    async def test_transport_failure_also_drops_line(self, store, events_log):
        store.set_quantity(1, 1)
        store.set_quantity(2, 1)
        catalog = FakeCatalog({1: product(1), 2: product(2)})
        catalog.failures[2] = CatalogUnavailableError("Catalog is unavailable.")
        cart, display = make_cart(store, catalog, events_log)

        await cart.render()

        assert store.load() == {1: 1}

    @pytest.mark.asyncio
    async def test_lines_are_ordered_by_product_id(self, store, events_log):
        for pid in (30, 4, 17):
            store.add_item(pid)
        catalog = FakeCatalog({pid: product(pid) for pid in (30, 4, 17)})
        cart, display = make_cart(store, catalog, events_log)

        await cart.render()

        assert [line.product_id for line in display.lines] == [4, 17, 30]
        assert [row["pid"] for row in display.rows()] == [4, 17, 30]
        assert display.rows()[0]["price_text"] == "$10.00 each"


class TestStaleRenders:

    @pytest.mark.asyncio
    async def test_older_render_resolving_late_is_discarded(self, store, events_log):
        store.set_quantity(1, 1)
        catalog = FakeCatalog({1: product(1, "5.00"), 2: product(2, "7.00")})
        catalog.gates[1] = asyncio.Event()
        cart, display = make_cart(store, catalog, events_log)

        first = asyncio.ensure_future(cart.render())
        await asyncio.sleep(0)  # let the first render block on product 1

        store.remove_item(1)
        store.set_quantity(2, 3)
        second = await cart.render()

        catalog.gates[1].set()
        assert await first is None

        assert second.total_text == "$21.00"
        assert [line.product_id for line in display.lines] == [2]
        assert display.total_text == "$21.00"
        assert display.count == 3
        assert len(events_log) == 1
        assert events_log[0].items == [CartEntry(2, 3)]


class TestProductCache:

    @pytest.mark.asyncio
    async def test_concurrent_fetches_share_one_request(self, store, events_log):
        catalog = FakeCatalog({1: product(1)})
        catalog.gates[1] = asyncio.Event()
        cart, _ = make_cart(store, catalog, events_log)

        a = asyncio.ensure_future(cart.fetch_product(1))
        b = asyncio.ensure_future(cart.fetch_product(1))
        await asyncio.sleep(0)
        catalog.gates[1].set()

        assert (await a)["pid"] == (await b)["pid"] == 1
        assert catalog.calls == [1]

    @pytest.mark.asyncio
    async def test_completed_fetch_is_reused(self, store, events_log):
        store.set_quantity(1, 1)
        catalog = FakeCatalog({1: product(1)})
        cart, _ = make_cart(store, catalog, events_log)

        await cart.render()
        await cart.render()

        assert catalog.calls == [1]

    @pytest.mark.asyncio
    async def test_failed_fetch_is_evicted_for_retry(self, store, events_log):
        catalog = FakeCatalog()
        cart, _ = make_cart(store, catalog, events_log)

        with pytest.raises(NotFoundError):
            await cart.fetch_product(4)
        catalog.products[4] = product(4)

        assert (await cart.fetch_product(4))["pid"] == 4
        assert catalog.calls == [4, 4]

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self, store, events_log):
        catalog = FakeCatalog({1: product(1, "1.00")})
        cart, _ = make_cart(store, catalog, events_log)

        await cart.fetch_product(1)
        catalog.products[1] = product(1, "2.00")
        cart.invalidate(1)

        assert (await cart.fetch_product(1))["price"] == "2.00"
        cart.invalidate()
        await cart.fetch_product(1)
        assert catalog.calls == [1, 1, 1]


class TestActions:

    @pytest.mark.asyncio
    async def test_add_then_adjust(self, store, events_log):
        catalog = FakeCatalog({1: product(1, "2.00")})
        cart, display = make_cart(store, catalog, events_log)

        await cart.add(1, 2)
        await cart.increment(1)
        assert store.get_quantity(1) == 3
        assert display.total_text == "$6.00"

        await cart.decrement(1)
        assert store.get_quantity(1) == 2

        await cart.set_quantity(1, "5")
        assert display.total_text == "$10.00"
        assert cart.get_total_quantity() == 5
        assert cart.get_items() == [CartEntry(1, 5)]

    @pytest.mark.asyncio
    async def test_decrement_from_one_removes(self, store, events_log):
        store.set_quantity(1, 1)
        cart, display = make_cart(store, FakeCatalog({1: product(1)}), events_log)

        await cart.decrement(1)

        assert store.load() == {}
        assert display.message == CartDisplay.EMPTY_MESSAGE

    @pytest.mark.asyncio
    async def test_remove_and_clear(self, store, events_log):
        catalog = FakeCatalog({1: product(1), 2: product(2)})
        cart, display = make_cart(store, catalog, events_log)
        await cart.add(1)
        await cart.add(2)

        await cart.remove(1)
        assert cart.get_items() == [CartEntry(2, 1)]

        await cart.clear()
        assert cart.get_items() == []
        assert events_log[-1].total_quantity == 0

    @pytest.mark.asyncio
    async def test_every_action_notifies(self, store, events_log):
        cart, _ = make_cart(store, FakeCatalog({1: product(1)}), events_log)

        await cart.add(1)
        await cart.increment(1)
        await cart.refresh()

        assert [e.total_quantity for e in events_log] == [1, 2, 2]


class TestNotifications:

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self, store):
        received = []
        events = CartEvents()
        unsubscribe = events.subscribe(received.append)
        cart = CartReconciler(store, FakeCatalog(), events=events)

        await cart.render()
        unsubscribe()
        await cart.render()

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_broken_listener_does_not_block_others(self, store):
        received = []
        events = CartEvents()

        def broken(event):
            raise RuntimeError("boom")

        events.subscribe(broken)
        events.subscribe(received.append)
        cart = CartReconciler(store, FakeCatalog(), events=events)

        await cart.render()

        assert len(received) == 1


class TestWithHttpCatalog:

    @pytest.mark.asyncio
    async def test_404_from_api_self_heals_cart(self, storage, store, events_log):
        def handler(request: httpx.Request):
            if request.url.path == "/api/products/5":
                return httpx.Response(200, json=product(5, "3.25"))
            return httpx.Response(404, json={"detail": "Product not found."})

        store.set_quantity(5, 2)
        store.set_quantity(9, 1)
        async with CatalogClient("http://catalog.test", transport=httpx.MockTransport(handler)) as client:
            cart, display = make_cart(store, client, events_log)
            snapshot = await cart.render()

        assert json.loads(storage.get_item(KEY)) == {"5": 2}
        assert snapshot.total_text == "$6.50"
        assert events_log[-1].total_quantity == 2
