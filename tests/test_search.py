"""Tests for product search, filter chips and search history."""

import pytest

from storefront.models.schemas import SearchFilters, ProductModel
from storefront.services import SearchService
from storefront.services.search_service import (
    add_filter, remove_filter, toggle_filter, clear_filters, matches_filters, sort_products, paginate
)


@pytest.fixture
def search_service(seeded, feed):
    return SearchService(seeded, feed=feed)


class TestFilterChips:
    """Test active filter chip bookkeeping."""

    def test_add_is_idempotent_and_resets_page(self):
        filters = SearchFilters(page=3)
        filters = add_filter(filters, "Red")
        filters = add_filter(filters, "Red")
        assert filters.active_filters == ["Red"]
        assert filters.page == 1

    def test_toggle(self):
        filters = toggle_filter(SearchFilters(), "cotton")
        assert filters.active_filters == ["cotton"]
        assert toggle_filter(filters, "cotton").active_filters == []

    def test_remove_missing_chip(self):
        assert remove_filter(SearchFilters(), "nope").active_filters == []

    def test_clear_keeps_sort_and_page_size(self):
        filters = SearchFilters(
            category="electronics", colors=["Red"], price_range=[10, 20], in_stock_only=True,
            active_filters=["audio"], sort="rating", per_page=5, page=4
        )
        cleared = clear_filters(filters)
        assert cleared.category == ""
        assert cleared.colors == []
        assert cleared.price_range == [0, 1000]
        assert not cleared.in_stock_only
        assert cleared.active_filters == []
        assert (cleared.sort, cleared.per_page, cleared.page) == ("rating", 5, 1)

    def test_invalid_price_range(self):
        with pytest.raises(ValueError):
            SearchFilters(price_range=[50, 10])


class TestPredicates:
    """Test in-memory filtering, sorting and paging."""

    def product(self, **overrides):
        data = {"id": "p", "name": "P", "price": 100.0, "stock": 1, "category": "electronics",
                "colors": ["Red"], "sizes": ["M"], "tags": ["audio"], "rating": 4.0}
        data.update(overrides)
        return ProductModel(**data)

    def test_price_range_uses_sale_price(self):
        product = self.product(sale_price=40.0)
        assert matches_filters(product, SearchFilters(price_range=[0, 50]))
        assert not matches_filters(self.product(), SearchFilters(price_range=[0, 50]))

    def test_variant_filters_are_case_insensitive(self):
        assert matches_filters(self.product(), SearchFilters(colors=["red", "blue"]))
        assert not matches_filters(self.product(), SearchFilters(sizes=["XL"]))

    def test_every_chip_must_match(self):
        assert matches_filters(self.product(), SearchFilters(active_filters=["Audio", "red"]))
        assert not matches_filters(self.product(), SearchFilters(active_filters=["audio", "cotton"]))

    def test_stock_sale_and_rating(self):
        assert not matches_filters(self.product(stock=0), SearchFilters(in_stock_only=True))
        assert not matches_filters(self.product(), SearchFilters(on_sale_only=True))
        assert not matches_filters(self.product(rating=3.0), SearchFilters(rating=4))

    def test_sort_by_effective_price(self):
        products = [self.product(id="a", price=50), self.product(id="b", price=100, sale_price=10)]
        assert [p.id for p in sort_products(products, "price_asc")] == ["b", "a"]
        assert [p.id for p in sort_products(products, "relevance")] == ["a", "b"]

    def test_paginate(self):
        items, total, page, pages = paginate(list(range(5)), 2, 2)
        assert (items, total, page, pages) == ([2, 3], 5, 2, 3)
        assert paginate([], 0, 10) == ([], 0, 1, 0)


class TestSearch:
    """Test searching the stored catalog."""

    def test_name_match_with_facets(self, search_service):
        result = search_service.search("TEE")
        assert [p.id for p in result.products] == ["p-tee"]
        assert result.total == 1
        assert [c.name for c in result.categories] == ["T-Shirts"]

    def test_shop_facet(self, search_service):
        result = search_service.search("gadget")
        assert result.products == []
        assert [s.id for s in result.shops] == ["shop-b"]

    def test_filters_and_sort(self, search_service):
        result = search_service.search("", SearchFilters(category="electronics", sort="price_asc"))
        assert [p.id for p in result.products] == ["p-speaker", "p-phones"]

    def test_chips(self, search_service):
        result = search_service.search("", SearchFilters(active_filters=["audio", "red"]))
        assert [p.id for p in result.products] == ["p-speaker"]

    def test_paging(self, search_service):
        result = search_service.search("", SearchFilters(sort="price_asc", per_page=3, page=2))
        assert result.total == 4
        assert result.page_count == 2
        assert [p.id for p in result.products] == ["p-phones"]

    def test_signed_in_history(self, search_service, feed):
        search_service.search("  Polo ", user_id="user-1")
        search_service.search("polo", user_id="user-1")
        history = search_service.get_recent_searches("user-1")
        assert [h.query for h in history] == ["polo"]
        assert "search_history" in feed.tables()

    def test_empty_query_is_not_remembered(self, search_service):
        search_service.search("", user_id="user-1")
        assert search_service.get_recent_searches("user-1") == []

    def test_delete_and_clear_history(self, search_service):
        saved = search_service.save_search("user-1", "tee")
        search_service.save_search("user-1", "polo")
        assert search_service.delete_search("user-1", saved.id)
        assert not search_service.delete_search("user-1", saved.id)
        assert search_service.clear_search_history("user-1") == 1
        assert search_service.get_recent_searches("user-1") == []

    def test_guest_history(self, search_service):
        for term in ["one", "two", "One"]:
            search_service.search(term, guest_id="guest-1")
        assert search_service.get_guest_history("guest-1") == ["one", "two"]
        search_service.clear_guest_history("guest-1")
        assert search_service.get_guest_history("guest-1") == []

    def test_guest_history_is_capped(self, search_service):
        for i in range(12):
            search_service.add_guest_search("guest-1", f"term {i}")
        history = search_service.get_guest_history("guest-1")
        assert len(history) == 10
        assert history[0] == "term 11"

    def test_popular_searches(self, search_service):
        assert search_service.get_popular_searches() == ["smartphone", "headphones", "laptop", "watch", "camera"]
        search_service.search("polo")
        search_service.search("polo")
        search_service.search("tee")
        assert search_service.get_popular_searches(2) == ["polo", "tee"]
