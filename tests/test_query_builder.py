"""
Tests for faceted search query construction and execution.
"""
import pytest

from isuumo.errors import InvalidInput
from isuumo.services import bulk_loader, chairs, estates
from isuumo.services.query_builder import (
    build_chair_search,
    build_estate_search,
    parse_pagination,
)

from tests.factories import chair_row, estate_row, to_csv


def compiled(statement):
    compiled_statement = statement.compile()
    return str(compiled_statement), compiled_statement.params


# =====================================================
# UNIT TESTS: Statement construction
# =====================================================

class TestChairSearchConstruction:

    def test_bucket_id_is_bound(self, chair_condition):
        query = build_chair_search({"priceRangeId": "1", "page": "0", "perPage": "10"}, chair_condition)
        sql, params = compiled(query.select_statement)
        assert "chair.price_range = :price_range_1" in sql
        assert params["price_range_1"] == 1

    def test_categorical_values_are_bound(self, chair_condition):
        hostile = "黒' OR '1'='1"
        query = build_chair_search(
            {"color": hostile, "kind": "座椅子", "page": "0", "perPage": "10"}, chair_condition
        )
        sql, params = compiled(query.count_statement)
        assert hostile not in sql
        assert hostile in params.values()
        assert "座椅子" in params.values()

    def test_each_feature_is_a_separate_clause(self, chair_condition):
        query = build_chair_search(
            {"features": "肘掛け,キャスター", "page": "0", "perPage": "10"}, chair_condition
        )
        sql, params = compiled(query.select_statement)
        assert sql.count("LIKE") == 2
        assert {"肘掛け", "キャスター"} <= set(params.values())

    def test_in_stock_restriction_added(self, chair_condition):
        query = build_chair_search({"kind": "座椅子", "page": "0", "perPage": "10"}, chair_condition)
        sql, _ = compiled(query.count_statement)
        assert "chair.in_stock IS" in sql

    def test_ordering_and_pagination(self, chair_condition):
        query = build_chair_search({"kind": "座椅子", "page": "3", "perPage": "25"}, chair_condition)
        sql, params = compiled(query.select_statement)
        assert "ORDER BY chair.popularity_m ASC, chair.id ASC" in sql
        assert query.offset == 75
        assert 25 in params.values()
        assert 75 in params.values()

    def test_count_and_select_share_predicate(self, chair_condition):
        query = build_chair_search(
            {"heightRangeId": "2", "color": "白", "page": "0", "perPage": "5"}, chair_condition
        )
        count_sql, _ = compiled(query.count_statement)
        select_sql, _ = compiled(query.select_statement)
        assert count_sql.startswith("SELECT count(*)")
        assert count_sql.split("WHERE")[1].strip() == select_sql.split("WHERE")[1].split("ORDER BY")[0].strip()

    def test_no_facet_rejected(self, chair_condition):
        with pytest.raises(InvalidInput):
            build_chair_search({"page": "0", "perPage": "10"}, chair_condition)

    def test_empty_facet_values_do_not_count(self, chair_condition):
        with pytest.raises(InvalidInput):
            build_chair_search({"color": "", "kind": "", "page": "0", "perPage": "10"}, chair_condition)

    @pytest.mark.parametrize("raw", ["4", "-1", "abc"])
    def test_bad_bucket_id_rejected(self, chair_condition, raw):
        with pytest.raises(InvalidInput):
            build_chair_search({"widthRangeId": raw, "page": "0", "perPage": "10"}, chair_condition)


class TestEstateSearchConstruction:

    def test_estate_facets(self, estate_condition):
        query = build_estate_search(
            {"doorHeightRangeId": "1", "rentRangeId": "3", "features": "最上階",
             "page": "0", "perPage": "20"},
            estate_condition,
        )
        sql, params = compiled(query.select_statement)
        assert "estate.door_height_range = " in sql
        assert "estate.rent_range = " in sql
        assert 3 in params.values()
        assert "in_stock" not in sql

    def test_chair_facets_not_recognized_for_estates(self, estate_condition):
        with pytest.raises(InvalidInput):
            build_estate_search({"color": "黒", "page": "0", "perPage": "20"}, estate_condition)


class TestPagination:

    @pytest.mark.parametrize(
        "params",
        [{"perPage": "10"}, {"page": "0"}, {"page": "-1", "perPage": "10"},
         {"page": "0", "perPage": "0"}, {"page": "x", "perPage": "10"}],
    )
    def test_invalid_pagination(self, params):
        with pytest.raises(InvalidInput):
            parse_pagination(params)

    def test_per_page_cap(self):
        assert parse_pagination({"page": "0", "perPage": "100"}, max_per_page=100) == (0, 100)
        with pytest.raises(InvalidInput):
            parse_pagination({"page": "0", "perPage": "101"}, max_per_page=100)


# =====================================================
# INTEGRATION TESTS: Executed searches
# =====================================================

class TestExecutedSearch:

    def test_price_bucket_scenario(self, ctx):
        """Prices 1000..5000 fall in buckets 0,1,1,2,3; bucket 1 is 2000 and 3000."""
        rows = [
            chair_row(i + 1, price=price, popularity=popularity)
            for i, (price, popularity) in enumerate(
                [(1000, 10), (2000, 50), (3000, 90), (4000, 70), (5000, 30)]
            )
        ]
        bulk_loader.load_chairs(ctx, to_csv(rows))

        count, found = chairs.search_chairs(ctx, {"priceRangeId": "1", "page": "0", "perPage": "10"})
        assert count == 2
        # Most popular first
        assert [c.price for c in found] == [3000, 2000]

        count, found = chairs.search_chairs(ctx, {"priceRangeId": "3", "page": "0", "perPage": "10"})
        assert [c.price for c in found] == [5000]

    def test_ties_broken_by_id(self, ctx):
        rows = [chair_row(i, popularity=5) for i in (9, 3, 7)]
        bulk_loader.load_chairs(ctx, to_csv(rows))
        _, found = chairs.search_chairs(ctx, {"kind": "座椅子", "page": "0", "perPage": "10"})
        assert [c.id for c in found] == [3, 7, 9]

    def test_pages_are_stable_and_complete(self, ctx):
        rows = [chair_row(i, popularity=i % 4) for i in range(1, 24)]
        bulk_loader.load_chairs(ctx, to_csv(rows))
        seen = []
        total = None
        for page in range(5):
            count, found = chairs.search_chairs(ctx, {"color": "黒", "page": str(page), "perPage": "5"})
            total = count
            seen.extend(c.id for c in found)
        assert total == 23
        assert len(seen) == 23
        assert sorted(seen) == list(range(1, 24))

    def test_sold_out_chairs_excluded(self, ctx):
        bulk_loader.load_chairs(ctx, to_csv([chair_row(1, stock=0), chair_row(2, stock=1)]))
        count, found = chairs.search_chairs(ctx, {"kind": "座椅子", "page": "0", "perPage": "10"})
        assert count == 1
        assert [c.id for c in found] == [2]

    def test_features_are_anded(self, ctx):
        rows = [
            chair_row(1, features="肘掛け,キャスター"),
            chair_row(2, features="肘掛け"),
            chair_row(3, features="キャスター,リクライニング"),
        ]
        bulk_loader.load_chairs(ctx, to_csv(rows))
        count, found = chairs.search_chairs(
            ctx, {"features": "肘掛け,キャスター", "page": "0", "perPage": "10"}
        )
        assert count == 1
        assert found[0].id == 1

    def test_feature_wildcards_are_literal(self, ctx):
        bulk_loader.load_chairs(ctx, to_csv([chair_row(1, features="肘掛け")]))
        count, _ = chairs.search_chairs(ctx, {"features": "%", "page": "0", "perPage": "10"})
        assert count == 0

    def test_empty_result_is_not_an_error(self, ctx):
        count, found = estates.search_estates(ctx, {"rentRangeId": "0", "page": "0", "perPage": "10"})
        assert count == 0
        assert found == []

    def test_estate_search(self, ctx):
        rows = [
            estate_row(1, rent=40000, door_height=90),
            estate_row(2, rent=40000, door_height=200),
            estate_row(3, rent=120000, door_height=90),
        ]
        bulk_loader.load_estates(ctx, to_csv(rows))
        count, found = estates.search_estates(
            ctx, {"rentRangeId": "0", "doorHeightRangeId": "1", "page": "0", "perPage": "10"}
        )
        assert count == 1
        assert found[0].id == 1
