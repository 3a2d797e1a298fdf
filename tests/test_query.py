"""Unit tests for the ScopedQuery handle."""

from __future__ import annotations

import pytest

from campaign_data.core.errors import ValidationError
from campaign_data.repositories.filters import FieldPath, Operator
from campaign_data.repositories.query import (
    AggregateFunc,
    ScopedQuery,
    avg,
    count,
    parse_direction,
    sum_,
)


@pytest.fixture
def base() -> ScopedQuery:
    return ScopedQuery(entity="municipalities", tenant_id="tenant-a")


class TestScopedQuery:
    """Tests for the generative query builder."""

    def test_methods_return_new_handles(self, base: ScopedQuery) -> None:
        narrowed = base.filter({"population": {"gt": 10}})
        assert base.predicates == ()
        assert narrowed.predicates[0].op is Operator.GT
        assert narrowed.entity == base.entity
        assert narrowed.tenant_id == base.tenant_id

    def test_filters_accumulate(self, base: ScopedQuery) -> None:
        query = base.filter({"name": "Alpha"}).filter({"population": 100})
        assert [str(p.field) for p in query.predicates] == ["name", "population"]

    def test_where_any_adds_or_group(self, base: ScopedQuery) -> None:
        query = base.where_any({"name": "Alpha"}, {"population": {"gte": 500}})
        assert len(query.alternatives) == 1
        assert len(query.alternatives[0]) == 2

    def test_where_any_requires_arguments(self, base: ScopedQuery) -> None:
        with pytest.raises(ValidationError):
            base.where_any()

    @pytest.mark.parametrize("n", [0, -1, True, "5"])
    def test_limit_validation(self, base: ScopedQuery, n) -> None:
        with pytest.raises(ValidationError):
            base.limit(n)

    def test_offset_validation(self, base: ScopedQuery) -> None:
        assert base.offset(0).row_offset == 0
        with pytest.raises(ValidationError):
            base.offset(-1)

    def test_field_paths_cover_every_reference(self, base: ScopedQuery) -> None:
        query = (
            base.filter({"name": "x"})
            .where_any({"geometry.type": "Polygon"})
            .order_by("population", "desc")
            .columns("id", "area_km2")
        )
        assert {str(p) for p in query.field_paths()} == {
            "name",
            "geometry.type",
            "population",
            "id",
            "area_km2",
        }


class TestAggregates:
    """Tests for aggregate helpers and grouped-query validation."""

    def test_default_labels(self) -> None:
        assert count().label == "count"
        assert sum_("population").label == "sum_population"
        assert avg("address.lat").label == "avg_address_lat"
        assert count().func is AggregateFunc.COUNT

    def test_custom_label(self) -> None:
        assert sum_("population", label="total").label == "total"

    def test_dotted_label_rejected(self) -> None:
        with pytest.raises(ValidationError):
            sum_("population", label="a.b")

    def test_grouped_order_must_use_output_names(self, base: ScopedQuery) -> None:
        query = base.group_by("region_id").aggregate(count()).order_by("population")
        with pytest.raises(ValidationError):
            query.validate()

    def test_grouped_order_by_label_is_valid(self, base: ScopedQuery) -> None:
        base.group_by("region_id").aggregate(count(label="n")).order_by("n", "desc").validate()

    def test_columns_cannot_mix_with_grouping(self, base: ScopedQuery) -> None:
        with pytest.raises(ValidationError):
            base.columns("name").aggregate(count()).validate()

    def test_duplicate_output_names(self, base: ScopedQuery) -> None:
        with pytest.raises(ValidationError):
            base.aggregate(count(), count()).validate()

    def test_aggregate_rejects_other_objects(self, base: ScopedQuery) -> None:
        with pytest.raises(ValidationError):
            base.aggregate("count(*)")


class TestDirection:
    """Tests for order direction parsing."""

    @pytest.mark.parametrize("value, descending", [("asc", False), ("desc", True), ("DESC", True)])
    def test_valid(self, value, descending) -> None:
        assert parse_direction(value) is descending

    @pytest.mark.parametrize("value", ["up", "", None])
    def test_invalid(self, value) -> None:
        with pytest.raises(ValidationError):
            parse_direction(value)

    def test_field_path_in_ordering(self, base: ScopedQuery) -> None:
        assert base.order_by("address.city").orderings[0].field == FieldPath("address", ("city",))
