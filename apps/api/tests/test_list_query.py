"""List query building, date bound and pagination tests."""

from __future__ import annotations

import math
import unittest
from datetime import UTC, datetime

from lifelog.domain.list_query import (
    ArrayContains,
    ArrayOverlaps,
    Contains,
    DateFrom,
    DateTo,
    Exact,
    Flag,
    NumberMax,
    NumberMin,
    Pagination,
    Search,
    Year,
    build_list_query,
    default_sort,
    parse_date_bound,
)
from lifelog.errors import ValidationError
from lifelog.repositories.base import AnyOf, Condition, SortKey


class DateBoundTests(unittest.TestCase):
    def test_date_only_lower_bound_starts_at_midnight_utc(self) -> None:
        self.assertEqual(parse_date_bound("2024-03-05"), datetime(2024, 3, 5, tzinfo=UTC))

    def test_date_only_upper_bound_ends_at_last_millisecond(self) -> None:
        self.assertEqual(
            parse_date_bound("2024-03-05", end_of_day=True),
            datetime(2024, 3, 5, 23, 59, 59, 999_000, tzinfo=UTC),
        )

    def test_full_timestamps_are_kept_and_normalized_to_utc(self) -> None:
        self.assertEqual(
            parse_date_bound("2024-03-05T10:30:00+02:00", end_of_day=True),
            datetime(2024, 3, 5, 8, 30, tzinfo=UTC),
        )
        self.assertEqual(parse_date_bound("2024-03-05T10:30:00"), datetime(2024, 3, 5, 10, 30, tzinfo=UTC))

    def test_malformed_date_is_a_validation_error(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            parse_date_bound("05/03/2024", param="startDate")
        self.assertEqual(ctx.exception.status_code, 400)


class FilterSpecTests(unittest.TestCase):
    def test_absent_and_blank_parameters_add_no_filters(self) -> None:
        specs = [
            Exact("category", "category"),
            Contains("type", "type"),
            DateFrom("startDate", "date"),
            NumberMin("minAmount", "amount"),
            ArrayContains("tags", "tags"),
            Flag("publicOnly", "is_public"),
        ]
        params = {"category": "", "type": "   ", "tags": ","}

        for spec in specs:
            self.assertEqual(spec.filters(params), [])

    def test_exact_widens_to_membership_for_repeated_keys(self) -> None:
        spec = Exact("category", "category")

        self.assertEqual(spec.filters({"category": "food"}), [Condition("category", "eq", "food")])
        self.assertEqual(
            spec.filters({"category": ["food", "rent"]}),
            [Condition("category", "in", ["food", "rent"])],
        )

    def test_contains_escapes_like_wildcards(self) -> None:
        self.assertEqual(
            Contains("name", "name").filters({"name": "50%_off"}),
            [Condition("name", "ilike", "%50\\%\\_off%")],
        )

    def test_search_matches_any_listed_column(self) -> None:
        self.assertEqual(
            Search("searchTitle", ("title", "notes")).filters({"searchTitle": "dune"}),
            [AnyOf((Condition("title", "ilike", "%dune%"), Condition("notes", "ilike", "%dune%")))],
        )

    def test_numeric_ranges_are_inclusive_and_validated(self) -> None:
        self.assertEqual(NumberMin("minAmount", "amount").filters({"minAmount": "10.5"}), [Condition("amount", "gte", 10.5)])
        self.assertEqual(NumberMax("maxAmount", "amount").filters({"maxAmount": "99"}), [Condition("amount", "lte", 99.0)])
        with self.assertRaises(ValidationError):
            NumberMin("minAmount", "amount").filters({"minAmount": "ten"})
        with self.assertRaises(ValidationError):
            NumberMin("minRating", "rating", integer=True).filters({"minRating": "3.5"})

    def test_array_filters_accept_comma_lists_and_repeated_keys(self) -> None:
        self.assertEqual(
            ArrayContains("tags", "tags").filters({"tags": "a, b"}),
            [Condition("tags", "contains", ["a", "b"])],
        )
        self.assertEqual(
            ArrayOverlaps("tags", "tags").filters({"tags": ["a", "b,c"]}),
            [Condition("tags", "overlaps", ["a", "b", "c"])],
        )

    def test_flag_only_applies_for_true(self) -> None:
        spec = Flag("publicOnly", "is_public")

        self.assertEqual(spec.filters({"publicOnly": "true"}), [Condition("is_public", "eq", True)])
        self.assertEqual(spec.filters({"publicOnly": "false"}), [])

    def test_year_is_a_half_open_calendar_window(self) -> None:
        self.assertEqual(
            Year("year", "date").filters({"year": "2023"}),
            [
                Condition("date", "gte", datetime(2023, 1, 1, tzinfo=UTC)),
                Condition("date", "lt", datetime(2024, 1, 1, tzinfo=UTC)),
            ],
        )
        with self.assertRaises(ValidationError):
            Year("year", "date").filters({"year": "twenty"})


class BuildListQueryTests(unittest.TestCase):
    def test_owner_predicate_comes_first_then_declared_filters(self) -> None:
        query = build_list_query(
            "owner-1",
            {"category": "food", "startDate": "2024-01-01", "endDate": "2024-01-31"},
            [DateFrom("startDate", "date"), DateTo("endDate", "date"), Exact("category", "category")],
            default_sort("date"),
        )

        self.assertEqual(
            query.filters,
            (
                Condition("user_id", "eq", "owner-1"),
                Condition("date", "gte", datetime(2024, 1, 1, tzinfo=UTC)),
                Condition("date", "lte", datetime(2024, 1, 31, 23, 59, 59, 999_000, tzinfo=UTC)),
                Condition("category", "eq", "food"),
            ),
        )
        self.assertEqual(query.order_by, (SortKey("date", True), SortKey("created_at", True)))

    def test_owner_predicate_cannot_be_overridden_by_parameters(self) -> None:
        query = build_list_query("owner-1", {"user_id": "owner-2"}, [], default_sort("date"))

        self.assertEqual(query.filters, (Condition("user_id", "eq", "owner-1"),))


class PaginationTests(unittest.TestCase):
    def test_defaults_apply_for_absent_malformed_and_non_positive_values(self) -> None:
        self.assertEqual(Pagination.from_params({}), Pagination(page=1, limit=10))
        self.assertEqual(Pagination.from_params({"page": "abc", "limit": "x"}), Pagination(page=1, limit=10))
        self.assertEqual(Pagination.from_params({"page": "0", "limit": "-5"}), Pagination(page=1, limit=10))
        self.assertEqual(Pagination.from_params({"page": "3", "limit": "25"}), Pagination(page=3, limit=25))

    def test_offset_follows_page_and_limit(self) -> None:
        self.assertEqual(Pagination(page=1, limit=10).offset, 0)
        self.assertEqual(Pagination(page=4, limit=7).offset, 21)

    def test_total_pages_has_a_floor_of_one(self) -> None:
        for total in (0, 1, 9, 10, 11, 57, 100):
            for limit in (1, 3, 10, 50):
                with self.subTest(total=total, limit=limit):
                    expected = max(1, math.ceil(total / limit))
                    self.assertEqual(Pagination(limit=limit).total_pages(total), expected)


if __name__ == "__main__":
    unittest.main()
