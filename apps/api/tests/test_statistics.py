"""Statistics grouping and dimension resolution tests."""

from __future__ import annotations

import unittest
from datetime import UTC, datetime

from lifelog.domain.resources import booknote_dimension, diary_dimension, ledger_dimension
from lifelog.domain.statistics import Dimension, Measure, aggregate, month_bucket, year_bucket
from lifelog.errors import ValidationError


def _row(amount: float, category: str, when: datetime, **extra) -> dict:
    return {"amount": amount, "category": category, "subcategory": extra.pop("subcategory", None), "date": when, **extra}


_ROWS = [
    _row(10.0, "food", datetime(2024, 2, 3, tzinfo=UTC)),
    _row(5.556, "food", datetime(2023, 12, 31, tzinfo=UTC)),
    _row(40.0, "rent", datetime(2024, 1, 1, tzinfo=UTC)),
    _row(15.0, "fun", datetime(2024, 2, 20, tzinfo=UTC)),
    _row(25.0, "fun", datetime(2024, 1, 9, tzinfo=UTC)),
]

_AMOUNT = Measure("amount", lambda row: row.get("amount"))


class AggregateTests(unittest.TestCase):
    def test_category_groups_sort_by_descending_total(self) -> None:
        dimension = Dimension("category", lambda row: row["category"], kind="category")

        groups = aggregate(_ROWS, dimension, measure=_AMOUNT)

        self.assertEqual([group.key for group in groups], ["fun", "rent", "food"])
        self.assertEqual(groups[0].count, 2)
        self.assertEqual(groups[0].total, 40.0)
        self.assertEqual(groups[0].average, 20.0)
        self.assertEqual(groups[2].total, 15.56)

    def test_category_ties_break_on_key(self) -> None:
        rows = [{"k": "b", "v": 1}, {"k": "a", "v": 1}]
        dimension = Dimension("k", lambda row: row["k"], kind="category")

        groups = aggregate(rows, dimension, measure=Measure("v", lambda row: row["v"]))

        self.assertEqual([group.key for group in groups], ["a", "b"])

    def test_time_groups_sort_chronologically(self) -> None:
        dimension = Dimension("month", lambda row: month_bucket(row["date"]), kind="time")

        groups = aggregate(_ROWS, dimension, measure=_AMOUNT)

        self.assertEqual([group.key for group in groups], ["2023-12", "2024-01", "2024-02"])
        self.assertEqual([group.total for group in groups], [5.56, 65.0, 25.0])

    def test_label_groups_sort_lexicographically(self) -> None:
        dimension = Dimension("category", lambda row: row["category"], kind="label")

        groups = aggregate(_ROWS, dimension)

        self.assertEqual([group.key for group in groups], ["food", "fun", "rent"])
        self.assertIsNone(groups[0].total)
        self.assertIsNone(groups[0].average)

    def test_breakdowns_count_values_and_skip_blanks(self) -> None:
        rows = [
            {"mood": "calm", "tags": ["work", "gym"]},
            {"mood": "calm", "tags": ["work"]},
            {"mood": "", "tags": []},
            {"mood": "happy", "tags": None},
        ]
        dimension = Dimension("overall", lambda row: "overall")

        groups = aggregate(
            rows,
            dimension,
            breakdowns={"mood": lambda row: [row.get("mood")], "tags": lambda row: row.get("tags") or []},
        )

        self.assertEqual(len(groups), 1)
        self.assertEqual(groups[0].count, 4)
        self.assertEqual(
            groups[0].breakdowns,
            {
                "mood": [{"value": "calm", "count": 2}, {"value": "happy", "count": 1}],
                "tags": [{"value": "work", "count": 2}, {"value": "gym", "count": 1}],
            },
        )

    def test_empty_input_yields_no_groups(self) -> None:
        self.assertEqual(aggregate([], Dimension("total", lambda row: "total"), measure=_AMOUNT), [])

    def test_buckets_accept_strings_and_missing_values(self) -> None:
        self.assertEqual(year_bucket("2022-07-01T00:00:00+00:00"), "2022")
        self.assertEqual(month_bucket(None), "unknown")


class DimensionResolutionTests(unittest.TestCase):
    def test_ledger_dimensions(self) -> None:
        self.assertEqual(ledger_dimension({}).name, "total")
        self.assertEqual(ledger_dimension({"categoryType": "category"}).kind, "category")
        self.assertEqual(ledger_dimension({"period": "year"}).kind, "time")

        combined = ledger_dimension({"period": "month", "categoryType": "categoryAndSubcategory"})
        self.assertEqual(combined.kind, "time")
        self.assertEqual(
            combined.key({"date": datetime(2024, 5, 2, tzinfo=UTC), "category": "food", "subcategory": None}),
            "2024-05 - food - unknown",
        )

    def test_unknown_dimension_values_are_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            ledger_dimension({"period": "week"})
        with self.assertRaises(ValidationError):
            booknote_dimension({"groupByField": "isbn"})

    def test_booknote_and_diary_defaults(self) -> None:
        self.assertEqual(booknote_dimension({}).name, "category")
        self.assertEqual(booknote_dimension({"groupByField": "readMonth"}).kind, "time")
        self.assertEqual(diary_dimension({}).name, "overall")
        self.assertEqual(diary_dimension({"period": "day"}).kind, "time")


if __name__ == "__main__":
    unittest.main()
