"""Tests for tree statistics and genealogy date handling."""

import os
import sys
from datetime import date

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import Person
from tree_stats import calculate_age, compute_statistics, format_lifespan, parse_genealogy_date


class TestDates:
    @pytest.mark.parametrize("value,expected", [
        ("1850-03-15", date(1850, 3, 15)),
        ("15 MAR 1850", date(1850, 3, 15)),
        ("Mar 1850", date(1850, 3, 1)),
        ("1850", date(1850, 1, 1)),
        ("ABT 1850", date(1850, 1, 1)),
        ("est. 2 jan 1850", date(1850, 1, 2)),
    ])
    def test_supported_forms(self, value, expected):
        assert parse_genealogy_date(value) == expected

    @pytest.mark.parametrize("value", [None, "", "BEF 1850", "BET 1850 AND 1860", "31 FEB 1850", "spring"])
    def test_unusable_dates(self, value):
        assert parse_genealogy_date(value) is None


class TestAges:
    def test_format_lifespan(self):
        assert format_lifespan(0) == "0 years, 0 months"
        assert format_lifespan(845) == "70 years, 5 months"

    def test_age_at_death(self):
        assert calculate_age("1920-01-01", "1990-07-01") == "70 years, 6 months"

    def test_age_of_the_living(self):
        assert calculate_age("1980-06-01", today=date(2020, 5, 31)) == "39 years, 11 months"

    def test_unknown_dates(self):
        assert calculate_age(None) == "N/A"
        assert calculate_age("1900", "sometime") == "N/A"


class TestStatistics:
    def test_family_statistics(self, people):
        stats = compute_statistics(people, today=date(2024, 1, 1))
        assert stats.total_people == 10
        assert stats.male_count == 4
        assert stats.female_count == 5
        # George 846 months, Grace 936 months
        assert stats.average_lifespan == "74 years, 3 months"
        assert stats.oldest_living_person.id == "dad"
        assert stats.oldest_person_ever.id == "gm"

    def test_empty_tree(self):
        stats = compute_statistics([])
        assert stats.total_people == 0
        assert stats.average_lifespan == "0 years, 0 months"
        assert stats.oldest_living_person is None
        assert stats.oldest_person_ever is None

    def test_people_without_dates_are_counted_only(self):
        stats = compute_statistics([Person(id="a", first_name="A")])
        assert stats.total_people == 1
        assert stats.oldest_person_ever is None
