"""Unit tests for row normalization."""

import pytest

from geocode_jobs.models import NormalizedRow, Sex
from geocode_jobs.normalize import normalize_birth, normalize_rows, normalize_sex


@pytest.mark.parametrize(
    "value,expected",
    [
        ("male", Sex.male),
        ("M", Sex.male),
        (" Female ", Sex.female),
        ("f", Sex.female),
        ("x", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_sex(value, expected):
    """Test sex aliases are matched case-insensitively."""
    assert normalize_sex(value) == expected


@pytest.mark.parametrize(
    "value,expected",
    [
        ("1990-05-01", "1990-05-01"),
        (" 1990-05-01 ", "1990-05-01"),
        ("1990/05/01", None),
        ("May 1 1990", None),
        ("90-5-1", None),
        (None, None),
    ],
)
def test_normalize_birth(value, expected):
    """Test malformed birth dates become None rather than errors."""
    assert normalize_birth(value) == expected


def test_normalize_rows_tokyo_station():
    """Test the canonical upload row."""
    rows = normalize_rows([{"address": "Tokyo Station", "birth": "1990-05-01", "sex": "F"}])

    assert rows == [NormalizedRow("Tokyo Station", "1990-05-01", Sex.female)]


def test_normalize_rows_drops_blank_addresses_and_keeps_order():
    """Test rows without an address are dropped and order is preserved."""
    rows = normalize_rows(
        [
            {"address": "  Osaka  "},
            {"address": "   ", "sex": "x"},
            {"birth": "2000-01-01"},
            {"address": "Kyoto", "sex": "m"},
        ]
    )

    assert [r.address for r in rows] == ["Osaka", "Kyoto"]
    assert rows[1].sex == Sex.male
    assert rows[0].sex is None


def test_normalize_rows_all_blank():
    """Test a batch with only a blank address normalizes to nothing."""
    assert normalize_rows([{"address": "  ", "sex": "x"}]) == []
