"""Unit tests for normalization helpers."""
from utils.text import format_title, normalize_key, normalize_list, split_csv


def test_normalize_key_trims_and_lowercases():
    assert normalize_key("  Seattle ") == "seattle"
    assert normalize_key("seattle") == "seattle"


def test_normalize_key_none_is_empty():
    assert normalize_key(None) == ""


def test_normalize_list_drops_blanks_and_duplicates():
    assert normalize_list(["Lumber", " lumber ", "", None, "Concrete"]) == ["lumber", "concrete"]


def test_split_csv_string():
    """Service areas are typed as one comma-separated field."""
    assert split_csv("Austin, 78701,, Dallas ") == ["austin", "78701", "dallas"]


def test_split_csv_accepts_list():
    assert split_csv(["Austin", " DALLAS"]) == ["austin", "dallas"]


def test_split_csv_none():
    assert split_csv(None) == []


def test_format_title():
    assert format_title("general construction") == "General Construction"
    assert format_title("") == ""
    assert format_title(None) == ""
