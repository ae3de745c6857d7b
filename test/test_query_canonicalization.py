"""Tests for printing typed trees back to canonical query text."""

from datetime import datetime, timezone

import pytest
from detect.query import KnownResult, NotExpr, parse_query, to_canonical_string

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def test_canonical_simple() -> None:
    """Test canonical spellings of selector, operator and value."""
    assert to_canonical_string(parse_query("EXT eq rs")) == 'ext == "rs"'


def test_canonical_size_is_bytes() -> None:
    """Test that sizes print as byte counts."""
    expr = parse_query("EXT eq rs and size gt 1kb")
    assert to_canonical_string(expr) == 'ext == "rs" && size > 1024'


def test_canonical_parenthesizes_nested_or() -> None:
    """Test that an OR inside an AND keeps its parentheses."""
    expr = parse_query("(ext == rs OR ext == toml) AND NOT path ~= test")
    assert to_canonical_string(expr) == (
        '(ext == "rs" || ext == "toml") && !path ~= "test"'
    )


def test_canonical_drops_redundant_parentheses() -> None:
    """Test that parentheses around a lone predicate are dropped."""
    assert to_canonical_string(parse_query("((dir))")) == "type == dir"


def test_canonical_negated_group() -> None:
    """Test that a negated group keeps its parentheses."""
    expr = parse_query("!(ext == a || ext == b)")
    assert to_canonical_string(expr) == '!(ext == "a" || ext == "b")'


def test_canonical_bare_glob() -> None:
    """Test that a bare glob prints as an explicit glob predicate."""
    assert to_canonical_string(parse_query("*.rs")) == 'name glob "*.rs"'


def test_canonical_escapes_strings() -> None:
    """Test that quotes and backslashes are escaped."""
    expr = parse_query(r'content contains "say \"hi\"\n"')
    assert to_canonical_string(expr) == r'content contains "say \"hi\"\n"'


def test_canonical_structured() -> None:
    """Test structured selectors keep their path and literal."""
    assert to_canonical_string(parse_query("yaml:.a[*].b == true")) == (
        "yaml:.a[*].b == true"
    )
    assert to_canonical_string(parse_query('json:.port == "80"')) == (
        'json:.port == "80"'
    )
    assert to_canonical_string(parse_query("toml:..version")) == "toml:..version"


def test_canonical_known_results() -> None:
    """Test that partially evaluated nodes print as true/false."""
    assert to_canonical_string(NotExpr(KnownResult(False))) == "!false"


@pytest.mark.parametrize(
    "query",
    [
        "ext == rs AND size > 1024",
        'content contains "TODO"',
        "yaml:.features[*].enabled == true",
        '(ext == rs OR ext == toml) AND NOT path ~= "test"',
        "type in [file, dir] || depth in [1, 2, 10]",
        "modified > -7d && created on 2024-01-15",
        'yaml:.["key with spaces"].x != null',
        "json:..name in [a, 2, true]",
        "!!dir && !(size < 10 || stem == README)",
        "src/**/*.py || name like *.[ch]",
        "content ~= '^def [a-z]+' && accessed before 2024-06-01T10:30:00Z",
    ],
)
def test_round_trip(query: str) -> None:
    """Test that printing and reparsing yields an identical tree."""
    expr = parse_query(query, now=NOW)
    text = to_canonical_string(expr)
    assert parse_query(text, now=NOW) == expr
    assert to_canonical_string(parse_query(text, now=NOW)) == text
