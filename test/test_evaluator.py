"""Tests for cost-ordered evaluation of queries against entities."""

from collections.abc import Iterator
from datetime import datetime, timedelta

import pytest
from detect._types import Category, FileType
from detect.config import DetectConfig
from detect.engine import EvaluationFrame, Phase, Verdict, evaluate, fold
from detect.engine.evaluator import (
    name_attribute,
    resolve_metadata,
    resolve_name,
    resolve_structured,
)
from detect.errors import QueryTypeError
from detect.query import KnownResult, Predicate, Selector, parse_query
from detect.structured import resolver

NOW = datetime.now().astimezone()


def _naive(query: str, entity) -> Verdict:
    """Resolve every predicate first, then fold once."""
    expr = parse_query(query, now=NOW)
    frame = EvaluationFrame(expr, entity, DetectConfig())

    def resolve(predicate: Predicate) -> bool:
        if predicate.category == Category.NAME:
            return resolve_name(frame, predicate)
        if predicate.category == Category.METADATA:
            return resolve_metadata(frame, predicate)
        if predicate.category == Category.STRUCTURED:
            return resolve_structured(frame, predicate)
        content = entity.content
        return content is not None and predicate.value.matches([content])

    result = fold(expr, resolve)
    assert isinstance(result, KnownResult)
    return Verdict.MATCH if result.value else Verdict.NO_MATCH


# Scenarios


def test_scenario_name_and_size(make_entity) -> None:
    """Test ext == rs AND size > 1024 without reading content."""
    expr = parse_query("ext == rs AND size > 1024")
    big = make_entity.create("src/lib.rs", content=b"x" * 2000)
    small = make_entity.create("src/lib.rs", content=b"x" * 500)
    assert evaluate(expr, big) == Verdict.MATCH
    assert evaluate(expr, small) == Verdict.NO_MATCH
    assert big.content_calls == 0
    assert small.content_calls == 0


def test_scenario_content_contains(make_entity) -> None:
    """Test content contains "TODO"."""
    expr = parse_query('content contains "TODO"')
    assert evaluate(expr, make_entity.create("a.txt", content="x TODO y"))
    assert not evaluate(expr, make_entity.create("a.txt", content="nothing here"))


def test_scenario_structured_wildcard(make_entity) -> None:
    """Test yaml:.features[*].enabled == true."""
    expr = parse_query("yaml:.features[*].enabled == true")
    entity = make_entity.create(
        "config.yaml",
        content="features:\n  - enabled: false\n  - enabled: true\n",
    )
    assert evaluate(expr, entity) == Verdict.MATCH


def test_scenario_invalid_type_evaluates_nothing(make_entity) -> None:
    """Test that type == dirq fails before any entity is evaluated."""
    entity = make_entity.create()
    with pytest.raises(QueryTypeError):
        evaluate(parse_query("type == dirq"), entity)
    assert entity.metadata_calls == 0


def test_scenario_negated_path_regex(make_entity) -> None:
    """Test (ext == rs OR ext == toml) AND NOT path ~= "test"."""
    expr = parse_query('(ext == rs OR ext == toml) AND NOT path ~= "test"')
    entity = make_entity.create("/src/test/lib.rs")
    assert evaluate(expr, entity) == Verdict.NO_MATCH
    assert evaluate(expr, make_entity.create("src/main.rs")) == Verdict.MATCH
    assert entity.metadata_calls == 0


# Name attributes


@pytest.mark.parametrize(
    "selector,path,expected",
    [
        (Selector.NAME, "src/lib.rs", "lib.rs"),
        (Selector.BASENAME, "src/lib.rs", "lib"),
        (Selector.BASENAME, "archive.tar.gz", "archive.tar"),
        (Selector.EXT, "archive.tar.gz", "gz"),
        (Selector.EXT, "Makefile", ""),
        (Selector.PATH, "src/lib.rs", "src/lib.rs"),
        (Selector.DIR, "src/lib.rs", "src"),
        (Selector.DIR, "lib.rs", ""),
        (Selector.DEPTH, "lib.rs", 1),
        (Selector.DEPTH, "a/b/c.rs", 3),
        (Selector.DEPTH, "/a/b.rs", 2),
    ],
)
def test_name_attribute(selector: Selector, path: str, expected: str | int) -> None:
    """Test attributes derived from the path alone."""
    assert name_attribute(selector, path) == expected


def test_name_is_full_filename(make_entity) -> None:
    """Test that name never matches the stem."""
    entity = make_entity.create("README.md")
    assert not evaluate(parse_query('name ~= "^README$"'), entity)
    assert evaluate(parse_query('stem ~= "^README$"'), entity)


def test_comparisons_are_case_sensitive(make_entity) -> None:
    """Test that values compare case-sensitively."""
    entity = make_entity.create("README.md")
    assert not evaluate(parse_query("name == readme.md"), entity)
    assert evaluate(parse_query('name ~= "(?i)^readme"'), entity)


def test_glob_and_set(make_entity) -> None:
    """Test glob and set membership predicates."""
    entity = make_entity.create("src/app/main.py")
    assert evaluate(parse_query("*.py"), entity)
    assert evaluate(parse_query("src/*/*.py"), entity)
    assert not evaluate(parse_query("*.rs"), entity)
    assert evaluate(parse_query("ext in [py, pyi]"), entity)
    assert evaluate(parse_query("dir contains app && depth == 3"), entity)


# Metadata


def test_type_predicates(make_entity) -> None:
    """Test file types and the dir shorthand."""
    directory = make_entity.create("src", content=None, file_type=FileType.DIR)
    assert evaluate(parse_query("dir"), directory)
    assert not evaluate(parse_query("file"), directory)
    assert evaluate(parse_query("type in [dir, symlink]"), directory)
    assert directory.content_calls == 0


def test_time_predicates(make_entity) -> None:
    """Test relative and date-based time comparisons."""
    recent = make_entity.create(modified=NOW - timedelta(days=1))
    old = make_entity.create(modified=NOW - timedelta(days=30))
    expr = parse_query("modified > -7d", now=NOW)
    assert evaluate(expr, recent)
    assert not evaluate(expr, old)
    today = parse_query("modified on today", now=NOW)
    assert evaluate(today, make_entity.create(modified=NOW))


def test_missing_timestamp_is_false(make_entity) -> None:
    """Test that an entity without timestamps never satisfies a time predicate."""
    entity = make_entity.create(modified=None)
    assert not evaluate(parse_query("modified > -7d"), entity)
    assert not evaluate(parse_query("modified < -7d"), entity)


def test_metadata_failure_is_false(make_entity) -> None:
    """Test that an unreadable entity fails only its own predicates."""
    entity = make_entity.create("a.rs", unreadable_metadata=True)
    assert not evaluate(parse_query("size > 0"), entity)
    assert evaluate(parse_query("size > 0 || ext == rs"), entity)
    assert evaluate(parse_query("!(size > 0)"), entity)


def test_metadata_read_once(make_entity) -> None:
    """Test that several metadata predicates share one accessor call."""
    entity = make_entity.create(content=b"abc", file_type=FileType.FILE)
    expr = parse_query("size > 1 && size < 10 && file")
    assert evaluate(expr, entity)
    assert entity.metadata_calls == 1


# Structured


def test_structured_wrong_extension_reads_nothing(make_entity) -> None:
    """Test that structured predicates on other formats do no I/O."""
    entity = make_entity.create("data.json", content=b'{"a": 1}')
    assert not evaluate(parse_query("yaml:.a == 1"), entity)
    assert entity.structured_calls == 0
    assert evaluate(parse_query("json:.a == 1"), entity)


def test_structured_type_coercion(make_entity) -> None:
    """Test that == 8080 matches integer and string values."""
    expr = parse_query("toml:.port == 8080")
    assert evaluate(expr, make_entity.create("a.toml", content="port = 8080\n"))
    assert evaluate(expr, make_entity.create("a.toml", content='port = "8080"\n'))


def test_structured_recursive_ordering(make_entity) -> None:
    """Test ..field > n across nesting levels."""
    entity = make_entity.create(
        "deps.json", content='{"a": {"version": 1}, "b": [{"version": 7}]}'
    )
    assert evaluate(parse_query("json:..version > 5"), entity)
    assert not evaluate(parse_query("json:..version > 7"), entity)


def test_structured_size_ceiling(make_entity) -> None:
    """Test that oversized documents are not parsed."""
    entity = make_entity.create("big.json", content='{"a": 1}')
    config = DetectConfig(max_structured_size=4)
    assert not evaluate(parse_query("json:.a == 1"), entity, config)
    assert evaluate(parse_query("!json:.a"), entity, config)


def test_malformed_document_is_false(make_entity) -> None:
    """Test that parse errors fail only the structured predicate."""
    entity = make_entity.create("bad.yaml", content="a: [1")
    assert not evaluate(parse_query("yaml:.a"), entity)
    assert evaluate(parse_query("yaml:.a || ext == yaml"), entity)


def test_documents_parsed_once(make_entity) -> None:
    """Test that one document parse serves several predicates."""
    entity = make_entity.create("a.json", content='{"a": 1, "b": 2}')
    assert evaluate(parse_query("json:.a == 1 && json:.b == 2"), entity)
    assert entity.structured_calls == 1


@pytest.mark.parametrize(
    "path,content",
    [
        ("deep.json", "[" * 100000 + "]" * 100000),
        ("deep.yaml", "[" * 5000 + "]" * 5000),
    ],
)
def test_deeply_nested_document_is_false(make_entity, path: str, content: str) -> None:
    """Test that nesting too deep to parse fails only the structured predicate."""
    entity = make_entity.create(path, content=content)
    fmt = path.rsplit(".", 1)[1]
    assert not evaluate(parse_query(f"{fmt}:.x == 1"), entity)
    assert evaluate(parse_query(f"!{fmt}:.x"), entity)


def test_non_string_keys_compare_as_text(make_entity) -> None:
    """Test regex and substring over a mapping keyed by dates."""
    entity = make_entity.create("dates.yaml", content="a: {2024-01-01: x}\n")
    assert evaluate(parse_query("yaml:.a ~= x"), entity)
    assert evaluate(parse_query('yaml:.a contains "2024-01-01"'), entity)


def test_cyclic_anchor(make_entity) -> None:
    """Test a mapping that contains itself through an alias."""
    entity = make_entity.create("cycle.yaml", content="a: &x {b: *x}\n")
    assert not evaluate(parse_query("yaml:.a contains zzz"), entity)
    assert evaluate(parse_query("yaml:.a contains b"), entity)
    assert not evaluate(parse_query("yaml:..c == 1"), entity)
    assert evaluate(parse_query("yaml:..b"), entity)


def test_shared_anchors_are_visited_once(
    make_entity, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test that aliases nested nine deep do not multiply the work."""
    lines = ["a: &a [x, x, x, x, x, x, x, x, x, x]"]
    for previous, name in zip("abcdefgh", "bcdefghi"):
        lines.append(f"{name}: &{name} [" + ", ".join([f"*{previous}"] * 10) + "]")
    entity = make_entity.create("bomb.yaml", content="\n".join(lines) + "\n")
    assert not evaluate(parse_query("yaml:..missing"), entity)
    assert evaluate(parse_query("yaml:.i" + "[*]" * 9 + " == x"), entity)
    monkeypatch.setattr(resolver, "MAX_RENDERED_CHARS", 10000)
    assert not evaluate(parse_query("yaml:.i ~= zzz"), entity)
    assert evaluate(parse_query("yaml:.a ~= x"), entity)


# Content


def test_content_regex(make_entity) -> None:
    """Test line-based regex content predicates."""
    entity = make_entity.create("a.py", content="import os\ndef main():\n")
    assert evaluate(parse_query('content ~= "^def "'), entity)
    assert not evaluate(parse_query('content ~= "^main"'), entity)


def test_content_equality(make_entity) -> None:
    """Test whole-content equality."""
    entity = make_entity.create("VERSION", content="1.2.3\n")
    assert evaluate(parse_query(r'content == "1.2.3\n"'), entity)
    assert not evaluate(parse_query('content == "1.2.3"'), entity)


def test_content_failure_is_false(make_entity) -> None:
    """Test that an unreadable stream fails content predicates only."""
    entity = make_entity.create("a.txt", content=None, size=10)
    assert not evaluate(parse_query("content contains x"), entity)
    assert evaluate(parse_query("!(content contains x)"), entity)
    assert evaluate(parse_query("content contains x || size == 10"), entity)


def test_undecodable_content(make_entity) -> None:
    """Test that bytes after invalid UTF-8 are not searched."""
    entity = make_entity.create("bin", content=b"head \xff TODO")
    assert evaluate(parse_query("content contains head"), entity)
    assert not evaluate(parse_query("content contains TODO"), entity)


def test_content_stops_when_root_known(make_entity) -> None:
    """Test that streaming ends once the tree is decided."""
    consumed: list[bytes] = []
    entity = make_entity.create("a.txt", content=b"", size=0)

    def stream(chunk_size: int) -> Iterator[bytes]:
        entity.content_calls += 1
        for chunk in (b"alpha ", b"beta ", b"gamma"):
            consumed.append(chunk)
            yield chunk

    entity.content_stream = stream
    expr = parse_query("content contains alpha || content contains zzz")
    assert evaluate(expr, entity)
    assert consumed == [b"alpha "]
    assert entity.content_calls == 1


def test_content_shared_pass(make_entity) -> None:
    """Test that several content predicates open the stream once."""
    entity = make_entity.create("a.txt", content="one two three", chunk_size=2)
    expr = parse_query("content contains one && content contains three")
    assert evaluate(expr, entity)
    assert entity.content_calls == 1


# Laziness and properties


@pytest.mark.parametrize(
    "query",
    [
        "ext == rs",
        "size > 10 && modified > -1d",
        "yaml:.a == 1 || type == dir",
        "!(name ~= x) && depth < 3",
    ],
)
def test_no_content_predicate_never_reads_content(make_entity, query: str) -> None:
    """Test that content is untouched without content predicates."""
    for path in ("a.rs", "b.yaml", "c/d/e.txt"):
        entity = make_entity.create(path, content="a: 1\n")
        evaluate(parse_query(query), entity)
        assert entity.content_calls == 0


def test_name_decided_query_does_no_io(make_entity) -> None:
    """Test that a query decided by name skips every accessor."""
    entity = make_entity.create("a.txt", content="TODO")
    expr = parse_query('ext == rs && size > 1 && content contains "TODO"')
    assert not evaluate(expr, entity)
    assert entity.metadata_calls == 0
    assert entity.content_calls == 0


def test_short_circuit_before_content(make_entity) -> None:
    """Test that an OR decided by metadata skips content."""
    entity = make_entity.create("a.txt", content="x" * 50)
    expr = parse_query("size > 10 || content contains TODO")
    assert evaluate(expr, entity)
    assert entity.content_calls == 0


QUERIES = [
    "ext == rs AND size > 1024",
    'content contains "TODO"',
    '(ext == rs OR ext == toml) AND NOT path ~= "test"',
    "yaml:.features[*].enabled == true || content contains enabled",
    "!(size < 100) || (dir && depth > 1)",
    "json:.a != 1 && !content contains x",
    "toml:..version || (name like *.md && content ~= ^#)",
    "modified > -7d && !(content == \"\" || file)",
    "NOT (ext in [rs, yaml, json] AND (content contains a OR size >= 3))",
]

ENTITIES = [
    ("src/lib.rs", "x" * 2000, FileType.FILE),
    ("src/test/lib.rs", "fn main() {} // TODO", FileType.FILE),
    ("Cargo.toml", "[package]\nversion = '1'\n", FileType.FILE),
    ("conf.yaml", "features:\n  - enabled: true\n", FileType.FILE),
    ("data.json", '{"a": 1}', FileType.FILE),
    ("docs/README.md", "# Title\nbody\n", FileType.FILE),
    ("empty.txt", "", FileType.FILE),
    ("a/b/c", None, FileType.DIR),
    ("bad.json", "{oops", FileType.FILE),
]


@pytest.mark.parametrize("query", QUERIES)
def test_matches_naive_evaluation(make_entity, query: str) -> None:
    """Test that phase-ordered evaluation agrees with resolving everything."""
    for path, content, file_type in ENTITIES:
        modified = NOW - timedelta(days=2)
        lazy = make_entity.create(
            path, content=content, file_type=file_type, modified=modified, size=40
        )
        eager = make_entity.create(
            path, content=content, file_type=file_type, modified=modified, size=40
        )
        expected = _naive(query, eager)
        assert evaluate(parse_query(query, now=NOW), lazy) == expected, path


@pytest.mark.parametrize("query", QUERIES)
def test_evaluation_is_idempotent(make_entity, query: str) -> None:
    """Test that evaluating twice gives the same verdict."""
    expr = parse_query(query, now=NOW)
    for path, content, file_type in ENTITIES:
        entity = make_entity.create(path, content=content, file_type=file_type)
        assert evaluate(expr, entity) == evaluate(expr, entity)


# Frame


def test_frame_moves_forward_only(make_entity) -> None:
    """Test the frame's phase state machine."""
    frame = EvaluationFrame(parse_query("dir"), make_entity.create(), DetectConfig())
    assert frame.phase == Phase.NAME_PENDING
    frame.advance(Phase.STRUCTURED_PENDING)
    with pytest.raises(ValueError):
        frame.advance(Phase.METADATA_PENDING)
    assert frame.resolve(Verdict.MATCH) == Verdict.MATCH
    assert frame.phase == Phase.RESOLVED
    with pytest.raises(ValueError):
        frame.resolve(Verdict.NO_MATCH)


def test_verdict_truthiness() -> None:
    """Test that only MATCH is truthy."""
    assert Verdict.MATCH
    assert not Verdict.NO_MATCH
