"""Query language for selecting files, directories and git tree entries.

A query is one or more ``selector operator value`` predicates combined with
boolean operators. Selectors, operators and enum values are case-insensitive;
compared values are case-sensitive.

Query Language Examples:
    ext == rs                          - Extension equals "rs"
    name ~= "^test_.*\\.py$"            - Regex over the full filename
    stem == README                     - Filename without extension
    size > 10kb && modified > -7d      - Larger than 10 KiB, changed this week
    type in [file, symlink]            - Set membership
    content contains TODO              - Substring anywhere in the file
    yaml:.server.port == 8080          - Structured field (int or "8080")
    toml:.dependencies..version        - Field exists at any depth
    *.rs                               - Bare glob over the filename
    dir                                - Single-word alias for type == dir
    (ext == rs || ext == toml) && !path ~= test

Operators:
    strings     ==  !=  ~=  contains  in  glob
    numbers     ==  !=  >  >=  <  <=  in        (sizes accept kb/mb/gb/tb)
    times       ==  !=  >  >=  <  <=  on  before  after
    types       ==  !=  in
    content     ==  ~=  contains
    structured  ==  !=  >  >=  <  <=  ~=  contains  in

Precedence (tightest to loosest):
    1. ! / NOT
    2. && / AND
    3. || / OR
    Parentheses override precedence.
"""

from .parser import RawExpr, parse_raw
from .typechecker import parse_query, typecheck
from .types import (
    AndExpr,
    Expr,
    Family,
    KnownResult,
    NotExpr,
    OrExpr,
    Predicate,
    Selector,
    iter_predicates,
    to_canonical_string,
)

__all__ = [
    # Parser
    "parse_query",
    "parse_raw",
    "typecheck",
    "RawExpr",
    # Types
    "Expr",
    "Predicate",
    "KnownResult",
    "NotExpr",
    "AndExpr",
    "OrExpr",
    "Selector",
    "Family",
    # Utilities
    "iter_predicates",
    "to_canonical_string",
]
