"""
codegrep - A recursive, line-oriented text search tool with optional context
lines and aggregate statistics.
"""

__version__ = "0.1.0"

from .codegrep import (
    CodeSearcher,
    SearchConfig,
    SearchResult,
    SearchStats,
    ResultLine,
    LineKind,
    Matcher,
    FileFilter,
    compile_pattern,
    build_result,
    search,
    CodeGrepError,
    InvalidPatternError,
    RootUnreadableError,
    EntryAccessError,
)

__all__ = [
    # The search engine and its one-shot wrapper.
    "CodeSearcher",
    "search",

    # Configuration and result types.
    "SearchConfig",
    "SearchResult",
    "SearchStats",
    "ResultLine",
    "LineKind",

    # Building blocks, usable on their own.
    "Matcher",
    "FileFilter",
    "compile_pattern",
    "build_result",

    # Errors.
    "CodeGrepError",
    "InvalidPatternError",
    "RootUnreadableError",
    "EntryAccessError",
]
