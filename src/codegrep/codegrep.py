import os
import re
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, FrozenSet, Iterable, Iterator, List, NamedTuple, Optional, Tuple, Union
from enum import Enum

logger = logging.getLogger(__name__)


# --- Configuration Constants ---
DEFAULT_SEARCH_DIR = "."
EXTENSION_SEPARATOR = "."
LIST_SEPARATOR = ","


# --- Errors ---
class CodeGrepError(Exception):
    """Base exception for all search errors."""


class InvalidPatternError(CodeGrepError):
    """The search pattern is empty or is not a valid regular expression."""


class RootUnreadableError(CodeGrepError):
    """The search root does not exist or cannot be listed."""


class EntryAccessError(CodeGrepError):
    """A single directory entry or file could not be read. Never fatal."""


# --- Enums and Data Structures ---
class LineKind(Enum):
    """Tags a line inside a context block as the match itself or as context."""

    MATCH = "match"
    CONTEXT = "context"


class ResultLine(NamedTuple):
    """One numbered line of a context block."""

    number: int
    text: str
    kind: LineKind

    @property
    def is_match(self) -> bool:
        return self.kind is LineKind.MATCH

    def format(self) -> str:
        return f"{self.number} {self.text}"


@dataclass(frozen=True)
class SearchResult:
    """A single matching line, with its preceding context block if enabled."""

    path: str
    line: int
    content: str
    context: Tuple[ResultLine, ...] = ()

    @property
    def has_context(self) -> bool:
        return bool(self.context)

    def formatted_context(self) -> List[str]:
        """Flattens the context block into plain display strings."""
        return [entry.format() for entry in self.context]


@dataclass
class SearchStats:
    """Running counters for one search call."""

    files_scanned: int = 0
    total_lines: int = 0
    matches_found: int = 0


def _split_list(value: Union[str, Iterable[str], None]) -> List[str]:
    """Splits a comma-separated string (or iterable of strings) into stripped, non-empty items."""
    if not value:
        return []
    items = value.split(LIST_SEPARATOR) if isinstance(value, str) else list(value)
    return [item.strip() for item in items if item and item.strip()]


def normalize_extension(ext: str) -> str:
    """Returns ``ext`` with exactly one leading dot, so "go" and ".go" are equivalent."""
    return EXTENSION_SEPARATOR + ext.strip().lstrip(EXTENSION_SEPARATOR)


@dataclass(frozen=True)
class SearchConfig:
    """Immutable options for one search run."""

    pattern: str
    directory: str = DEFAULT_SEARCH_DIR
    case_sensitive: bool = False
    use_regex: bool = False
    extensions: FrozenSet[str] = field(default_factory=frozenset)
    context: int = 0
    exclude_dirs: FrozenSet[str] = field(default_factory=frozenset)
    show_stats: bool = False
    encoding: Optional[str] = None

    def __post_init__(self):
        if not self.pattern:
            raise InvalidPatternError("search pattern is required")
        if self.context < 0:
            raise ValueError(f"context must be >= 0, got {self.context}")
        if self.encoding is not None:
            # Rejects unknown names and non-text codecs such as base64 or rot13.
            "".encode(self.encoding)

    @classmethod
    def from_options(
        cls,
        pattern: str,
        directory: str = DEFAULT_SEARCH_DIR,
        case_sensitive: bool = False,
        use_regex: bool = False,
        extensions: Union[str, Iterable[str], None] = "",
        context: int = 0,
        exclude_dirs: Union[str, Iterable[str], None] = "",
        show_stats: bool = False,
        encoding: Optional[str] = None,
    ) -> "SearchConfig":
        """
        Builds a SearchConfig from raw command-line style values.

        Args:
            pattern (str): The literal text or regular expression to search for.
            directory (str): The root to scan. Defaults to the current directory.
            case_sensitive (bool): If True, the match respects letter case.
            use_regex (bool): If True, ``pattern`` is a regular expression.
            extensions (str | Iterable[str], optional): Comma-separated extension
                allow-list such as "go,js" or [".go", "js"]. Empty allows all files.
            context (int): Number of preceding lines to keep per match.
            exclude_dirs (str | Iterable[str], optional): Comma-separated directory
                base names to prune.
            show_stats (bool): Whether the caller should print statistics.
            encoding (str, optional): Text encoding used to read files. None uses
                the platform default.

        Returns:
            SearchConfig: The normalized, immutable configuration.
        """
        return cls(
            pattern=pattern,
            directory=directory or DEFAULT_SEARCH_DIR,
            case_sensitive=case_sensitive,
            use_regex=use_regex,
            extensions=frozenset(normalize_extension(e) for e in _split_list(extensions)),
            context=context,
            exclude_dirs=frozenset(_split_list(exclude_dirs)),
            show_stats=show_stats,
            encoding=encoding,
        )


# --- Pattern Compiler ---
class Matcher:
    """A compiled search pattern, fixed for the lifetime of a search run."""

    __slots__ = ("pattern", "case_sensitive", "use_regex", "_regex")

    def __init__(self, pattern: str, case_sensitive: bool, use_regex: bool, regex: "re.Pattern[str]"):
        self.pattern = pattern
        self.case_sensitive = case_sensitive
        self.use_regex = use_regex
        self._regex = regex

    def matches(self, line: str) -> bool:
        return self._regex.search(line) is not None

    def __repr__(self) -> str:
        return f"Matcher(pattern={self.pattern!r}, case_sensitive={self.case_sensitive}, use_regex={self.use_regex})"


def compile_pattern(pattern: str, case_sensitive: bool = False, use_regex: bool = False) -> Matcher:
    """
    Compiles a raw user pattern into a Matcher.

    In literal mode the pattern is escaped first, so compilation cannot fail.
    Case-insensitivity is applied as a regex flag rather than by lower-casing input.

    Raises:
        InvalidPatternError: If ``use_regex`` is set and the pattern is malformed.
    """
    expression = pattern if use_regex else re.escape(pattern)
    flags = 0 if case_sensitive else re.IGNORECASE
    try:
        regex = re.compile(expression, flags)
    except re.error as e:
        raise InvalidPatternError(f"invalid regular expression {pattern!r}: {e}") from e
    return Matcher(pattern, case_sensitive, use_regex, regex)


# --- File Filter ---
def file_extension(path: str) -> str:
    """Returns the suffix of the base name from its last dot, or "" if there is none."""
    name = os.path.basename(path)
    idx = name.rfind(EXTENSION_SEPARATOR)
    return name[idx:] if idx != -1 else ""


class FileFilter:
    """Decides which files are scanned and which directories are pruned."""

    def __init__(self, allowed_extensions: Iterable[str] = (), excluded_dir_names: Iterable[str] = ()):
        self.allowed_extensions: FrozenSet[str] = frozenset(allowed_extensions)
        self.excluded_dir_names: FrozenSet[str] = frozenset(excluded_dir_names)

    @classmethod
    def from_config(cls, config: SearchConfig) -> "FileFilter":
        return cls(config.extensions, config.exclude_dirs)

    def accepts(self, path: str) -> bool:
        if not self.allowed_extensions:
            return True
        return file_extension(path) in self.allowed_extensions

    def is_excluded_dir(self, name: str) -> bool:
        return name in self.excluded_dir_names


# --- Result Assembler ---
def build_result(
    path: str,
    matched_line: str,
    line_number: int,
    context_snapshot: Iterable[Tuple[int, str]],
    context_size: int,
) -> SearchResult:
    """
    Packages a matched line and the context lines that precede it.

    Args:
        path (str): The file the match was found in.
        matched_line (str): The text of the matching line.
        line_number (int): The 1-based number of the matching line.
        context_snapshot (Iterable[Tuple[int, str]]): The (number, text) pairs
            of the non-matching lines immediately before the match, oldest first.
        context_size (int): The configured context size. 0 yields no context block.

    Returns:
        SearchResult: The result, whose context block (if any) ends with the match.
    """
    if context_size <= 0:
        return SearchResult(path, line_number, matched_line)

    block = [ResultLine(number, text, LineKind.CONTEXT) for number, text in context_snapshot]
    block.append(ResultLine(line_number, matched_line, LineKind.MATCH))
    return SearchResult(path, line_number, matched_line, tuple(block))


# --- Core Logic ---
def _iter_lines(handle) -> Iterator[str]:
    """Yields lines split on "\\n", stripping the terminator and one trailing "\\r"."""
    for line in handle:
        if line.endswith("\n"):
            line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
        yield line


class CodeSearcher:
    """
    Walks a directory tree and collects every line matching a pattern.

    The searcher is built from an immutable SearchConfig. The pattern is compiled
    once in the constructor, so a bad regular expression fails before any file
    is touched. Each call to ``search`` is a full, synchronous pass over the tree.
    """

    def __init__(self, config: SearchConfig):
        self.config = config
        self.matcher = compile_pattern(config.pattern, config.case_sensitive, config.use_regex)
        self.file_filter = FileFilter.from_config(config)

    def search(self) -> Tuple[List[SearchResult], SearchStats]:
        """
        Scans the configured root and returns all results plus the run's counters.

        Returns:
            Tuple[List[SearchResult], SearchStats]: Results in traversal order and
            a fresh statistics record.

        Raises:
            RootUnreadableError: If the root does not exist or cannot be listed.
        """
        root = self.config.directory
        results: List[SearchResult] = []
        stats = SearchStats()

        if os.path.isfile(root):
            self._visit_file(root, results, stats)
        elif os.path.isdir(root) and self.file_filter.is_excluded_dir(os.path.basename(os.path.normpath(root))):
            logger.debug("Pruning excluded root directory %s", root)
        else:
            try:
                with os.scandir(root) as it:
                    entries = list(it)
            except OSError as e:
                raise RootUnreadableError(f"cannot open directory '{root}': {e.strerror or e}") from e
            self._walk_tree(entries, results, stats)

        logger.info(
            "Scanned %d files, %d lines, %d matches under %s",
            stats.files_scanned,
            stats.total_lines,
            stats.matches_found,
            root,
        )
        return results, stats

    def _walk_tree(self, entries: List[os.DirEntry], results: List[SearchResult], stats: SearchStats):
        # Explicit stack of entry iterators: depth-first without Python recursion.
        pending: List[Iterator[os.DirEntry]] = [iter(entries)]
        while pending:
            entry = next(pending[-1], None)
            if entry is None:
                pending.pop()
                continue
            try:
                if entry.is_dir(follow_symlinks=False):
                    if self.file_filter.is_excluded_dir(entry.name):
                        logger.debug("Pruning excluded directory %s", entry.path)
                        continue
                    children = self._list_directory(entry.path)
                    if children:
                        pending.append(iter(children))
                elif entry.is_file():
                    self._visit_file(entry.path, results, stats)
            except OSError as e:
                logger.debug("Skipping %s: %s", entry.path, e)

    def _list_directory(self, path: str) -> List[os.DirEntry]:
        try:
            with os.scandir(path) as it:
                return list(it)
        except OSError as e:
            logger.debug("Skipping unreadable directory %s: %s", path, e)
            return []

    def _visit_file(self, path: str, results: List[SearchResult], stats: SearchStats):
        if not self.file_filter.accepts(path):
            return
        try:
            file_results, line_count = self.scan_file(path)
        except EntryAccessError as e:
            logger.debug("Skipping %s", e)
            return

        results.extend(file_results)
        stats.files_scanned += 1
        stats.total_lines += line_count
        stats.matches_found += len(file_results)

    def scan_file(self, path: str) -> Tuple[List[SearchResult], int]:
        """
        Streams one file line by line through the matcher.

        Args:
            path (str): The file to scan.

        Returns:
            Tuple[List[SearchResult], int]: The file's matches in line order and the
            number of lines read.

        Raises:
            EntryAccessError: If the file cannot be opened or read. No partial
                results are returned in that case.
        """
        context_size = self.config.context
        buffer: Deque[Tuple[int, str]] = deque(maxlen=context_size or None)
        results: List[SearchResult] = []
        line_number = 0

        try:
            with open(path, "r", encoding=self.config.encoding, errors="replace", newline="\n") as f:
                for line in _iter_lines(f):
                    line_number += 1
                    if self.matcher.matches(line):
                        results.append(build_result(path, line, line_number, buffer, context_size))
                        buffer.clear()
                    elif context_size > 0:
                        buffer.append((line_number, line))
        except OSError as e:
            raise EntryAccessError(f"{path}: {e.strerror or e}") from e

        return results, line_number


def search(config: SearchConfig) -> Tuple[List[SearchResult], SearchStats]:
    """Convenience wrapper: builds a CodeSearcher for ``config`` and runs it once."""
    return CodeSearcher(config).search()
