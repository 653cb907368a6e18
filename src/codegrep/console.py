import logging
from typing import List

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from .codegrep import LineKind, ResultLine, SearchResult, SearchStats

# --- Styles ---
PATH_STYLE = "cyan"
LINE_NUMBER_STYLE = "yellow"
MATCH_STYLE = "red"
CONTEXT_STYLE = "white"
ERROR_STYLE = "bold red"

_LINE_STYLES = {
    LineKind.MATCH: MATCH_STYLE,
    LineKind.CONTEXT: CONTEXT_STYLE,
}


class ConsoleManager:
    """Renders search results, statistics and errors with 'rich'."""

    def __init__(self, no_color: bool = False):
        self.console = Console(no_color=no_color, highlight=False)
        self.err_console = Console(stderr=True, no_color=no_color, highlight=False)

    def error(self, message: str):
        self.err_console.print(Text(f"Error: {message}", style=ERROR_STYLE), soft_wrap=True)

    def print_table(self, title: str, columns: List[str], rows: List[List[str]]):
        """Prints a formatted table to the console."""
        table = Table(
            title=title,
            show_header=True,
            header_style="bold magenta",
            border_style="dim",
        )
        for col in columns:
            table.add_column(col)
        for row in rows:
            table.add_row(*row)
        self.console.print(table)

    def print_result(self, result: SearchResult):
        """
        Prints one result.

        Without context the result is a compact "path:line" header followed by the
        matched line. With context the path is followed by the numbered block, which
        always ends with the match.
        """
        self.console.print()
        if result.has_context:
            self.console.print(Text(result.path, style=PATH_STYLE), soft_wrap=True)
            for entry in result.context:
                self.console.print(render_line(entry), soft_wrap=True)
        else:
            header = Text.assemble((result.path, PATH_STYLE), ":", (str(result.line), LINE_NUMBER_STYLE))
            self.console.print(header, soft_wrap=True)
            self.console.print(Text(result.content, style=MATCH_STYLE), soft_wrap=True)

    def print_results(self, results: List[SearchResult]):
        for result in results:
            self.print_result(result)

    def print_stats(self, stats: SearchStats, elapsed: float):
        """Prints the aggregate counters of a finished search as a table."""
        rows = [
            ["Execution time", f"{round(elapsed * 1000)}ms"],
            ["Files scanned", f"{stats.files_scanned}"],
            ["Total lines", f"{stats.total_lines}"],
            ["Matches found", f"{stats.matches_found}"],
        ]
        self.print_table("Search Statistics", ["Metric", "Value"], rows)

    def configure_logging(self, verbose: bool = False):
        """Routes the package's log records to stderr through RichHandler."""
        handler = RichHandler(console=self.err_console, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        pkg_logger = logging.getLogger("codegrep")
        pkg_logger.handlers[:] = [handler]
        pkg_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
        pkg_logger.propagate = False


def render_line(entry: ResultLine) -> Text:
    """Renders a numbered context-block line, styled by its kind."""
    return Text.assemble(
        (str(entry.number), LINE_NUMBER_STYLE),
        " ",
        (entry.text, _LINE_STYLES[entry.kind]),
    )
