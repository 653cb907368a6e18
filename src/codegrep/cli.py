"""codegrep CLI - recursive line search with optional context and statistics."""

import sys
import time

import click

from . import __version__
from .codegrep import CodeGrepError, CodeSearcher, SearchConfig
from .console import ConsoleManager


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__)
@click.option("--pattern", "-p", required=True, help="Search pattern (required)")
@click.option("--dir", "-d", "directory", default=".", show_default=True, help="Directory to search")
@click.option("--case", "case_sensitive", is_flag=True, help="Case-sensitive search")
@click.option("--regex", "use_regex", is_flag=True, help="Use regular expressions")
@click.option("--ext", "extensions", default="", help="Comma-separated file extensions (e.g., go,js,ts)")
@click.option(
    "--context",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Show N lines of context before each match",
)
@click.option("--exclude-dir", "exclude_dirs", default="", help="Comma-separated directories to exclude")
@click.option("--stats", "show_stats", is_flag=True, help="Show search statistics")
@click.option("--encoding", default=None, help="Text encoding of scanned files (default: platform encoding)")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.option("--verbose", "-v", is_flag=True, help="Log skipped files and pruned directories")
def main(
    pattern: str,
    directory: str,
    case_sensitive: bool,
    use_regex: bool,
    extensions: str,
    context: int,
    exclude_dirs: str,
    show_stats: bool,
    encoding: str,
    no_color: bool,
    verbose: bool,
):
    """Recursively search files under a directory for lines matching a pattern."""
    console = ConsoleManager(no_color=no_color)
    console.configure_logging(verbose)

    start_time = time.perf_counter()
    try:
        config = SearchConfig.from_options(
            pattern=pattern,
            directory=directory,
            case_sensitive=case_sensitive,
            use_regex=use_regex,
            extensions=extensions,
            context=context,
            exclude_dirs=exclude_dirs,
            show_stats=show_stats,
            encoding=encoding,
        )
    except LookupError:
        console.error(f"unknown text encoding: {encoding}")
        sys.exit(1)
    except CodeGrepError as e:
        console.error(str(e))
        sys.exit(1)

    try:
        results, stats = CodeSearcher(config).search()
    except CodeGrepError as e:
        console.error(str(e))
        sys.exit(1)

    console.print_results(results)

    if config.show_stats:
        console.print_stats(stats, time.perf_counter() - start_time)


if __name__ == "__main__":
    main()
