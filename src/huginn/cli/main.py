"""Huginn command-line interface.

This module wraps the indexing, search and analysis helpers of the core
package in a small click CLI:

* ``huginn index`` extracts code blocks from markdown docs and exports the index.
* ``huginn search`` runs keyword/regex/fuzzy searches over the exported index.
* ``huginn similar`` and ``huginn duplicates`` find related and near-duplicate examples.
* ``huginn patterns`` searches the code pattern catalog.
* ``huginn analyze`` reports complexity tiers, recommendations and trends.
* ``huginn status`` reports metadata about the exported index.
* ``huginn highlight`` renders highlighted HTML for arbitrary text.

All commands honour an optional ``--config`` flag pointing at a YAML file
layered over the packaged defaults.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click

from huginn.core.categories import PATTERN_CATALOG, get_pattern
from huginn.core.complexity import ComplexityAnalyzer
from huginn.core.error_handling import (
    ConfigurationError,
    IndexImportError,
    IndexingError,
    configure_logging,
)
from huginn.core.extraction import MarkdownCodeExtractor
from huginn.core.highlight import HighlightMatch, HighlightStyle, determine_match_type, highlight_terms
from huginn.core.indexer import CodeIndexer, Index, IndexHolder, export_index, import_index
from huginn.core.search import CodeSearchEngine, SearchOptions, popular_patterns
from huginn.core.settings import get_cache_dir, get_project_root, load_config
from huginn.core.similarity import find_duplicates, rank_similar
from huginn.output.formatter import ResultFormatter

INDEX_FILENAME = "index.json"


def _index_file(ctx: click.Context) -> Path:
    return ctx.obj["cache_dir"] / INDEX_FILENAME


def _load_index(ctx: click.Context) -> Index:
    """Import the exported index, or fail with a usage hint."""
    index_file = _index_file(ctx)
    if not index_file.exists():
        raise click.UsageError(f"No index found in {index_file.parent}. Run 'huginn index' first.")
    try:
        return import_index(index_file.read_text(encoding="utf-8"))
    except IndexImportError as e:
        raise click.ClickException(f"Cannot load index {index_file}: {e}") from e


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    help="Path to a YAML configuration file (layered over the packaged config).",
)
@click.option(
    "--project-root",
    type=click.Path(path_type=Path, exists=True, file_okay=False),
    help="Override the project root used for cache and relative paths.",
)
@click.option("--verbose", is_flag=True, help="Show additional diagnostics on stderr.")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], project_root: Optional[Path], verbose: bool) -> None:
    """Huginn - code example search from the command line."""

    ctx.ensure_object(dict)
    configure_logging(verbose)
    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    root = get_project_root(str(project_root) if project_root is not None else None)
    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["project_root"] = root
    ctx.obj["cache_dir"] = get_cache_dir(config, root)


@cli.command()
@click.option(
    "--docs-path",
    "docs_paths",
    multiple=True,
    help="Markdown file or directory to extract code blocks from (defaults to config docs_paths).",
)
@click.option(
    "--output",
    "output_path",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Write the exported index here instead of the cache directory.",
)
@click.pass_context
def index(ctx: click.Context, docs_paths: Tuple[str, ...], output_path: Optional[Path]) -> None:
    """Extract code blocks from markdown docs and build the index."""

    config: Dict[str, Any] = ctx.obj["config"]
    verbose: bool = ctx.obj["verbose"]

    for docs_path in docs_paths:
        path = Path(docs_path).expanduser()
        if not path.is_absolute():
            path = ctx.obj["project_root"] / path
        if not path.exists():
            raise click.BadParameter(f"Path '{docs_path}' does not exist", param_hint="--docs-path")

    extractor = MarkdownCodeExtractor(config, ctx.obj["project_root"], verbose=verbose)
    blocks = extractor.extract(list(docs_paths) or None)

    holder = IndexHolder(CodeIndexer(config.get("index"), verbose=verbose))
    try:
        built = holder.rebuild(blocks)
    except IndexingError as e:
        raise click.ClickException(str(e)) from e

    target = output_path or _index_file(ctx)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(export_index(built), encoding="utf-8")

    click.echo(f"Indexed {built.stats.total} code examples into {target}")


@cli.command()
@click.argument("query")
@click.option("--case-sensitive", is_flag=True, help="Match case exactly.")
@click.option("--whole-word", is_flag=True, help="Only match whole words.")
@click.option("--regex", "use_regex", is_flag=True, help="Treat QUERY as a regular expression.")
@click.option("--no-comments", is_flag=True, help="Skip comment lines.")
@click.option("--fuzzy", is_flag=True, help="Also report near matches on lines without a literal hit.")
@click.option("--language", "languages", multiple=True, help="Only search examples in this language.")
@click.option("--category", "categories", multiple=True, help="Only search examples in this category.")
@click.option("--tag", "tags", multiple=True, help="Only search examples with this tag.")
@click.option("--limit", type=click.IntRange(0, None), default=None, help="Maximum number of results.")
@click.option(
    "--format",
    "output",
    type=click.Choice(["text", "json", "html"], case_sensitive=False),
    default="text",
    show_default=True,
    help="Output format for search results.",
)
@click.pass_context
def search(
    ctx: click.Context,
    query: str,
    case_sensitive: bool,
    whole_word: bool,
    use_regex: bool,
    no_comments: bool,
    fuzzy: bool,
    languages: Tuple[str, ...],
    categories: Tuple[str, ...],
    tags: Tuple[str, ...],
    limit: Optional[int],
    output: str,
) -> None:
    """Search indexed code examples for ``QUERY``."""

    loaded = _load_index(ctx)
    engine = CodeSearchEngine(ctx.obj["config"], verbose=ctx.obj["verbose"])
    options = SearchOptions(
        case_sensitive=case_sensitive,
        whole_word=whole_word,
        use_regex=use_regex,
        include_comments=not no_comments,
        languages=list(languages),
        categories=list(categories),
        tags=list(tags),
        max_results=limit,
        fuzzy=fuzzy,
    )
    response = engine.search(query, options, loaded)
    click.echo(ResultFormatter().format(response, output.lower()))
    if response.error is not None:
        ctx.exit(1)


@cli.command()
@click.argument("entry_id")
@click.option("--limit", default=5, show_default=True, type=click.IntRange(1, 100))
@click.option("--min-similarity", default=0.0, show_default=True, type=click.FloatRange(0.0, 1.0))
@click.option("--json", "as_json", is_flag=True, help="Emit JSON instead of text.")
@click.pass_context
def similar(ctx: click.Context, entry_id: str, limit: int, min_similarity: float, as_json: bool) -> None:
    """List examples similar to ``ENTRY_ID``."""

    loaded = _load_index(ctx)
    entry = loaded.get(entry_id)
    if entry is None:
        raise click.ClickException(f"No example with id '{entry_id}'")

    bonus = float(ctx.obj["config"].get("similarity", {}).get("category_bonus", 0.1))
    ranked = rank_similar(entry, loaded, limit, min_similarity, bonus)

    if as_json:
        _echo_json([{"id": e.id, "title": e.title, "score": round(score, 4)} for e, score in ranked])
        return
    if not ranked:
        click.echo(f"No similar examples for '{entry.title}'.")
        return
    for candidate, score in ranked:
        click.echo(f"{score:.3f}  {candidate.id}  {candidate.title}")


@cli.command()
@click.option("--threshold", type=click.FloatRange(0.0, 1.0), default=None, help="Minimum cosine similarity.")
@click.option("--json", "as_json", is_flag=True, help="Emit JSON instead of text.")
@click.pass_context
def duplicates(ctx: click.Context, threshold: Optional[float], as_json: bool) -> None:
    """Report near-duplicate code examples."""

    loaded = _load_index(ctx)
    if threshold is None:
        threshold = float(ctx.obj["config"].get("similarity", {}).get("duplicate_threshold", 0.9))
    pairs = find_duplicates(loaded, threshold, verbose=ctx.obj["verbose"])

    if as_json:
        _echo_json([pair.to_dict() for pair in pairs])
        return
    if not pairs:
        click.echo("No near-duplicate examples found.")
        return
    for pair in pairs:
        click.echo(f"{pair.score:.3f}  {pair.first.id} <-> {pair.second.id}")


@cli.command()
@click.argument("name", required=False)
@click.option("--limit", default=10, show_default=True, type=click.IntRange(1, 100))
@click.pass_context
def patterns(ctx: click.Context, name: Optional[str], limit: int) -> None:
    """Search for catalog pattern ``NAME``, or list the most used patterns."""

    loaded = _load_index(ctx)

    if name is None:
        popular = popular_patterns(loaded, limit)
        if not popular:
            click.echo("No catalog patterns found in the index.")
            return
        for item in popular:
            click.echo(f"{item['count']:>4}  {item['pattern']} ({item['category']})")
        return

    if get_pattern(name) is None:
        available = ", ".join(p.name for p in PATTERN_CATALOG)
        raise click.BadParameter(f"Unknown pattern '{name}'. Available: {available}", param_hint="NAME")

    engine = CodeSearchEngine(ctx.obj["config"], verbose=ctx.obj["verbose"])
    results = engine.search_patterns(loaded, name)[:limit]
    if not results:
        click.echo(f"No examples use '{name}'.")
        return
    for result in results:
        first = result.matches[0]
        click.echo(
            f"{result.relevance_score:>6.1f}  {result.entry.id}  {result.entry.title}"
            f"  ({len(result.matches)} matches, first at line {first.line})"
        )


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Emit JSON instead of text.")
@click.pass_context
def analyze(ctx: click.Context, as_json: bool) -> None:
    """Report complexity distribution, recommendations and trends."""

    loaded = _load_index(ctx)
    analyzer = ComplexityAnalyzer(ctx.obj["config"].get("complexity"), verbose=ctx.obj["verbose"])
    analysis = analyzer.analyze(loaded)

    if as_json:
        _echo_json(analysis.to_dict())
        return

    lines: List[str] = [f"Average complexity: {analysis.average:.2f}", "Distribution:"]
    lines.extend(f"  {tier}: {count}" for tier, count in analysis.distribution.items())
    if analysis.recommendations:
        lines.append("Recommendations:")
        lines.extend(f"  - {item}" for item in analysis.recommendations)
    if analysis.trends:
        lines.append("Trends:")
        lines.extend(f"  - {item}" for item in analysis.trends)
    click.echo("\n".join(lines))


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Print information about the exported index."""

    index_file = _index_file(ctx)
    loaded = _load_index(ctx)
    stats = loaded.stats
    modified = datetime.fromtimestamp(index_file.stat().st_mtime).isoformat(timespec="seconds")

    click.echo(f"Index location: {index_file}")
    click.echo(f"Last updated: {modified}")
    click.echo(f"Index version: {loaded.version}")
    click.echo(f"Examples indexed: {stats.total}")
    click.echo(f"Average complexity: {stats.average_complexity:.2f}")
    if stats.by_language:
        click.echo("By language: " + ", ".join(f"{k}={v}" for k, v in stats.by_language.items()))
    if stats.by_category:
        click.echo("By category: " + ", ".join(f"{k}={v}" for k, v in stats.by_category.items()))
    if stats.most_used_patterns:
        top = ", ".join(f"{p['pattern']} ({p['count']})" for p in stats.most_used_patterns[:3])
        click.echo(f"Top patterns: {top}")


@cli.command()
@click.argument("text")
@click.option("--term", "terms", multiple=True, required=True, help="Term to highlight (repeatable).")
@click.option("--case-sensitive", is_flag=True, help="Match case exactly.")
@click.pass_context
def highlight(ctx: click.Context, text: str, terms: Tuple[str, ...], case_sensitive: bool) -> None:
    """Print ``TEXT`` as HTML with every ``--term`` highlighted."""

    highlight_config = ctx.obj["config"].get("highlight", {})
    matches = [HighlightMatch(term, determine_match_type(text, term, case_sensitive)) for term in terms]
    click.echo(
        highlight_terms(
            text,
            matches,
            case_sensitive=case_sensitive,
            max_highlights=highlight_config.get("max_highlights", 50),
            style=HighlightStyle.from_config(highlight_config),
        )
    )


__all__ = ["cli"]
