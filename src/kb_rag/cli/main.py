"""
Main CLI entry point for kb-rag.
"""

import json
from dataclasses import asdict

import click

from kb_rag.core import RAG_CATEGORIES, KbRagError, RagContextOptions
from kb_rag.core.logger import configure_logging
from kb_rag.rag import (
    ContextAssembler,
    build_rag_prompt,
    format_token_count,
    get_available_context_tokens,
    get_token_budget,
)
from kb_rag.search import LocalSearchProvider
from kb_rag.storage import CorpusStore

CORPUS_PATH = click.Path(exists=True, dir_okay=False)


def load_provider(corpus):
    """Load a corpus snapshot and wrap it in a LocalSearchProvider."""
    try:
        store = CorpusStore.load(corpus)
    except KbRagError as e:
        raise click.ClickException(f"Failed to load corpus {corpus}: {e}")
    return store, LocalSearchProvider(store)


def load_config_options(config_path) -> RagContextOptions:
    """Read RagContextOptions from a JSON config file (empty options if no path)."""
    if not config_path:
        return RagContextOptions()

    with open(config_path, "r") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise click.ClickException(f"Invalid JSON in config {config_path}: {e}")

    if not isinstance(data, dict):
        raise click.ClickException(f"Config {config_path} must contain a JSON object")
    try:
        return RagContextOptions.from_dict(data)
    except (TypeError, ValueError) as e:
        raise click.ClickException(str(e))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose):
    """kb-rag - assemble cited RAG context from a document corpus."""
    configure_logging(verbose)


@cli.command()
@click.argument("corpus", type=CORPUS_PATH)
@click.argument("query", type=str)
@click.option("--user", "user_id", default="default", show_default=True, help="Owner of the documents")
@click.option("--category", "categories", multiple=True, type=click.Choice(RAG_CATEGORIES), help="Restrict to category (repeatable)")
@click.option("--document-id", "document_ids", multiple=True, type=int, help="Restrict to document (repeatable)")
@click.option("--threshold", type=float, help="Minimum relevance score (default 0.6)")
@click.option("--max-chunks", type=int, help="Maximum chunks wanted (default 10)")
@click.option("--max-tokens", type=int, help="Token ceiling for the context (default 4000)")
@click.option("--no-sources", is_flag=True, help="Omit the source list")
@click.option("--hybrid", is_flag=True, help="Blend semantic and keyword scores")
@click.option("--semantic-weight", type=float, help="Semantic weight in hybrid mode (default 0.7)")
@click.option("--keyword-weight", type=float, help="Keyword weight in hybrid mode (default 0.3)")
@click.option("--model", help="Cap the context with this model's token budget")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="JSON file with RAG options")
@click.option("--format", "output_format", default="text", type=click.Choice(["text", "json", "prompt"]))
def assemble(
    corpus,
    query,
    user_id,
    categories,
    document_ids,
    threshold,
    max_chunks,
    max_tokens,
    no_sources,
    hybrid,
    semantic_weight,
    keyword_weight,
    model,
    config_path,
    output_format,
):
    """Assemble RAG context for QUERY from a CORPUS snapshot."""
    _, provider = load_provider(corpus)

    # Flags override the config file
    options = load_config_options(config_path).merged_with(
        RagContextOptions(
            categories=tuple(categories) or None,
            document_ids=tuple(document_ids) or None,
            threshold=threshold,
            max_chunks=max_chunks,
            max_tokens=max_tokens,
            include_sources=False if no_sources else None,
            hybrid=True if hybrid else None,
            semantic_weight=semantic_weight,
            keyword_weight=keyword_weight,
            model=model,
        )
    )

    result = ContextAssembler(provider).assemble(user_id, query, options)

    if output_format == "json":
        click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return

    if output_format == "prompt":
        click.echo(build_rag_prompt(result.context, query, result.sources))
        return

    if result.chunks_included == 0:
        click.echo("No relevant context found.")
        if result.truncated:
            click.echo("The token budget left no room for context.")
        return

    click.echo(result.context)
    click.echo("")
    click.echo(
        f"Chunks: {result.chunks_included} | Tokens: {format_token_count(result.tokens_used)}"
        + (" | truncated" if result.truncated else "")
    )
    if result.sources:
        click.echo("Sources:")
        for i, source in enumerate(result.sources, 1):
            click.echo(
                f"  {i}. {source.title} ({source.category}) "
                f"score={source.score:.3f} chunks={source.chunk_count}"
            )


@cli.command()
@click.argument("corpus", type=CORPUS_PATH)
@click.argument("query", type=str)
@click.option("--user", "user_id", default="default", show_default=True)
@click.option("--category", "categories", multiple=True, type=click.Choice(RAG_CATEGORIES))
@click.option("--limit", default=5, type=int, help="Number of chunks searched")
@click.option("--threshold", type=float, help="Minimum relevance score (default 0.6)")
@click.option("--format", "output_format", default="text", type=click.Choice(["text", "json"]))
def documents(corpus, query, user_id, categories, limit, threshold, output_format):
    """List documents relevant to QUERY."""
    _, provider = load_provider(corpus)
    options = RagContextOptions(
        categories=tuple(categories) or None, max_chunks=limit, threshold=threshold
    )
    matches = ContextAssembler(provider).relevant_documents(user_id, query, options)

    if output_format == "json":
        click.echo(json.dumps({"query": query, "documents": [asdict(m) for m in matches]}, indent=2))
        return

    if not matches:
        click.echo("No relevant documents found.")
    for i, match in enumerate(matches, 1):
        click.echo(f"{i}. [{match.id}] {match.title} ({match.category}) score={match.score:.3f}")


@cli.command()
@click.argument("corpus", type=CORPUS_PATH)
@click.option("--user", "user_id", default="default", show_default=True)
def stats(corpus, user_id):
    """Show RAG statistics for a user."""
    store, _ = load_provider(corpus)
    rag_stats = store.get_rag_stats(user_id)

    click.echo(f"Documents: {rag_stats.total_documents}")
    click.echo(f"Chunks: {rag_stats.total_chunks}")
    click.echo(f"Embedded documents available: {'yes' if rag_stats.has_embedded_documents else 'no'}")
    for category, count in sorted(rag_stats.documents_by_category.items()):
        click.echo(f"  {category}: {count}")


@cli.command()
@click.argument("model", type=str)
@click.option("--total", type=int, help="Rescale the profile to this total")
def budget(model, total):
    """Show the token budget for MODEL."""
    token_budget = get_token_budget(model, total)
    click.echo(f"Total: {token_budget.total}")
    click.echo(f"System: {token_budget.system}")
    click.echo(f"Context: {token_budget.context}")
    click.echo(f"Response: {token_budget.response}")
    click.echo(f"Reserved: {token_budget.reserved}")
    click.echo(f"Available for context: {max(0, get_available_context_tokens(token_budget))}")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
