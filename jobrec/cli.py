#!/usr/bin/env python3
"""
JobRec CLI - Main command-line interface for job recommendations.
"""

import click
from rich.console import Console
from rich.table import Table

from . import __version__

console = Console()


def _load_engine(postings_path):
    """Load the posting source and build a recommendation engine around it."""
    from .config import get_config_manager
    from .corpus import load_postings
    from .matching import get_recommendation_engine

    path = postings_path or get_config_manager().get('corpus', 'postings_path')
    records = load_postings(path)
    console.print(f"[dim]Loaded {len(records)} job postings from {path}[/dim]")
    return get_recommendation_engine(records)


def _print_results(results, title, postings=None):
    from .config import get_config_manager
    precision = get_config_manager().get('matching', 'score_precision')

    if not results:
        console.print("[yellow]No results found.[/yellow]")
        return

    table = Table(title=title)
    table.add_column("#", style="dim", width=3)
    table.add_column("Score", style="bold green", width=8)
    table.add_column("Job Title", style="bold")
    table.add_column("Type", style="magenta")
    table.add_column("Company", style="yellow")
    table.add_column("Location", style="cyan")
    table.add_column("Salary", style="green")
    table.add_column("Description", style="dim")

    by_id = {posting.id: posting for posting in postings or []}

    for rank, result in enumerate(results, 1):
        description = result.job_description or "N/A"
        posting = by_id.get(result.id)
        table.add_row(
            str(rank),
            f"{result.score:.{precision}f}",
            result.job_title or "N/A",
            result.job_type or "N/A",
            result.company or "N/A",
            (posting.location if posting else None) or "N/A",
            (posting.salary if posting else None) or "N/A",
            description[:80] + "..." if len(description) > 80 else description
        )

    console.print(table)


@click.group()
@click.version_option(version=__version__)
def main():
    """JobRec - Semantic job recommendations from queries and resumes."""
    pass


@main.command("ingest")
@click.option("--postings", "-p", type=click.Path(), help="JSON file of job postings")
def ingest(postings):
    """Embed the job postings and store them in the vector store."""
    try:
        engine = _load_engine(postings)
        added = engine.ingest_corpus()
        if added:
            console.print(f"[green]✓ Ingested {added} job postings[/green]")
        else:
            console.print("[dim]Nothing ingested[/dim]")

    except Exception as e:
        console.print(f"[red]Error during ingestion: {e}[/red]")
        raise click.Abort()


@main.command("search")
@click.argument("query", nargs=-1, required=True)
@click.option("--top-k", "-k", type=int, help="Number of recommendations to show")
@click.option("--postings", "-p", type=click.Path(), help="JSON file of job postings")
@click.option("--show-criteria", is_flag=True, help="Print the filter criteria inferred from the query")
def search(query, top_k, postings, show_criteria):
    """Recommend jobs for a free-text QUERY."""
    from .config import get_config_manager

    text = " ".join(query)
    if top_k is None:
        top_k = get_config_manager().get('matching', 'query_top_k')

    try:
        engine = _load_engine(postings)
        engine.ingest_corpus()

        criteria = None
        if show_criteria:
            criteria = engine.extract_criteria(text)
            _print_criteria(criteria)

        results = engine.recommend_from_query(text, top_k=top_k, criteria=criteria)
        _print_results(results, f"Top matches for \"{text}\"", engine.postings)

    except Exception as e:
        console.print(f"[red]Error during search: {e}[/red]")
        raise click.Abort()


@main.command("resume")
@click.argument("resume_path", required=False, type=click.Path())
@click.option("--top-k", "-k", type=int, help="Number of recommendations to show")
@click.option("--postings", "-p", type=click.Path(), help="JSON file of job postings")
def resume(resume_path, top_k, postings):
    """Recommend jobs for a resume file (PDF, DOCX, TXT or MD)."""
    from .config import get_config_manager

    if not resume_path:
        resume_path = click.prompt("Enter the path to your resume", type=click.Path(exists=True))
    if top_k is None:
        top_k = get_config_manager().get('matching', 'resume_top_k')

    try:
        engine = _load_engine(postings)
        engine.ingest_corpus()

        results = engine.recommend_from_resume(resume_path, top_k=top_k)
        _print_results(results, "Recommended jobs for your resume", engine.postings)

    except Exception as e:
        console.print(f"[red]Error recommending jobs for resume: {e}[/red]")
        raise click.Abort()


def _print_criteria(criteria):
    table = Table(title="Inferred Filter Criteria")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    for field_name, value in criteria.to_dict().items():
        table.add_row(field_name.replace("_", " ").title(), value if value is not None else "[dim]-[/dim]")

    console.print(table)


@main.command("criteria")
@click.argument("query", nargs=-1, required=True)
def criteria(query):
    """Show the filter criteria inferred from QUERY."""
    from .criteria import get_criteria_extractor

    try:
        extractor = get_criteria_extractor()
        _print_criteria(extractor.extract(" ".join(query)))

    except Exception as e:
        console.print(f"[red]Error extracting criteria: {e}[/red]")
        raise click.Abort()


@main.command("status")
def status():
    """Show vector store and embedding service status."""
    from .config import get_config_manager
    from .vector_store import get_vector_store

    config = get_config_manager()
    console.print("[bold green]JobRec System Status[/bold green]")

    table = Table(title="System Overview")
    table.add_column("Component", style="cyan", no_wrap=True)
    table.add_column("Status", style="magenta")
    table.add_column("Details", style="green")

    try:
        with get_vector_store() as store:
            collections = store.list_collections()
        target = config.get('vector_store', 'collection')
        table.add_row("Vector Store", "Connected", config.get('vector_store', 'path'))
        for collection in collections:
            marker = " (active)" if collection['name'] == target else ""
            table.add_row(
                f"Collection{marker}",
                str(collection['count']),
                f"{collection['name']} • {collection['dimension'] or '?'} dims"
            )
        if not any(c['name'] == target for c in collections):
            table.add_row("Collection (active)", "Empty", f"{target} not ingested yet")
    except Exception as e:
        table.add_row("Vector Store", "Error", f"Connection failed: {str(e)[:50]}")

    try:
        from .embeddings import get_embedding_client
        status_info = get_embedding_client().get_status()

        if status_info["connection"] and status_info["model_ready"]:
            table.add_row("Ollama", "Ready", f"Model: {status_info['model']}")
        elif status_info["connection"]:
            table.add_row("Ollama", "Connected", f"Model not ready: {status_info['model']}")
        else:
            table.add_row("Ollama", "Offline", status_info.get("error") or "Connection failed")
    except Exception as e:
        table.add_row("Ollama", "Error", f"Status check failed: {str(e)[:50]}")

    table.add_row("Classifier", "Remote", config.get('classifier', 'model'))

    console.print(table)


@main.command("reset")
@click.option("--confirm", is_flag=True, help="Skip confirmation prompt")
def reset(confirm):
    """Delete the stored job embeddings so the corpus can be re-ingested."""
    from .config import get_config_manager
    from .vector_store import get_vector_store

    collection = get_config_manager().get('vector_store', 'collection')
    if not confirm and not click.confirm(f"Delete collection '{collection}'?"):
        console.print("[yellow]Reset cancelled[/yellow]")
        return

    try:
        with get_vector_store() as store:
            removed = store.delete_collection(collection)
        if removed:
            console.print(f"[green]✓ Deleted collection {collection}[/green]")
        else:
            console.print(f"[yellow]Collection {collection} does not exist[/yellow]")

    except Exception as e:
        console.print(f"[red]Error resetting vector store: {e}[/red]")
        raise click.Abort()


@main.command("test-embedding")
@click.option("--text", default="Senior backend engineer, remote, Python and Go.",
              help="Text to use for testing embeddings")
def test_embedding(text):
    """Test the ollama embedding functionality."""
    from .embeddings import test_embedding_client

    success = test_embedding_client(text)
    if success:
        console.print("[bold green]Embedding test completed successfully![/bold green]")
    else:
        console.print("[bold red]Embedding test failed![/bold red]")


@main.group()
def config():
    """Configuration management."""
    pass


@config.command("show")
def show_config():
    """Display current configuration."""
    from .config import get_config_manager

    try:
        get_config_manager().display_config()
    except Exception as e:
        console.print(f"[red]Error displaying configuration: {e}[/red]")
        raise click.Abort()


@config.command("set")
@click.argument("section")
@click.argument("key")
@click.argument("value")
def set_config(section, key, value):
    """Set configuration value (e.g. config set matching query_top_k 5)."""
    from .config import get_config_manager

    try:
        config_manager = get_config_manager()

        # Convert value to appropriate type based on existing config
        existing_value = config_manager.get(section, key)
        if existing_value is not None:
            if isinstance(existing_value, bool):
                value = value.lower() in ('true', '1', 'yes', 'on')
            elif isinstance(existing_value, int):
                try:
                    value = int(value)
                except ValueError:
                    console.print(f"[red]Invalid integer value: {value}[/red]")
                    return
            elif isinstance(existing_value, float):
                try:
                    value = float(value)
                except ValueError:
                    console.print(f"[red]Invalid float value: {value}[/red]")
                    return

        if config_manager.set(section, key, value):
            console.print(f"[green]✓ Set {section}.{key} = {value}[/green]")
        else:
            console.print("[red]✗ Failed to set configuration[/red]")

    except Exception as e:
        console.print(f"[red]Error setting configuration: {e}[/red]")
        raise click.Abort()


@config.command("env")
@click.argument("key")
@click.argument("value")
def set_env_var(key, value):
    """Set environment variable in .env file."""
    from .config import get_config_manager

    try:
        if get_config_manager().set_env_var(key, value):
            console.print(f"[green]✓ Set environment variable {key}[/green]")
            console.print("[dim]Configuration reloaded with new environment variable[/dim]")
        else:
            console.print("[red]✗ Failed to set environment variable[/red]")

    except Exception as e:
        console.print(f"[red]Error setting environment variable: {e}[/red]")
        raise click.Abort()


@config.command("unset")
@click.argument("key")
def unset_env_var(key):
    """Remove environment variable from .env file."""
    from .config import get_config_manager

    try:
        if get_config_manager().unset_env_var(key):
            console.print(f"[green]✓ Removed environment variable {key}[/green]")
        else:
            console.print("[red]✗ Failed to remove environment variable[/red]")

    except Exception as e:
        console.print(f"[red]Error removing environment variable: {e}[/red]")
        raise click.Abort()


@config.command("validate")
def validate_config():
    """Validate current configuration."""
    from .config import get_config_manager

    try:
        issues = get_config_manager().validate_config()

        if not issues:
            console.print("[green]✓ Configuration validation passed[/green]")
        else:
            console.print("[red]Configuration validation failed:[/red]")
            for issue in issues:
                console.print(f"[red]• {issue}[/red]")

    except Exception as e:
        console.print(f"[red]Error validating configuration: {e}[/red]")
        raise click.Abort()


@config.command("reset")
@click.option("--confirm", is_flag=True, help="Skip confirmation prompt")
def reset_config(confirm):
    """Reset configuration to default values."""
    from .config import get_config_manager

    if not confirm and not click.confirm("Reset all configuration to defaults?"):
        console.print("[yellow]Reset cancelled[/yellow]")
        return

    try:
        if get_config_manager().reset_to_defaults():
            console.print("[green]✓ Configuration reset to defaults[/green]")
        else:
            console.print("[red]✗ Failed to reset configuration[/red]")

    except Exception as e:
        console.print(f"[red]Error resetting configuration: {e}[/red]")
        raise click.Abort()


@config.command("template")
@click.option("--output", "-o", help="Output file path")
def export_template(output):
    """Export .env template file."""
    from .config import get_config_manager

    try:
        if get_config_manager().export_env_template(output):
            console.print("[cyan]Edit the template file and rename to .env to use[/cyan]")

    except Exception as e:
        console.print(f"[red]Error exporting template: {e}[/red]")
        raise click.Abort()


@config.command("info")
def connection_info():
    """Show connection information for configured services."""
    from .config import get_config_manager

    try:
        info = get_config_manager().get_connection_info()

        console.print("[bold cyan]Service Connection Information[/bold cyan]")

        console.print("\n[bold]Vector Store:[/bold]")
        console.print(f"  Path: {info['vector_store']['path']}")
        console.print(f"  Collection: {info['vector_store']['collection']}")
        console.print(f"  Metric: {info['vector_store']['metric']}")
        console.print(f"  Exists: {'✓' if info['vector_store']['exists'] else '✗'}")

        console.print("\n[bold]Ollama:[/bold]")
        console.print(f"  URL: {info['ollama']['url']}")
        console.print(f"  Model: {info['ollama']['model']}")

        console.print("\n[bold]Classifier:[/bold]")
        console.print(f"  Model: {info['classifier']['model']}")
        console.print(f"  Token: {'✓' if info['classifier']['authenticated'] else '✗'}")

    except Exception as e:
        console.print(f"[red]Error getting connection info: {e}[/red]")
        raise click.Abort()


if __name__ == "__main__":
    main()
