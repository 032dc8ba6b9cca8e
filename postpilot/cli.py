import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.traceback import install

from .ai.manager import Manager
from .config import (
    FileConfigSource,
    SUPPORTED_PROVIDERS,
    get_config_path,
    get_db_path,
    load_config,
    update_config,
)
from .decorators import handle_errors
from .encryption import ApiKeyCipher
from .injector import ContentInjector
from .models import FAQ_LAYOUTS, CandidateLink, FaqItem, Feature, FeatureResult
from .storage import SQLStore

# Initialize Rich Traceback for better error messages
install()

console = Console()

# Configure logging to use Rich's RichHandler
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True)]
)
logger = logging.getLogger(__name__)

app = typer.Typer(help="AI-generated FAQs, summaries and internal links for your content")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose mode"),
    config_file: Optional[Path] = typer.Option(
        None, "--config-file", "-c", help="Configuration file (default: ~/.config/postpilot/config.json)"
    ),
):
    """
    postpilot - content enhancement with OpenAI, Claude, Gemini and Grok.

    Results are cached for 24 hours and generation is rate limited per user,
    both persisted in a local SQLite database.
    """
    ctx.obj = {"config_path": config_file or get_config_path()}

    if verbose or load_config(ctx.obj["config_path"]).debug_logging:
        logging.getLogger("postpilot").setLevel(logging.DEBUG)
        if verbose:
            console.print("[bold green]Verbose mode enabled.[/bold green]")


def _config_path(ctx: typer.Context) -> Path:
    if ctx.obj and ctx.obj.get("config_path"):
        return ctx.obj["config_path"]
    return get_config_path()


@contextmanager
def _open_manager(ctx: typer.Context) -> Iterator[Manager]:
    """Manager over the configured SQLite store, closed on exit."""
    path = _config_path(ctx)
    store = SQLStore(get_db_path(load_config(path)))
    try:
        yield Manager(FileConfigSource(path), store=store, cipher=ApiKeyCipher.from_env())
    finally:
        store.close()


def _read_content(content_file: Path) -> str:
    if not content_file.is_file():
        raise FileNotFoundError(str(content_file))
    return content_file.read_text(encoding="utf-8")


def _read_candidates(candidates_file: Optional[Path]) -> Optional[List[CandidateLink]]:
    """Load link candidates from a JSON array of {id, title, url} objects."""
    if candidates_file is None:
        return None
    if not candidates_file.is_file():
        raise FileNotFoundError(str(candidates_file))
    try:
        data = json.loads(candidates_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"{candidates_file} is not valid JSON: {e}")
    if not isinstance(data, list):
        raise ValueError(f"{candidates_file} must contain a JSON array")
    try:
        return [CandidateLink.from_dict(item) for item in data]
    except (KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"Invalid candidate in {candidates_file}: {e}")


def _read_faq_items(items_file: Path) -> List[FaqItem]:
    """Load FAQ items from a JSON array of {question, answer} objects."""
    if not items_file.is_file():
        raise FileNotFoundError(str(items_file))
    try:
        data = json.loads(items_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"{items_file} is not valid JSON: {e}")
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValueError(f"{items_file} must contain a JSON array of objects")
    return [FaqItem(str(item.get("question", "")), str(item.get("answer", ""))) for item in data]


def _report_failure(result: FeatureResult) -> None:
    error = result.error
    console.print(f"[bold red]Error:[/bold red] {error.message}")
    wait_time = getattr(error, "retry_after", None)
    if wait_time:
        console.print(f"[yellow]Try again in {wait_time} seconds[/yellow]")


def _print_result(result: FeatureResult, json_output: bool) -> None:
    """Print a feature result, exiting with code 2 when it failed."""
    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        if not result.ok:
            raise typer.Exit(code=2)
        return

    if not result.ok:
        _report_failure(result)
        raise typer.Exit(code=2)

    if result.feature is Feature.SUMMARY:
        console.print(Panel(result.value, title="Summary", expand=False))
    elif result.feature is Feature.FAQ:
        table = Table(title="Frequently Asked Questions", show_lines=True)
        table.add_column("Question", style="cyan")
        table.add_column("Answer")
        for item in result.value:
            table.add_row(item.question, item.answer)
        console.print(table)
    elif result.value:
        table = Table(title="Internal Links")
        table.add_column("Keyword", style="cyan")
        table.add_column("Target", style="green")
        for suggestion in result.value:
            table.add_row(suggestion.keyword, str(suggestion.target_id))
        console.print(table)
    else:
        console.print("[yellow]No internal links suggested[/yellow]")

    if result.from_cache:
        console.print("[dim]Served from cache[/dim]")
    elif result.meta:
        console.print(f"[dim]Generated with {result.meta['provider']} ({result.meta['model']})[/dim]")


# ============================================================================
# Feature Commands
# ============================================================================

@app.command()
@handle_errors
def faq(
    ctx: typer.Context,
    content_file: Path = typer.Argument(..., help="HTML or text file with the content"),
    resource_id: Optional[str] = typer.Option(None, "--id", help="Resource id (default: file name)"),
    user: str = typer.Option("0", "--user", "-u", help="User charged for the generation"),
    demo: bool = typer.Option(False, "--demo", help="Show demo FAQ if generation fails"),
    save: bool = typer.Option(False, "--save", help="Save the generated FAQ with the resource"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
):
    """
    Generate FAQ items for a piece of content.

    Example:
        postpilot faq article.html --id 42
    """
    content = _read_content(content_file)
    with _open_manager(ctx) as manager:
        generate = manager.save_generated_faq if save else manager.get_faq
        result = generate(resource_id or content_file.stem, content, user_id=user)

    if not result.ok and demo:
        _report_failure(result)
        console.print("[dim]Showing demo FAQ[/dim]")
        result = FeatureResult.success(Feature.FAQ, Manager.get_demo_faq())
    _print_result(result, json_output)


@app.command()
@handle_errors
def summary(
    ctx: typer.Context,
    content_file: Path = typer.Argument(..., help="HTML or text file with the content"),
    resource_id: Optional[str] = typer.Option(None, "--id", help="Resource id (default: file name)"),
    user: str = typer.Option("0", "--user", "-u", help="User charged for the generation"),
    demo: bool = typer.Option(False, "--demo", help="Show demo summary if generation fails"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
):
    """
    Generate a 2-3 sentence summary of a piece of content.

    Example:
        postpilot summary article.html --id 42
    """
    content = _read_content(content_file)
    with _open_manager(ctx) as manager:
        result = manager.get_summary(resource_id or content_file.stem, content, user_id=user)

    if not result.ok and demo:
        _report_failure(result)
        console.print("[dim]Showing demo summary[/dim]")
        result = FeatureResult.success(Feature.SUMMARY, Manager.get_demo_summary())
    _print_result(result, json_output)


@app.command()
@handle_errors
def links(
    ctx: typer.Context,
    content_file: Path = typer.Argument(..., help="HTML or text file with the content"),
    candidates_file: Optional[Path] = typer.Option(
        None, "--candidates", help="JSON array of {id, title, url} resources that may be linked"
    ),
    resource_id: Optional[str] = typer.Option(None, "--id", help="Resource id (default: file name)"),
    user: str = typer.Option("0", "--user", "-u", help="User charged for the generation"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
):
    """
    Suggest internal links from the content to other resources.

    Example:
        postpilot links article.html --candidates posts.json --id 42
    """
    content = _read_content(content_file)
    candidates = _read_candidates(candidates_file) or []
    with _open_manager(ctx) as manager:
        result = manager.get_internal_links(
            resource_id or content_file.stem, content, candidates, user_id=user
        )
    _print_result(result, json_output)


@app.command()
@handle_errors
def enhance(
    ctx: typer.Context,
    content_file: Path = typer.Argument(..., help="HTML file with the content"),
    candidates_file: Optional[Path] = typer.Option(
        None, "--candidates", help="JSON array of {id, title, url} resources that may be linked"
    ),
    resource_id: Optional[str] = typer.Option(None, "--id", help="Resource id (default: file name)"),
    user: str = typer.Option("0", "--user", "-u", help="User charged for the generation"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write HTML here instead of stdout"),
):
    """
    Render content with every enabled feature injected.

    Features that fail are left out; the content is always written.
    """
    content = _read_content(content_file)
    candidates = _read_candidates(candidates_file) or []
    with _open_manager(ctx) as manager:
        injector = ContentInjector(manager)
        html = injector.enhance(resource_id or content_file.stem, content, candidates, user_id=user)

    if output:
        output.write_text(html, encoding="utf-8")
        console.print(f"[green]✓ Enhanced content written to {output}[/green]")
    else:
        typer.echo(html)


# ============================================================================
# Maintenance Commands
# ============================================================================

@app.command(name="saved-faq")
@handle_errors
def saved_faq(
    ctx: typer.Context,
    resource_id: str = typer.Argument(..., help="Resource the FAQ belongs to"),
    items_file: Optional[Path] = typer.Option(
        None, "--from-file", help="JSON array of {question, answer} items to save"
    ),
    enabled: Optional[bool] = typer.Option(None, "--enable/--disable", help="Show or hide the FAQ for this resource"),
    layout: Optional[str] = typer.Option(None, "--layout", help=f"FAQ layout ({', '.join(FAQ_LAYOUTS)})"),
    delete: bool = typer.Option(False, "--delete", help="Remove the saved FAQ"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
):
    """
    Show or edit the FAQ saved with a resource.

    A saved FAQ is used by enhance instead of generating one and never
    expires. Generate one with: postpilot faq article.html --id 42 --save

    Examples:
        postpilot saved-faq 42 --from-file faq.json --layout static
        postpilot saved-faq 42 --disable
    """
    items = _read_faq_items(items_file) if items_file else None

    with _open_manager(ctx) as manager:
        if delete:
            manager.delete_saved_faq(resource_id)
            console.print(f"[green]✓ Saved FAQ removed for resource {resource_id}[/green]")
            return
        if items is not None or enabled is not None or layout is not None:
            manager.save_faq(resource_id, items, enabled=enabled, layout=layout)
            if not json_output:
                console.print(f"[green]✓ FAQ saved for resource {resource_id}[/green]")
        saved = manager.get_saved_faq(resource_id)

    if json_output:
        typer.echo(json.dumps(saved.to_dict() if saved else None, indent=2))
        return
    if saved is None:
        console.print(f"[yellow]No FAQ saved for resource {resource_id}[/yellow]")
        return

    state = "enabled" if saved.enabled else "disabled"
    table = Table(title=f"Saved FAQ for resource {resource_id} ({state}, {saved.layout})", show_lines=True)
    table.add_column("Question", style="cyan")
    table.add_column("Answer")
    for item in saved.items:
        table.add_row(item.question, item.answer)
    console.print(table)


@app.command(name="validate-key")
@handle_errors
def validate_key(
    ctx: typer.Context,
    provider: Optional[str] = typer.Option(
        None, "--provider", "-p", help=f"Provider to check ({', '.join(SUPPORTED_PROVIDERS)})"
    ),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="Key to check (default: stored key)"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
):
    """
    Check an API key against its provider.

    Example:
        postpilot validate-key --provider claude
    """
    with _open_manager(ctx) as manager:
        result = manager.validate_api_key(api_key=api_key, provider_id=provider)

    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    elif result.ok:
        console.print(f"[green]✓ {result.provider} API key is valid[/green]")
    else:
        console.print(f"[bold red]✗ {result.provider}:[/bold red] {result.error.message}")

    if not result.ok:
        raise typer.Exit(code=2)


@app.command(name="clear-cache")
@handle_errors
def clear_cache(
    ctx: typer.Context,
    resource_id: str = typer.Argument(..., help="Resource whose cached results are dropped"),
):
    """Forget cached FAQ, summary and links for a resource."""
    with _open_manager(ctx) as manager:
        manager.clear_cache(resource_id)
    console.print(f"[green]✓ Cache cleared for resource {resource_id}[/green]")


@app.command()
@handle_errors
def limits(
    ctx: typer.Context,
    user: str = typer.Option("0", "--user", "-u", help="User to inspect"),
    resource_id: Optional[str] = typer.Option(None, "--id", help="Resource for the per-resource limit"),
    reset: bool = typer.Option(False, "--reset", help="Reset the user's daily limit"),
):
    """
    Show how many generations a user has left.

    Example:
        postpilot limits --user 7 --id 42
    """
    with _open_manager(ctx) as manager:
        if reset:
            manager.clear_user_limits(user)
            console.print(f"[green]✓ Daily limit reset for user {user}[/green]")
            return
        status = manager.rate_limit_status(user, resource_id or "")
        config = manager.rate_limiter.limits

    table = Table(title=f"Rate Limits for user {user}")
    table.add_column("Limit", style="cyan")
    table.add_column("Remaining", style="green", justify="right")
    table.add_column("Allowed", justify="right")

    if resource_id:
        table.add_row(
            f"Resource {resource_id} (per {config.post_window // 60} min)",
            str(status.post_remaining),
            str(config.post_limit),
        )
    table.add_row("Daily", str(status.daily_remaining), str(config.daily_limit))
    console.print(table)

    if not status.allowed:
        console.print(f"[yellow]Blocked ({status.scope}); wait {status.wait_time} seconds[/yellow]")


# ============================================================================
# Configuration Commands
# ============================================================================

def _mask(value: Optional[str], cipher: ApiKeyCipher) -> str:
    if not value:
        return "[dim]not set[/dim]"
    if cipher.is_encrypted(value):
        return "[green]encrypted[/green]"
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}...{value[-4:]}"


@app.command()
@handle_errors
def config(
    ctx: typer.Context,
    show: bool = typer.Option(False, "--show", help="Show current configuration"),
    set_provider: Optional[str] = typer.Option(None, "--provider", help="Set the default provider"),
    feature: Optional[str] = typer.Option(None, "--feature", help="Feature to change (faq, summary, internal_links)"),
    feature_provider: Optional[str] = typer.Option(None, "--feature-provider", help="Provider for --feature"),
    feature_enabled: Optional[bool] = typer.Option(None, "--enable/--disable", help="Toggle --feature"),
    vendor: Optional[str] = typer.Option(None, "--vendor", help="Provider whose key or model is set"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="API key for --vendor (stored encrypted)"),
    model: Optional[str] = typer.Option(None, "--model", help="Model for --vendor"),
    cache_ttl: Optional[int] = typer.Option(None, "--cache-ttl", help="Cache lifetime in seconds"),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="SQLite file for cache and rate limits"),
    debug_logging: Optional[bool] = typer.Option(None, "--debug-logging/--no-debug-logging", help="Log provider requests"),
):
    """
    View or edit postpilot configuration.

    Examples:
        # Use Claude for summaries
        postpilot config --feature summary --feature-provider claude

        # Store an OpenAI key
        postpilot config --vendor openai --api-key sk-...

        # Disable internal links
        postpilot config --feature internal_links --disable
    """
    path = _config_path(ctx)
    cipher = ApiKeyCipher.from_env()

    has_settings = any(value is not None for value in (
        set_provider, feature, feature_provider, feature_enabled, vendor,
        api_key, model, cache_ttl, db_path, debug_logging,
    ))

    if show or not has_settings:
        current = load_config(path)

        console.print("\n[bold]postpilot Configuration[/bold]")
        console.print(f"[dim]Location: {path}[/dim]\n")

        console.print(f"[bold cyan]Default provider:[/bold cyan] {current.provider}\n")

        table = Table(title="Providers")
        table.add_column("Provider", style="cyan")
        table.add_column("Model")
        table.add_column("API Key")
        for name, settings in current.providers.items():
            table.add_row(name, settings.model or "", _mask(settings.api_key, cipher))
        console.print(table)

        table = Table(title="Features")
        table.add_column("Feature", style="cyan")
        table.add_column("Enabled")
        table.add_column("Provider")
        table.add_column("Position")
        for name in ("faq", "summary", "internal_links"):
            settings = getattr(current, name)
            table.add_row(
                name,
                "yes" if settings.enabled else "no",
                settings.provider or f"[dim]{current.provider}[/dim]",
                settings.position,
            )
        console.print(table)

        console.print(f"\n  Cache TTL:   {current.cache.ttl}s")
        console.print(f"  Database:    {get_db_path(current)}")
        console.print(f"  Rate limits: {current.rate_limit.post_limit} per resource / "
                      f"{current.rate_limit.post_window}s, {current.rate_limit.daily_limit} per day")
        console.print(f"  Debug log:   {current.debug_logging}")
        if not cipher.enabled:
            console.print("\n[yellow]POSTPILOT_ENCRYPTION_KEY is not set; API keys are stored as plaintext[/yellow]")
        return

    if (api_key is not None or model is not None) and vendor is None:
        raise ValueError("--api-key and --model need --vendor")
    if (feature_provider is not None or feature_enabled is not None) and feature is None:
        raise ValueError("--feature-provider, --enable and --disable need --feature")

    update_config(
        path,
        provider=set_provider,
        feature=feature,
        feature_provider=feature_provider,
        feature_enabled=feature_enabled,
        vendor=vendor,
        api_key=cipher.encrypt(api_key) if api_key is not None else None,
        model=model,
        cache_ttl=cache_ttl,
        db_path=db_path,
        debug_logging=debug_logging,
    )

    changes = []
    if set_provider is not None:
        changes.append(f"Default provider: {set_provider}")
    if feature_provider is not None:
        changes.append(f"{feature} provider: {feature_provider}")
    if feature_enabled is not None:
        changes.append(f"{feature}: {'enabled' if feature_enabled else 'disabled'}")
    if api_key is not None:
        changes.append(f"{vendor} API key: ****")
    if model is not None:
        changes.append(f"{vendor} model: {model}")
    if cache_ttl is not None:
        changes.append(f"Cache TTL: {cache_ttl}s")
    if db_path is not None:
        changes.append(f"Database: {db_path}")
    if debug_logging is not None:
        changes.append(f"Debug logging: {debug_logging}")

    console.print("[green]Configuration updated:[/green]")
    for change in changes:
        console.print(f"  • {change}")


@app.command(name="encrypt-key")
@handle_errors
def encrypt_key(
    value: Optional[str] = typer.Argument(None, help="API key to encrypt"),
    generate: bool = typer.Option(False, "--generate", help="Print a new encryption key"),
):
    """
    Encrypt an API key with POSTPILOT_ENCRYPTION_KEY.

    Use --generate once to create the encryption key, then export it as
    POSTPILOT_ENCRYPTION_KEY before storing API keys.
    """
    if generate:
        typer.echo(ApiKeyCipher.generate_key())
        return

    if not value:
        raise ValueError("Provide an API key or --generate")

    cipher = ApiKeyCipher.from_env()
    if not cipher.enabled:
        raise ValueError("POSTPILOT_ENCRYPTION_KEY is not set (create one with --generate)")
    typer.echo(cipher.encrypt(value))


if __name__ == "__main__":
    app()
