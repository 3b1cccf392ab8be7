"""Main entry point for the creeble command line tool.

Sets up the Typer CLI application, resolves settings and builds the client
(Composition Root), and renders results through the ConsoleDisplay.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import typer

from creeble.client import Creeble
from creeble.domain.interfaces.user_interface import UserInterface
from creeble.domain.models.common import DEFAULT_PAGE_SIZE, Query
from creeble.domain.models.errors import ApiError, ConfigurationError
from creeble.domain.models.pagination import DEFAULT_CONCURRENCY, Strategy
from creeble.infrastructure.cli.display import ConsoleDisplay
from creeble.infrastructure.config.settings import load_settings
from creeble.infrastructure.monitoring.logger_setup import setup_logging

logger = logging.getLogger(__name__)

T = TypeVar("T")

app = typer.Typer(
    name="creeble",
    help="Fetch collections, items and forms from the Creeble content API.",
    add_completion=False,
)


# --- Helpers ---

def parse_pairs(pairs: Optional[List[str]], option_name: str) -> Dict[str, Any]:
    """Parses repeated key=value options. A repeated key collects a list."""
    parsed: Dict[str, Any] = {}
    for pair in pairs or []:
        key, separator, value = pair.partition("=")
        if not separator or not key:
            raise typer.BadParameter(f"Expected key=value, got '{pair}'", param_hint=option_name)
        if key in parsed:
            existing = parsed[key]
            parsed[key] = existing + [value] if isinstance(existing, list) else [existing, value]
        else:
            parsed[key] = value
    return parsed


def create_client(ctx: typer.Context) -> Creeble:
    """Resolves settings, configures logging and builds the client."""
    options = ctx.obj or {}
    settings = load_settings(config_file=options.get("config_file"), overrides=options.get("overrides"))
    setup_logging(
        log_level=logging.DEBUG if options.get("verbose") else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
    )
    return Creeble.from_settings(settings)


def run_command(ctx: typer.Context, action: Callable[[Creeble, UserInterface], Awaitable[T]]) -> T:
    """Runs an async command body, turning client errors into exit code 1."""
    ui = ConsoleDisplay()

    async def runner() -> T:
        client = create_client(ctx)
        async with client:
            return await action(client, ui)

    try:
        return asyncio.run(runner())
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        ui.display_error(f"Configuration error: {e}")
        raise typer.Exit(code=1)
    except ApiError as e:
        logger.error(f"API request failed: {e.kind.value}: {e}")
        ui.display_error(f"{e} ({e.kind.value})", details=e.errors or None)
        raise typer.Exit(code=1)


# --- Shared options ---

FilterOption = Annotated[
    Optional[List[str]],
    typer.Option("--filter", "-f", help="Filter as key=value. Repeat for several filters."),
]


# --- CLI Commands ---

@app.command()
def ping(ctx: typer.Context):
    """Test the API connection."""
    async def action(client: Creeble, ui: UserInterface) -> None:
        ui.display_json(await client.ping(), title="Ping")

    run_command(ctx, action)


@app.command()
def version(ctx: typer.Context):
    """Show API version information."""
    async def action(client: Creeble, ui: UserInterface) -> None:
        ui.display_json(await client.version(), title="Version")

    run_command(ctx, action)


@app.command(name="list")
def list_command(
    ctx: typer.Context,
    resource: Annotated[str, typer.Argument(help="Endpoint name, e.g. 'blog-posts'.")],
    page: Annotated[int, typer.Option(min=1, help="Page number.")] = 1,
    limit: Annotated[int, typer.Option(min=1, help="Items per page.")] = 20,
    filters: FilterOption = None,
    sort: Annotated[Optional[str], typer.Option(help="Field to sort by.")] = None,
    order: Annotated[str, typer.Option(help="Sort direction: asc or desc.")] = "asc",
    fields: Annotated[Optional[str], typer.Option(help="Comma-separated fields to return.")] = None,
):
    """List one page of a collection."""
    try:
        query = Query(
            filters=parse_pairs(filters, "--filter"),
            sort=(sort, order) if sort else None,
            fields=tuple(name.strip() for name in fields.split(",") if name.strip()) if fields else None,
        )
    except ValueError as e:
        raise typer.BadParameter(str(e))

    async def action(client: Creeble, ui: UserInterface) -> None:
        envelope = await client.page_fetcher.fetch_page(resource, page, limit, query)
        ui.display_items(envelope.items, title=resource, pagination=envelope.pagination)

    run_command(ctx, action)


@app.command()
def get(
    ctx: typer.Context,
    resource: Annotated[str, typer.Argument(help="Endpoint name.")],
    item_id: Annotated[str, typer.Argument(metavar="ID", help="Item identifier.")],
):
    """Fetch a single item by id."""
    async def action(client: Creeble, ui: UserInterface) -> None:
        ui.display_json(await client.data.get(resource, item_id), title=f"{resource}/{item_id}")

    run_command(ctx, action)


@app.command(name="all")
def all_command(
    ctx: typer.Context,
    resource: Annotated[str, typer.Argument(help="Endpoint name.")],
    strategy: Annotated[Strategy, typer.Option(case_sensitive=False, help="Traversal strategy.")] = Strategy.SEQUENTIAL,
    concurrency: Annotated[int, typer.Option(min=1, help="Pages fetched in parallel (concurrent).")] = DEFAULT_CONCURRENCY,
    page_size: Annotated[int, typer.Option(min=1, help="Items per page (max 25).")] = DEFAULT_PAGE_SIZE,
    max_items: Annotated[Optional[int], typer.Option(min=0, help="Refuse collections larger than this.")] = None,
    filters: FilterOption = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print items as JSON instead of a table.")] = False,
):
    """Fetch every page of a collection."""
    filter_values = parse_pairs(filters, "--filter")

    async def action(client: Creeble, ui: UserInterface) -> None:
        items = await client.data.get_all_pages(
            resource,
            filter_values,
            strategy=strategy,
            page_size=page_size,
            concurrency=concurrency,
            max_items=max_items,
        )
        if as_json:
            ui.display_json(items)
        else:
            ui.display_items(items, title=f"{resource} ({len(items)} items)")

    run_command(ctx, action)


@app.command()
def find(
    ctx: typer.Context,
    resource: Annotated[str, typer.Argument(help="Endpoint name.")],
    field: Annotated[str, typer.Argument(help="Field to match, e.g. 'slug'.")],
    value: Annotated[str, typer.Argument(help="Value the field must equal.")],
    kind: Annotated[str, typer.Option(help="Item kind: pages or rows.")] = "pages",
):
    """Find the first item whose field equals a value."""
    if kind not in ("pages", "rows"):
        raise typer.BadParameter("kind must be 'pages' or 'rows'", param_hint="--kind")

    async def action(client: Creeble, ui: UserInterface) -> bool:
        item = await client.data.find_by(resource, field, value, kind)
        if item is None:
            ui.display_warning(f"No {kind} in '{resource}' with {field}={value}")
            return False
        ui.display_json(item, title=f"{field}={value}")
        return True

    if not run_command(ctx, action):
        raise typer.Exit(code=1)


@app.command()
def exists(
    ctx: typer.Context,
    resource: Annotated[str, typer.Argument(help="Endpoint name.")],
    item_id: Annotated[str, typer.Argument(metavar="ID", help="Item identifier.")],
):
    """Check whether an item exists. Exits with 1 when it does not."""
    async def action(client: Creeble, ui: UserInterface) -> bool:
        found = await client.data.exists(resource, item_id)
        ui.display_info(f"{resource}/{item_id} {'exists' if found else 'does not exist'}")
        return found

    if not run_command(ctx, action):
        raise typer.Exit(code=1)


@app.command(name="form-schema")
def form_schema(
    ctx: typer.Context,
    endpoint: Annotated[str, typer.Argument(help="Endpoint name.")],
    slug: Annotated[str, typer.Argument(help="Form slug.")],
):
    """Show the schema of a form."""
    async def action(client: Creeble, ui: UserInterface) -> None:
        ui.display_json(await client.forms.get_schema(endpoint, slug), title=f"Form '{slug}'")

    run_command(ctx, action)


@app.command()
def submit(
    ctx: typer.Context,
    endpoint: Annotated[str, typer.Argument(help="Endpoint name.")],
    slug: Annotated[str, typer.Argument(help="Form slug.")],
    data: Annotated[List[str], typer.Option("--data", "-d", help="Field as key=value. Repeat for each field.")],
    validate: Annotated[bool, typer.Option("--validate", help="Validate against the form schema first.")] = False,
):
    """Submit data to a form."""
    form_data = parse_pairs(data, "--data")

    async def action(client: Creeble, ui: UserInterface) -> None:
        if validate:
            result = await client.forms.submit_with_validation(endpoint, slug, form_data)
        else:
            result = await client.forms.submit(endpoint, slug, form_data)
        ui.display_json(result, title="Submitted")

    run_command(ctx, action)


@app.callback()
def main_callback(
    ctx: typer.Context,
    api_key: Annotated[Optional[str], typer.Option("--api-key", help="API key (overrides CREEBLE_API_KEY).")] = None,
    base_url: Annotated[Optional[str], typer.Option("--base-url", help="API host.")] = None,
    config: Annotated[Optional[Path], typer.Option("--config", dir_okay=False, help="YAML configuration file.")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """Global options shared by every command."""
    ctx.obj = {
        "config_file": config,
        "overrides": {"api_key": api_key, "base_url": base_url},
        "verbose": verbose,
    }


def cli_entry_point():
    """Function to be called by the console script entry point."""
    app()


if __name__ == "__main__":
    cli_entry_point()
