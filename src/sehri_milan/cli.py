from __future__ import annotations
import asyncio
import logging
import signal
from typing import NoReturn
import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.table import Table
from sehri_milan.auth import AuthError, SessionStore, SupabaseAuth, demo_session
from sehri_milan.cache import LocalCache
from sehri_milan.chat import ChatSession
from sehri_milan.config import Config
from sehri_milan.formatter import format_share_message, format_shopping_list, share_url
from sehri_milan.generator import CancelToken, GenerationCancelled, GenerationError, chunk_ranges
from sehri_milan.models import AuthSession, PlanRequest, ShoppingEntry
from sehri_milan.parser import split_days
from sehri_milan.planner import PlanService, ShoppingListService
from sehri_milan.store import StoreError, SupabaseStore
from sehri_milan.transport import TransportError, WebSocketTransport

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)


def _fail(message: str) -> NoReturn:
    err_console.print(f"[red]Error:[/red] {message}")
    raise SystemExit(1)


def _load_config() -> Config:
    try:
        return Config()
    except ValidationError:
        _fail("SUPABASE_URL and SUPABASE_ANON_KEY environment variables must be set.")


def _context() -> tuple[AuthSession, Config | None, SupabaseStore | None, LocalCache]:
    sessions = SessionStore()
    try:
        session = sessions.require()
    except AuthError as e:
        _fail(str(e))
    cache = LocalCache(sessions.base_dir)
    if session.is_demo:
        return session, None, None, cache
    config = _load_config()
    return session, config, SupabaseStore(config, session.access_token), cache


@click.group()
@click.option("--verbose", is_flag=True, help="Show diagnostic logging")
def cli(verbose: bool):
    """SehriMilan: Ramadan meal plans and shopping lists."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


# --- account ---

@cli.command()
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True)
def login(email: str, password: str):
    """Sign in with your SehriMilan account."""
    config = _load_config()
    try:
        session = SupabaseAuth(config).sign_in(email.strip(), password)
    except AuthError as e:
        _fail(str(e))
    SessionStore().replace(session)
    name = session.user.display_name or session.user.email
    console.print(f"[green]✓[/green] Signed in as [bold]{name}[/bold]")


@cli.command()
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--name", "display_name", prompt="Display name", default="", show_default=False)
def signup(email: str, password: str, display_name: str):
    """Create a SehriMilan account."""
    config = _load_config()
    try:
        session = SupabaseAuth(config).sign_up(email.strip(), password, display_name.strip() or None)
    except AuthError as e:
        _fail(str(e))
    if session is None:
        console.print("[green]✓[/green] Account created. Check your email to confirm it, then run [bold]sehri login[/bold].")
        return
    SessionStore().replace(session)
    console.print(f"[green]✓[/green] Account created. Signed in as [bold]{session.user.email}[/bold]")


@cli.command()
def logout():
    """Sign out and clear cached plans and lists."""
    sessions = SessionStore()
    session = sessions.load()
    if session is not None and not session.is_demo:
        try:
            SupabaseAuth(Config()).sign_out(session)
        except ValidationError:
            logger.warning("No Supabase configuration; clearing the local session only")
    sessions.clear()
    console.print("[green]✓[/green] Signed out.")


@cli.command()
def demo():
    """Explore SehriMilan with a sample plan and list, no account needed."""
    SessionStore().replace(demo_session())
    console.print("[green]✓[/green] Demo mode started. Try [bold]sehri plan show[/bold] or [bold]sehri shop list[/bold].")


@cli.command()
def whoami():
    """Show the current session."""
    session = SessionStore().load()
    if session is None:
        console.print("Not signed in. Run [bold]sehri login[/bold] or [bold]sehri demo[/bold].")
        return
    mode = " [yellow](demo mode)[/yellow]" if session.is_demo else ""
    console.print(f"{session.user.display_name or 'Blessed User'} <{session.user.email}>{mode}")


# --- plan ---

@cli.group("plan")
def plan():
    """Generate and read your Ramadan meal plan."""
    pass


async def _generate(service: PlanService, request: PlanRequest, transport: WebSocketTransport) -> str:
    token = CancelToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        # No loop signal support (Windows); Ctrl+C falls back to asyncio.run's own cancellation.
        handler_installed = False
    try:
        return await service.generate(request, transport, token)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


@plan.command("generate")
@click.option("--days", type=click.IntRange(min=1), required=True, help="Number of days to plan")
@click.option("--family-size", type=click.IntRange(min=1), default=4, show_default=True)
@click.option("--budget", "daily_budget", type=click.IntRange(min=0), default=500, show_default=True,
              help="Daily budget in INR")
@click.option("--cuisine", default="Indian Desi", show_default=True)
@click.option("--age-groups", default="", help="e.g. 'Adults and kids'")
@click.option("--equipment", default="", help="e.g. 'Stove, Oven'")
@click.option("--food-items", default="", help="Ingredients you'd like used, e.g. 'Chicken, Lentils, Dates'")
def plan_generate(days: int, family_size: int, daily_budget: int, cuisine: str,
                  age_groups: str, equipment: str, food_items: str):
    """Generate a new plan. Replaces your saved plan and resets your shopping list."""
    session, config, store, cache = _context()
    if session.is_demo:
        _fail("Sign in to generate a plan. Demo mode only shows a sample plan.")

    request = PlanRequest(
        days=days, family_size=family_size, daily_budget=daily_budget, cuisine=cuisine,
        age_groups=age_groups, equipment=equipment, food_items=food_items,
    )
    service = PlanService(session, store, cache, config)
    transport = WebSocketTransport(config.ai_stream_url, config.ai_app_id)
    streams = len(chunk_ranges(days, config.chunk_size))
    console.print(f"[dim]Generating {days} days over {streams} parallel streams (Ctrl+C to cancel)...[/dim]")

    try:
        raw = asyncio.run(_generate(service, request, transport))
    except GenerationCancelled:
        _fail("Generation cancelled. Your previous plan was kept.")
    except (GenerationError, StoreError, AuthError, ValueError) as e:
        _fail(f"{e}\nNothing was saved. Run [bold]sehri plan generate[/bold] again to retry.")

    blocks = split_days(raw)
    console.print(f"[green]✓[/green] Saved a {days}-day plan ({len(blocks)} days parsed).")
    console.print("Run [bold]sehri plan show --day 1[/bold] to read it, or [bold]sehri shop list[/bold] for groceries.")


@plan.command("show")
@click.option("--day", "day", type=click.IntRange(min=1), default=None, help="Show one day in full")
def plan_show(day: int | None):
    """Show your plan, or one day of it."""
    session, config, store, cache = _context()
    service = PlanService(session, store, cache, config)
    try:
        days, blocks = service.load()
    except StoreError as e:
        cached = service.cached()
        if cached is None:
            _fail(f"{e}\nRun [bold]sehri plan show[/bold] again to retry.")
        err_console.print(f"[yellow]Could not sync ({e}); showing your cached plan.[/yellow]")
        days, blocks = cached

    if days == 0 and not blocks:
        console.print("No plan found. Run [bold]sehri plan generate[/bold] to create one.")
        return

    if day is not None:
        if day > len(blocks):
            _fail(f"Day {day} is not in your plan text ({len(blocks)} day(s) found).")
        console.print(Markdown(blocks[day - 1].text))
        return

    table = Table(title=f"Your {days}-Day Plan")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Heading")
    table.add_column("Lines", justify="right")
    for block in blocks:
        table.add_row(str(block.index), block.heading.lstrip("# "), str(len(block.text.strip().splitlines())))
    console.print(table)
    if len(blocks) != days:
        console.print(f"[yellow]Note:[/yellow] {days} day(s) were requested but {len(blocks)} were found in the text.")
    console.print("Run [bold]sehri plan show --day N[/bold] to read a day.")


@plan.command("clear")
@click.confirmation_option(prompt="Are you sure you want to clear your plan from the cloud?")
def plan_clear():
    """Delete your saved plan."""
    session, config, store, cache = _context()
    try:
        PlanService(session, store, cache, config).clear()
    except (StoreError, AuthError) as e:
        _fail(str(e))
    console.print("[green]✓[/green] Plan cleared.")


# --- shopping list ---

@cli.group("shop")
def shop():
    """Manage the shopping list built from your plan."""
    pass


def _shopping_service() -> ShoppingListService:
    session, _config, store, cache = _context()
    return ShoppingListService(session, store, cache)


def _print_entries(entries: list[ShoppingEntry]) -> None:
    if not entries:
        console.print("Your shopping list is empty. Run [bold]sehri shop list --refresh[/bold] after generating a plan.")
        return
    table = Table(title="Shopping List")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Item")
    table.add_column("Day")
    table.add_column("Category")
    table.add_column("Status")
    for i, entry in enumerate(entries, start=1):
        status = "[green]✓ Done[/green]" if entry.completed else "[yellow]Pending[/yellow]"
        table.add_row(str(i), entry.label, entry.source_day, entry.category.value, status)
    console.print(table)


def _current_entries(service: ShoppingListService) -> list[ShoppingEntry]:
    try:
        return service.current()
    except StoreError as e:
        _fail(str(e))


def _entry_at(entries: list[ShoppingEntry], index: int) -> ShoppingEntry:
    if index < 1 or index > len(entries):
        _fail(f"Index {index} is out of range. Use 'sehri shop list' to see valid indices.")
    return entries[index - 1]


def _note_demo(service: ShoppingListService) -> None:
    if service.session.is_demo:
        console.print("[dim]Demo mode: changes are not saved.[/dim]")


@shop.command("list")
@click.option("--refresh", is_flag=True, help="Re-extract the list from your plan")
def shop_list(refresh: bool):
    """Show your shopping list."""
    service = _shopping_service()
    try:
        entries = service.load(force_refresh=refresh)
    except StoreError as e:
        cached = service.cached()
        if cached is None:
            _fail(f"{e}\nRun [bold]sehri shop list[/bold] again to retry.")
        err_console.print(f"[yellow]Could not sync ({e}); showing your cached list.[/yellow]")
        entries = cached
    _print_entries(entries)


@shop.command("add")
@click.argument("name")
def shop_add(name: str):
    """Add your own item to the top of the list."""
    service = _shopping_service()
    entries = _current_entries(service)
    try:
        service.add(name, entries)
    except ValueError as e:
        _fail(str(e))
    except StoreError as e:
        _fail(f"Saved locally but could not sync: {e}")
    console.print(f"[green]✓[/green] Added: {name.strip()}")
    _note_demo(service)


@shop.command("toggle")
@click.argument("index", type=int)
def shop_toggle(index: int):
    """Mark an item done (or not done) by its index from 'shop list'."""
    service = _shopping_service()
    entries = _current_entries(service)
    target = _entry_at(entries, index)
    try:
        service.toggle(target.identity, entries)
    except StoreError as e:
        _fail(f"Saved locally but could not sync: {e}")
    state = "pending" if target.completed else "done"
    console.print(f"[green]✓[/green] {target.label} marked {state}.")
    _note_demo(service)


@shop.command("remove")
@click.argument("index", type=int)
def shop_remove(index: int):
    """Remove an item by its index from 'shop list'."""
    service = _shopping_service()
    entries = _current_entries(service)
    target = _entry_at(entries, index)
    try:
        service.remove(target.identity, entries)
    except StoreError as e:
        _fail(f"Saved locally but could not sync: {e}")
    console.print(f"[green]✓[/green] Removed: {target.label}")
    _note_demo(service)


@shop.command("print")
def shop_print():
    """Print the list as a checklist grouped by category."""
    service = _shopping_service()
    entries = _current_entries(service)
    console.print(format_shopping_list(entries) or "Your shopping list is empty.", markup=False, highlight=False)


@shop.command("share")
def shop_share():
    """Print a share message and a WhatsApp link for it."""
    service = _shopping_service()
    entries = _current_entries(service)
    message = format_share_message(entries, service.session.user.display_name)
    console.print(message, markup=False)
    console.print(f"\n{share_url(message)}", markup=False, soft_wrap=True)


# --- chat ---

async def _stream_reply(chat: ChatSession, message: str) -> None:
    async for fragment in chat.send(message):
        console.print(fragment, end="", markup=False, highlight=False)
    console.print()


@cli.command()
def chat():
    """Chat with Nur, the Ramadan culinary assistant. Send an empty line to exit."""
    config = _load_config()
    session = ChatSession(WebSocketTransport(config.ai_stream_url, config.ai_app_id), config.chat_system_prompt)
    console.print("[bold]Nur[/bold]: Assalamu Alaikum! 🌙 How can I help with your Ramadan meals today?\n")
    while True:
        message = click.prompt("You", default="", show_default=False).strip()
        if not message:
            break
        console.print("[bold]Nur[/bold]: ", end="")
        try:
            asyncio.run(_stream_reply(session, message))
        except TransportError as e:
            console.print()
            err_console.print(f"[red]Error:[/red] {e} Please try again.")
