"""Command-line interface for novelverse.

Built with Typer for commands and Rich for beautiful output.
"""

import asyncio
from datetime import date
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import __version__
from .api import AuthSession, CredentialStore, NovelVerseClient
from .config import Config, get_config
from .db import Database, LocalProgressStore
from .exceptions import AuthenticationError, NovelVerseError
from .log import setup_logging
from .reading import (
    BookRef,
    ConsoleViewer,
    EventKind,
    ProgressEvent,
    ProgressStore,
    ReadingSessionHost,
    SessionProgressTracker,
)
from .reports import LEGEND, HeatmapGrid, build_heatmap, current_streak

# Create the main app
app = typer.Typer(
    name="novelverse",
    help="Read NovelVerse books and track your reading progress.",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()

LOCAL_USER_ID = "local"

LEVEL_STYLES = ["grey23", "dark_green", "green4", "green3", "bright_green"]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Configure logging for every command."""
    config = get_config()
    setup_logging("DEBUG" if verbose else config.log_level)


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


def open_auth_session(config: Optional[Config] = None) -> AuthSession:
    """Create the API client and restore the saved sign-in."""
    config = config or get_config()
    client = NovelVerseClient(config.api_url, timeout=config.timeout)
    auth = AuthSession(client, CredentialStore(config.credentials_path))
    auth.init()
    return auth


def require_login(auth: AuthSession) -> str:
    """Exit unless signed in; return the user ID."""
    if not auth.is_authenticated:
        print_error("Not logged in. Run 'novelverse login' first.")
        raise typer.Exit(1)
    return auth.user_id


def open_local_store(config: Config, owner_id: Optional[str] = None) -> LocalProgressStore:
    """Open the local SQLite progress store."""
    db = Database(str(config.db_path))
    db.create_tables()
    return LocalProgressStore(db, owner_id=owner_id)


def render_heatmap(grid: HeatmapGrid) -> Text:
    """Render a heatmap grid as rows of weekdays and columns of weeks."""
    text = Text()

    # Month labels, two characters per week column
    header = [" "] * (len(grid.weeks) * 2)
    for label in grid.month_labels:
        start = label.week_index * 2
        for offset, char in enumerate(label.label):
            if start + offset < len(header):
                header[start + offset] = char
    text.append("    " + "".join(header).rstrip() + "\n", style="dim")

    for weekday, name in enumerate(["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]):
        text.append(f"{name} ", style="dim")
        for week in grid.weeks:
            cell = week.cells[weekday]
            if cell.is_padding:
                text.append("  ")
            else:
                text.append("■ ", style=LEVEL_STYLES[cell.level])
        text.append("\n")

    text.append("\nLess ", style="dim")
    for level, _, _ in LEGEND:
        text.append("■ ", style=LEVEL_STYLES[level])
    text.append("More", style="dim")
    return text


def describe_event(event: ProgressEvent) -> Optional[str]:
    """Console line for a tracker event, or None to stay quiet."""
    if event.kind is EventKind.RESUMING:
        return f"[cyan]Resuming from page {event.page}[/cyan]"
    if event.kind is EventKind.SAVED:
        return f"[dim]Progress saved (page {event.page})[/dim]"
    if event.kind is EventKind.COMPLETED:
        return "[bold green]Congratulations, you finished the book![/bold green]"
    if event.kind is EventKind.SAVE_FAILED:
        return f"[yellow]Couldn't save progress ({event.error}); will retry.[/yellow]"
    return None


def _print_event(event: ProgressEvent) -> None:
    line = describe_event(event)
    if line:
        console.print(line)


# ============================================================================
# Account Commands
# ============================================================================


@app.command()
def version() -> None:
    """Show the installed version."""
    console.print(f"novelverse {__version__}")


@app.command()
def login(
    email: str = typer.Option(..., "--email", "-e", prompt=True, help="Account email"),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, help="Account password"
    ),
) -> None:
    """Log in to NovelVerse."""
    auth = open_auth_session()
    try:
        user = auth.login(email, password)
    except AuthenticationError as e:
        print_error(f"Login failed: {e}")
        raise typer.Exit(1)
    except NovelVerseError as e:
        print_error(f"Could not reach NovelVerse: {e}")
        raise typer.Exit(1)

    print_success(f"Logged in as {user.display_name}")


@app.command()
def logout() -> None:
    """Log out and forget the saved token."""
    auth = open_auth_session()
    if not auth.is_authenticated:
        print_info("Not logged in.")
        return
    auth.logout()
    print_success("Logged out.")


@app.command()
def whoami() -> None:
    """Show the signed-in user."""
    auth = open_auth_session()
    if not auth.is_authenticated:
        print_info("Not logged in.")
        raise typer.Exit(1)

    user = auth.user
    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Name", user.display_name)
    table.add_row("Email", user.email)
    table.add_row("Books read", str(user.books_read))
    console.print(table)


# ============================================================================
# Catalog Commands
# ============================================================================


@app.command()
def books(
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Filter by category"),
    featured: bool = typer.Option(False, "--featured", "-f", help="Only featured books"),
) -> None:
    """List books in the catalog."""
    auth = open_auth_session()
    try:
        results = auth.client.get_books(category=category, featured=True if featured else None)
    except NovelVerseError as e:
        print_error(f"Could not load books: {e}")
        raise typer.Exit(1)

    if not results:
        print_info("No books found.")
        return

    table = Table(title="Books", show_header=True, header_style="bold magenta")
    table.add_column("Slug", style="dim")
    table.add_column("Title", style="cyan", max_width=40)
    table.add_column("Author", style="green", max_width=25)
    table.add_column("Category", style="yellow")
    table.add_column("Pages", justify="right")

    for book in results:
        table.add_row(
            book.slug or book.id,
            book.title,
            book.author,
            book.category or "-",
            str(book.page_count) if book.page_count else "-",
        )
    console.print(table)


@app.command()
def favorite(
    book_id: str = typer.Argument(..., help="Book ID"),
    check: bool = typer.Option(False, "--check", help="Only show whether it is a favorite"),
) -> None:
    """Toggle a book in your favorites."""
    auth = open_auth_session()
    require_login(auth)

    try:
        if check:
            is_favorite = auth.client.check_is_favorite(book_id)
            console.print("In favorites." if is_favorite else "Not in favorites.")
            return
        status = auth.client.toggle_favorite(book_id)
    except NovelVerseError as e:
        print_error(f"Failed to update favorites: {e}")
        raise typer.Exit(1)

    print_success(status.message or ("Added to favorites" if status.is_favorite else "Removed from favorites"))


# ============================================================================
# Progress Commands
# ============================================================================


@app.command()
def progress(
    book_id: str = typer.Argument(..., help="Book ID (slug with --local)"),
    local: bool = typer.Option(False, "--local", help="Use the offline progress store"),
) -> None:
    """Show saved progress for a book."""
    config = get_config()
    if local:
        store: ProgressStore = open_local_store(config)
        user_id = LOCAL_USER_ID
    else:
        auth = open_auth_session(config)
        user_id = require_login(auth)
        store = auth.client

    try:
        saved = store.fetch_progress(user_id, book_id)
    except NovelVerseError as e:
        print_error(f"Could not load progress: {e}")
        raise typer.Exit(1)

    if saved is None:
        print_info(f"No progress saved for {book_id}.")
        return

    table = Table(title=f"Progress: {book_id}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Page", f"{saved.current_page} of {saved.total_pages}")
    table.add_row("Progress", f"{saved.progress_percent:.0f}%")
    table.add_row("Completed", "Yes" if saved.is_completed else "No")
    if saved.last_read_at:
        table.add_row("Last read", saved.last_read_at.strftime("%Y-%m-%d %H:%M"))
    console.print(table)


@app.command("continue")
def continue_reading(
    limit: int = typer.Option(10, "--limit", "-l", help="Max books"),
    local: bool = typer.Option(False, "--local", help="Use the offline progress store"),
) -> None:
    """List books you are in the middle of."""
    config = get_config()

    table = Table(title="Continue Reading", show_header=True, header_style="bold magenta")
    table.add_column("Book", style="cyan", max_width=40)
    table.add_column("Page", justify="right")
    table.add_column("Progress", justify="right", style="green")

    if local:
        store = open_local_store(config)
        try:
            entries = store.in_progress(LOCAL_USER_ID, limit=limit)
        except NovelVerseError as e:
            print_error(f"Could not load reading list: {e}")
            raise typer.Exit(1)
        for entry in entries:
            table.add_row(
                entry.book_slug or entry.book_id,
                f"{entry.current_page}/{entry.total_pages}",
                f"{entry.progress_percent:.0f}%",
            )
    else:
        auth = open_auth_session(config)
        require_login(auth)
        try:
            entries = auth.client.get_continue_reading(limit=limit)
        except NovelVerseError as e:
            print_error(f"Could not load reading list: {e}")
            raise typer.Exit(1)
        for entry in entries:
            table.add_row(
                entry.title,
                f"{entry.current_page}/{entry.total_pages}",
                f"{entry.progress_percent:.0f}%",
            )

    if not entries:
        print_info("Nothing in progress.")
        return
    console.print(table)


@app.command()
def heatmap(
    year: Optional[int] = typer.Option(None, "--year", "-y", help="Year (default: current)"),
    local: bool = typer.Option(False, "--local", help="Use the offline progress store"),
) -> None:
    """Display a reading activity heatmap."""
    config = get_config()
    if year is None:
        year = date.today().year

    if local:
        store: ProgressStore = open_local_store(config, owner_id=LOCAL_USER_ID)
    else:
        auth = open_auth_session(config)
        require_login(auth)
        store = auth.client

    try:
        samples = store.fetch_heatmap(year)
    except NovelVerseError as e:
        # Show an empty year rather than failing the whole view
        print_warning(f"Could not load reading activity: {e}")
        samples = []

    grid = build_heatmap(samples, year)
    console.print(Panel(f"[bold]Reading Heatmap: {grid.year}[/bold]", style="magenta"))
    console.print(render_heatmap(grid))

    console.print(f"\n[cyan]Reading Days:[/cyan] {grid.active_days}")
    console.print(f"[cyan]Total Pages:[/cyan] {grid.total_pages:,}")
    console.print(f"[cyan]Longest Streak:[/cyan] {grid.longest_streak} days")
    if year == date.today().year:
        console.print(f"[cyan]Current Streak:[/cyan] {current_streak(grid, date.today())} days")


# ============================================================================
# Reading Session
# ============================================================================


@app.command()
def read(
    slug: str = typer.Argument(..., help="Book slug"),
    pages: Optional[int] = typer.Option(None, "--pages", "-n", help="Total pages (default: book's page count)"),
    local: bool = typer.Option(False, "--local", help="Save progress offline"),
) -> None:
    """Open a book and track your position while you page through it.

    Commands while reading: Enter/n next page, p previous page, a page
    number to jump, + / - / 0 zoom, q to quit.
    """
    config = get_config()

    if local:
        if not pages:
            print_error("--pages is required with --local")
            raise typer.Exit(1)
        store: ProgressStore = open_local_store(config)
        user_id = LOCAL_USER_ID
        book = BookRef(id=slug, slug=slug, title=slug)
        total_pages = pages
    else:
        auth = open_auth_session(config)
        user_id = require_login(auth)
        try:
            found = auth.client.get_book_by_slug(slug)
        except NovelVerseError as e:
            print_error(f"Could not load book: {e}")
            raise typer.Exit(1)
        if found is None:
            print_error(f"Book not found: {slug}")
            raise typer.Exit(1)
        total_pages = pages or found.page_count
        if not total_pages:
            print_error("Book has no page count; pass --pages")
            raise typer.Exit(1)
        store = auth.client
        book = found.to_ref()

    asyncio.run(_reading_loop(store, user_id, book, total_pages, config.debounce_seconds))


async def _reading_loop(
    store: ProgressStore,
    user_id: str,
    book: BookRef,
    total_pages: int,
    debounce_seconds: float,
) -> None:
    viewer = ConsoleViewer(total_pages)
    tracker = SessionProgressTracker(store, debounce_seconds=debounce_seconds)
    tracker.subscribe(_print_event)

    async with ReadingSessionHost(viewer, tracker) as host:
        await host.open(user_id, book, total_pages)
        console.print(Panel(f"[bold]{book.title or book.slug}[/bold]", style="magenta"))

        while True:
            prompt = f"Page {viewer.page}/{total_pages} (zoom {viewer.zoom:.2f}) > "
            try:
                command = (await asyncio.to_thread(console.input, prompt)).strip().lower()
            except EOFError:
                break

            if command in ("q", "quit", "exit"):
                break
            elif command in ("", "n", "next"):
                viewer.next_page()
            elif command in ("p", "prev"):
                viewer.prev_page()
            elif command == "+":
                viewer.zoom_in()
            elif command == "-":
                viewer.zoom_out()
            elif command == "0":
                viewer.reset_zoom()
            elif command.isdigit():
                viewer.seek_to(int(command))
            else:
                print_warning(f"Unknown command: {command}")

    print_info(f"Closed {book.slug} at page {viewer.page}.")


if __name__ == "__main__":
    app()
