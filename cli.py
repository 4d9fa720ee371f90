import logging
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from typing import Optional

from studypals.config import settings
from studypals.database import SessionLocal, init_db
from studypals.crud import (
    create_user, get_user,
    create_deck, get_decks, add_card, get_card, get_cards, delete_card,
    get_review_logs
)
from studypals.due_queue import due_records
from studypals.exceptions import (
    InvalidGradeError, InvalidRecordError, PersistError, StudyPalsException
)
from studypals.schemas import CardCreate, CardType, DeckCreate, Grade, UserCreate
from studypals.session import (
    SessionState, collect_records, start_review_session, utcnow
)
from studypals.stats import review_stats
from studypals.store import SqlReviewStore

app = typer.Typer(help="StudyPals CLI - flashcards with spaced repetition review")
console = Console()

GRADE_CHOICES = "/".join(g.value for g in Grade)

@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging")):
    """Configure logging for every command"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True
    )

def _card_sides(card):
    """(prompt, answer) for a card, honouring its type"""
    if card.card_type == CardType.REVERSE.value:
        return card.back, card.front
    if card.card_type == CardType.CLOZE.value and card.cloze_mask:
        return card.cloze_mask, card.back
    return card.front, card.back

@app.command()
def init():
    """Initialize database tables"""
    init_db()
    console.print("[green]✓[/green] Database initialized successfully!")

@app.command()
def reset_db():
    """Delete all data and reinitialize database (WARNING: irreversible!)"""
    confirm = typer.confirm("⚠️  This will DELETE ALL DATA. Are you sure?")
    if not confirm:
        console.print("[yellow]Cancelled.[/yellow]")
        return

    import studypals.models  # noqa: F401
    from studypals.database import engine, Base
    console.print("[yellow]Dropping all tables...[/yellow]")
    Base.metadata.drop_all(bind=engine)
    console.print("[yellow]Recreating tables...[/yellow]")
    Base.metadata.create_all(bind=engine)
    console.print("[green]✓[/green] Database reset complete! All data deleted.")

@app.command("create-user")
def create_profile(name: str = typer.Option(..., prompt="Your name")):
    """Create a new user"""
    db = SessionLocal()
    try:
        user = create_user(db, UserCreate(name=name))
        console.print(f"[green]✓[/green] User created! User ID: {user.id}")
    finally:
        db.close()

@app.command("create-deck")
def new_deck(
    user_id: int = typer.Option(..., prompt="User ID"),
    title: str = typer.Option(..., prompt="Deck title")
):
    """Create a flashcard deck"""
    db = SessionLocal()
    try:
        if not get_user(db, user_id):
            console.print(f"[red]✗[/red] User ID {user_id} not found")
            return
        deck = create_deck(db, DeckCreate(user_id=user_id, title=title))
        console.print(f"[green]✓[/green] Deck created! Deck ID: {deck.id}")
    finally:
        db.close()

@app.command("add-card")
def add(
    deck_id: int = typer.Option(..., prompt="Deck ID"),
    front: str = typer.Option(..., prompt="Front"),
    back: str = typer.Option(..., prompt="Back"),
    card_type: CardType = typer.Option(CardType.BASIC, help="basic, cloze or reverse"),
    cloze_mask: Optional[str] = typer.Option(None, help="Cloze text, e.g. 'The {{c1::mitochondria}} ...'")
):
    """Add a flashcard to a deck"""
    db = SessionLocal()
    try:
        card = add_card(db, CardCreate(
            deck_id=deck_id,
            front=front,
            back=back,
            card_type=card_type,
            cloze_mask=cloze_mask
        ))
        console.print(f"[green]✓[/green] Card added! Card ID: {card.id}")
    except StudyPalsException as e:
        console.print(f"[red]✗[/red] {e}")
    finally:
        db.close()

@app.command("delete-card")
def remove(card_id: str):
    """Delete a flashcard and its review history"""
    db = SessionLocal()
    try:
        delete_card(db, card_id)
        console.print(f"[green]✓[/green] Card {card_id} deleted")
    except StudyPalsException as e:
        console.print(f"[red]✗[/red] {e}")
    finally:
        db.close()

@app.command("list-cards")
def decks(user_id: int):
    """List decks and cards"""
    db = SessionLocal()
    try:
        user_decks = get_decks(db, user_id)
        if not user_decks:
            console.print(f"[yellow]No decks found for user {user_id}[/yellow]")
            return

        for deck in user_decks:
            console.print(f"\n[bold]{deck.title}[/bold] (deck {deck.id}, {len(deck.cards)} cards)")
            table = Table(show_header=True, header_style="bold magenta")
            table.add_column("Card ID", style="dim")
            table.add_column("Type", style="cyan")
            table.add_column("Front", style="green")
            table.add_column("Next Review", style="yellow")

            for card in deck.cards:
                record = card.review_record
                if record is None:
                    next_review = "New"
                elif record.needs_repair:
                    next_review = "[red]Needs repair[/red]"
                else:
                    next_review = record.due_at.strftime("%Y-%m-%d")
                table.add_row(card.id, card.card_type, card.front[:50], next_review)

            console.print(table)
    finally:
        db.close()

@app.command()
def due(user_id: int):
    """Show how many cards are due and which come first"""
    db = SessionLocal()
    try:
        cards = get_cards(db, user_id)
        store = SqlReviewStore(db, user_id)
        now = utcnow()
        card_ids = [c.id for c in cards]

        records = collect_records(store, user_id, card_ids, now)
        due_now = due_records(records.values(), now)
        count = len(due_now)
        console.print(f"\n[bold]Cards due for review: {count}[/bold]")
        if not count:
            return

        cards_by_id = {c.id: c for c in cards}
        limit = settings.review_preview_limit

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Front", style="green")
        table.add_column("Due", style="yellow")
        table.add_column("Interval", style="blue", justify="right")
        table.add_column("Ease", style="cyan", justify="right")

        for record in due_now[:limit]:
            card = cards_by_id.get(record.card_id)
            front = card.front[:50] if card else record.card_id
            due_str = "New" if record.is_new else record.due_at.strftime("%Y-%m-%d")
            table.add_row(front, due_str, f"{record.interval_days} d", f"{record.ease_factor:.2f}")

        console.print(table)
        if count > limit:
            console.print(f"[dim]... and {count - limit} more cards[/dim]")
    finally:
        db.close()

def _save_with_retry(session):
    """Offer retries after a failed save; returns False if the user gives up"""
    while session.state == SessionState.PERSIST_FAILED:
        if not typer.confirm("Saving failed. Retry?", default=True):
            session.cancel()
            console.print("[yellow]Session cancelled. The last grade was not saved.[/yellow]")
            return False
        try:
            session.retry()
        except PersistError as e:
            console.print(f"[red]✗[/red] {e}")
    return True

@app.command()
def review(user_id: int):
    """Review due cards one at a time (enter q to stop)"""
    db = SessionLocal()
    try:
        if not get_user(db, user_id):
            console.print(f"[red]✗[/red] User ID {user_id} not found")
            return

        cards_by_id = {c.id: c for c in get_cards(db, user_id)}
        store = SqlReviewStore(db, user_id)
        try:
            session = start_review_session(store, user_id, list(cards_by_id))
        except StudyPalsException as e:
            console.print(f"[red]✗[/red] {e}")
            return

        total = len(session.queue)
        if session.state == SessionState.COMPLETED:
            console.print("[green]Nothing due. Come back later![/green]")
            return

        console.print(f"\n[bold]Reviewing {total} card(s)[/bold]")
        while session.state == SessionState.PRESENTING:
            card = cards_by_id[session.current_card_id]
            prompt_side, answer_side = _card_sides(card)
            snap = session.snapshot()

            console.print(f"\n[cyan]Card {snap.position + 1}/{snap.total}[/cyan]")
            console.print(f"[bold]{prompt_side}[/bold]")
            typer.prompt("Press Enter to show the answer", default="", show_default=False)
            session.reveal()
            console.print(f"[green]{answer_side}[/green]")

            while session.state == SessionState.AWAITING_GRADE:
                answer = typer.prompt(f"Grade ({GRADE_CHOICES}, q to quit)")
                if answer.strip().lower() == "q":
                    session.cancel()
                    break
                try:
                    result = session.grade(answer)
                    console.print(
                        f"  Next review: {result.record.due_at.strftime('%Y-%m-%d')} "
                        f"(in {result.record.interval_days} days)"
                    )
                except InvalidGradeError as e:
                    console.print(f"[red]✗[/red] {e}")
                except InvalidRecordError as e:
                    console.print(f"[red]✗[/red] {e} - card flagged for repair and skipped")
                except PersistError as e:
                    console.print(f"[red]✗[/red] {e}")
                    if not _save_with_retry(session):
                        break

        snap = session.snapshot()
        if snap.state == SessionState.COMPLETED:
            console.print(f"\n[green]✓[/green] Session complete! Reviewed {snap.reviewed} card(s).")
        else:
            console.print(f"\n[yellow]Stopped after {snap.reviewed} of {snap.total} card(s).[/yellow]")
    finally:
        db.close()

@app.command()
def stats(user_id: int):
    """View review statistics"""
    db = SessionLocal()
    try:
        user = get_user(db, user_id)
        if not user:
            console.print(f"[red]✗[/red] User ID {user_id} not found")
            return

        store = SqlReviewStore(db, user_id)
        summary = review_stats(store.load_all(), utcnow())
        new_cards = sum(1 for c in get_cards(db, user_id) if c.review_record is None)

        console.print(f"\n[bold]Review Progress - {user.name}[/bold]\n")
        console.print(f"  Cards in review: {summary.total}")
        console.print(f"  New cards: {new_cards}")
        console.print(f"  Due now: {summary.due}")
        console.print(f"  Reviewed today: {summary.reviewed_today}")
        console.print(f"  Learning (< {settings.learning_threshold_days} days): {summary.learning}")
        console.print(f"  Mature (>= {settings.mature_threshold_days} days): {summary.mature}")
        flagged = store.flagged_card_ids()
        if flagged:
            console.print(f"  [red]Needs repair: {len(flagged)}[/red] (use reset-card to start them over)")
    finally:
        db.close()

@app.command()
def reset_card(card_id: str):
    """Forget a card's review progress so it starts over as new"""
    db = SessionLocal()
    try:
        card = get_card(db, card_id)
        if not card:
            console.print(f"[red]✗[/red] Card {card_id} not found")
            return

        store = SqlReviewStore(db, card.deck.user_id)
        if store.reset(card_id):
            console.print(f"[green]✓[/green] Card {card_id} reset; it will be reviewed as new")
        else:
            console.print(f"[yellow]Card {card_id} has not been reviewed yet[/yellow]")
    finally:
        db.close()

@app.command()
def history(user_id: int, limit: int = typer.Option(10, help="Number of reviews to show")):
    """Show recent reviews"""
    db = SessionLocal()
    try:
        logs = get_review_logs(db, user_id, limit=limit)
        if not logs:
            console.print(f"[yellow]No reviews yet for user {user_id}[/yellow]")
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Reviewed", style="cyan")
        table.add_column("Card", style="green")
        table.add_column("Grade", style="yellow")
        table.add_column("Interval", style="blue", justify="right")

        for log in logs:
            table.add_row(
                log.reviewed_at.strftime("%Y-%m-%d %H:%M"),
                log.card.front[:40] if log.card else log.card_id,
                log.grade,
                f"{log.interval_days} d"
            )

        console.print(table)
    finally:
        db.close()

if __name__ == "__main__":
    app()
