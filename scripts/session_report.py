"""
Print the inspection sessions of a user with their extraction progress.

Usage:
    python scripts/session_report.py <user_id> [--documents]
"""
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from rich.console import Console
from rich.table import Table

from services.db_service import get_repository
from services.session_aggregator import progress_percentage

console = Console()

STATUS_STYLES = {
    "draft": "dim",
    "processing": "cyan",
    "completed": "green",
    "partial": "yellow",
    "failed": "red",
    "pending": "dim",
    "queued": "blue",
    "extracting": "cyan",
    "extracted": "green",
}


def styled(status) -> str:
    value = getattr(status, "value", status)
    style = STATUS_STYLES.get(value, "white")
    return f"[{style}]{value}[/{style}]"


def session_report(user_id: str, show_documents: bool = False):
    repository = get_repository()
    sessions = repository.list_sessions(user_id)

    console.print(f"\n[bold cyan]🗂️  Sessions for {user_id}[/bold cyan]\n")
    table = Table()
    for column in ("Session", "Name", "Status", "Files", "Done", "Failed", "Progress", "Tokens"):
        table.add_column(column)

    for session in sessions:
        table.add_row(
            session.id[:8],
            session.session_name or "-",
            styled(session.status),
            str(session.total_files),
            str(session.processed_files),
            str(session.failed_files),
            f"{progress_percentage(session):.0f}%",
            str(session.total_tokens_used),
        )
    console.print(table)

    if not show_documents:
        return

    for session in sessions:
        docs = repository.list_documents(session_id=session.id)
        doc_table = Table(title=f"{session.session_name or session.id[:8]}")
        for column in ("Document", "Filename", "Extraction", "Attempts", "Priority", "Tokens", "Error"):
            doc_table.add_column(column)
        for doc in docs:
            doc_table.add_row(
                doc.id[:8],
                doc.filename,
                styled(doc.extraction_status),
                f"{doc.extraction_attempts}/{doc.max_extraction_attempts}",
                str(doc.priority),
                str(doc.tokens_used),
                doc.extraction_error or "",
            )
        console.print(doc_table)


if __name__ == "__main__":
    if len(sys.argv) < 2:
        console.print("Usage: python scripts/session_report.py <user_id> [--documents]")
        sys.exit(1)
    session_report(sys.argv[1], show_documents="--documents" in sys.argv[2:])
