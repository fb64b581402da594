import asyncio
import sys
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from doc_chat.context import build_context
from doc_chat.exception import DocChatException

console = Console()


async def chat_loop(source: str) -> None:
    console.print("[bold cyan]Initializing pipeline...[/bold cyan]")
    ctx = build_context()
    await ctx.database.init_db()

    try:
        # ===========================================================
        # INGESTION
        # ===========================================================
        if source.startswith(("http://", "https://")):
            result = await ctx.ingestor.ingest(source, "link")
        else:
            path = Path(source)
            result = await ctx.ingestor.ingest(path.read_bytes(), "pdf", name=path.name)

        console.print(
            f"[green]Ingested[/green] {result.name} "
            f"| document_id={result.document_id} | chunks={result.chunk_count}\n"
        )
        if result.summary:
            console.print(Panel(Markdown(result.summary), title="Summary", border_style="cyan"))

        # ===========================================================
        # CHAT LOOP
        # ===========================================================
        while True:
            user_input = console.input("[bold magenta]You:[/bold magenta] ")

            if user_input.strip().lower() in ["exit", "quit", "bye"]:
                console.print("[yellow]Exiting chat. Goodbye![/yellow]")
                break
            if not user_input.strip():
                continue

            answer = await ctx.query.ask(result.document_id, user_input)

            console.print("\n[bold green]Assistant:[/bold green]")
            console.print(Markdown(answer.answer or "`<no content>`"))
            console.print("\n" + "-" * 60 + "\n")
    finally:
        await ctx.close()


def main() -> int:
    if len(sys.argv) != 2:
        console.print("[red]usage:[/red] python main.py <pdf-path-or-url>")
        return 2

    try:
        asyncio.run(chat_loop(sys.argv[1]))
    except DocChatException as e:
        console.print(f"[bold red]{type(e).__name__}:[/bold red] {e}")
        return 1
    except OSError as e:
        console.print(f"[bold red]Cannot read source:[/bold red] {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
