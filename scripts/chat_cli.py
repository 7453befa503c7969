#!/usr/bin/env python3
"""Interactive chat CLI for the Aurora assistant."""

import json
import sys

import httpx
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table


class ChatCLI:
    """Interactive chat interface for the Aurora API."""

    def __init__(self, base_url: str = "http://localhost:8000", stream: bool = False):
        """Initialize chat CLI."""
        self.base_url = base_url
        self.stream = stream
        self.conversation_id: str | None = None
        self.console = Console()
        self.client = httpx.Client(timeout=180.0)

    def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                "[bold magenta]Aurora - Interactive Chat[/bold magenta]\n"
                "Ask about your tasks, goals, habits, journal, finances or calendar.\n"
                "Commands: /help, /new, /tools, /quit",
                border_style="magenta",
            )
        )

        if not self._test_connection():
            self.console.print(f"[red]Cannot connect to the service at {self.base_url}.[/red]")
            return

        self.console.print("[green]Connected to Aurora[/green]\n")
        self._new_conversation()

        try:
            while True:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")
                command = user_input.strip().lower()

                if command in ["/quit", "/exit", "quit", "exit"]:
                    break
                elif command == "/help":
                    self._show_help()
                    continue
                elif command == "/new":
                    self._new_conversation()
                    continue
                elif command == "/tools":
                    self._show_tool_calls()
                    continue
                elif command == "":
                    continue

                result = self._send_message(user_input)
                while result:
                    result = self._handle_result(result)

        except KeyboardInterrupt:
            pass
        finally:
            self.console.print("\n[yellow]Goodbye![/yellow]")
            self.client.close()

    def _test_connection(self) -> bool:
        try:
            response = self.client.get(f"{self.base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def _url(self, path: str) -> str:
        return f"{self.base_url}/conversations/{self.conversation_id}{path}"

    def _new_conversation(self) -> None:
        response = self.client.post(f"{self.base_url}/conversations", json={"title": "CLI session"})
        response.raise_for_status()
        self.conversation_id = response.json()["id"]
        self.console.print(f"[dim]Conversation {self.conversation_id}[/dim]")

    def _post(self, path: str, payload: dict | None = None) -> dict | None:
        try:
            response = self.client.post(self._url(path), json=payload)
        except httpx.HTTPError as e:
            self.console.print(f"[red]Connection error: {e}[/red]")
            return None

        if response.status_code >= 400:
            self.console.print(f"[red]API Error: {response.status_code} - {response.text}[/red]")
            return None
        if response.status_code == 204:
            return {}
        return response.json()

    def _send_message(self, message: str) -> dict | None:
        if self.stream:
            return self._stream_message(message)

        self.console.print("[dim]Thinking...[/dim]")
        return self._post("/messages", {"message": message})

    def _stream_message(self, message: str) -> dict | None:
        """Print text deltas as they arrive and return the final turn payload."""
        event = None
        result = None
        try:
            with self.client.stream("POST", self._url("/messages/stream"), json={"message": message}) as response:
                if response.status_code >= 400:
                    response.read()
                    self.console.print(f"[red]API Error: {response.status_code} - {response.text}[/red]")
                    return None

                self.console.print("[bold green]Aurora[/bold green] ", end="")
                for line in response.iter_lines():
                    if line.startswith("event:"):
                        event = line.removeprefix("event:").strip()
                    elif line.startswith("data:"):
                        data = json.loads(line.removeprefix("data:").strip())
                        if event == "delta":
                            self.console.print(data["text"], end="", markup=False, highlight=False)
                        elif event == "result":
                            result = data
                        elif event == "error":
                            self.console.print(f"\n[red]Error: {data['detail']}[/red]")
                self.console.print()
        except httpx.HTTPError as e:
            self.console.print(f"[red]Connection error: {e}[/red]")
            return None

        if result is not None:
            # Text was already printed while streaming
            result["messages"] = []
        return result

    def _handle_result(self, result: dict) -> dict | None:
        """Render a turn result; returns the next result when a confirmation continues the turn."""
        for message in result.get("messages", []):
            if message["role"] == "assistant":
                self._display_response(message["content"])

        if result.get("error"):
            self.console.print(f"[red]{result['error']}[/red]")

        if result.get("pending_extraction"):
            self._review_extraction(result["pending_extraction"])

        pending = result.get("pending_confirmation")
        if pending:
            if self._ask_confirmation(pending):
                self.console.print("[dim]Running...[/dim]")
                return self._post("/confirm")
            self._post("/cancel")
            self.console.print("[yellow]Cancelled[/yellow]")
        return None

    def _display_response(self, text: str) -> None:
        self.console.print(
            Panel(
                Markdown(text),
                title="[bold green]Aurora[/bold green]",
                border_style="green",
                padding=(1, 2),
            )
        )

    def _ask_confirmation(self, pending: dict) -> bool:
        """Ask before a data-changing tool runs; destructive tools need the tool name typed back."""
        details = json.dumps(pending["tool_input"], indent=2)
        if pending.get("destructive"):
            self.console.print(
                Panel(
                    f"[bold]{pending['tool_name']}[/bold]\n\n{details}\n\n[bold red]This cannot be undone.[/bold red]",
                    title="[red]Destructive action[/red]",
                    border_style="red",
                )
            )
            answer = Prompt.ask(f"Type [bold]{pending['tool_name']}[/bold] to confirm, anything else cancels")
            return answer.strip() == pending["tool_name"]

        self.console.print(
            Panel(f"[bold]{pending['tool_name']}[/bold]\n\n{details}", title="[yellow]Confirm action[/yellow]")
        )
        return Confirm.ask("Run it?", default=True)

    def _review_extraction(self, extraction: dict) -> None:
        """Checklist for approving extracted journal and task items."""
        while True:
            self._show_extraction(extraction)
            choice = Prompt.ask(
                "Toggle j, n<number> or c<number>; s to save, d to dismiss",
                default="s",
            ).strip().lower()

            if choice == "d":
                self.client.delete(self._url("/extraction"))
                self.console.print("[yellow]Extraction dismissed[/yellow]")
                return
            if choice == "s":
                report = self._post("/extraction/process")
                if report is not None:
                    self._show_report(report)
                return

            payload = self._toggle_payload(choice)
            if payload is None:
                self.console.print("[red]Unknown choice[/red]")
                continue
            response = self._post("/extraction/toggle", payload)
            if response:
                extraction = response["extraction"]

    def _toggle_payload(self, choice: str) -> dict | None:
        if choice == "j":
            return {"section": "journal"}
        sections = {"n": "new_tasks", "c": "complete_tasks"}
        if choice[:1] in sections and choice[1:].isdigit():
            return {"section": sections[choice[0]], "index": int(choice[1:]) - 1}
        return None

    def _show_extraction(self, extraction: dict) -> None:
        table = Table(title="Proposed updates", show_lines=False)
        table.add_column("Key", style="cyan")
        table.add_column("Item")
        table.add_column("Approved", justify="center")

        if extraction.get("journal") or extraction.get("mood") or extraction.get("energy"):
            parts = [extraction.get("journal") or ""]
            if extraction.get("mood"):
                parts.append(f"mood {extraction['mood']}/5")
            if extraction.get("energy"):
                parts.append(f"energy {extraction['energy']}/5")
            table.add_row("j", " | ".join(p for p in parts if p), "x" if extraction["journal_approved"] else "")

        for index, title in enumerate(extraction.get("new_tasks", [])):
            approved = index in extraction.get("approved_new_tasks", [])
            table.add_row(f"n{index + 1}", f"New task: {title}", "x" if approved else "")

        for index, title in enumerate(extraction.get("complete_tasks", [])):
            approved = index in extraction.get("approved_complete_tasks", [])
            table.add_row(f"c{index + 1}", f"Complete: {title}", "x" if approved else "")

        self.console.print(table)
        if extraction.get("topics"):
            self.console.print(f"[dim]Topics: {', '.join(extraction['topics'])}[/dim]")

    def _show_report(self, report: dict) -> None:
        lines = []
        if report["journal_saved"]:
            lines.append("Journal entry saved")
        lines.extend(f"Created task: {title}" for title in report["created_tasks"])
        lines.extend(f"Completed task: {title}" for title in report["completed_tasks"])
        lines.extend(f"[yellow]No open task matched: {d}[/yellow]" for d in report["unmatched_tasks"])
        lines.extend(f"[red]{error}[/red]" for error in report["errors"])
        self.console.print(Panel("\n".join(lines) or "Nothing approved", title="[green]Saved[/green]"))

    def _show_tool_calls(self) -> None:
        response = self.client.get(self._url("/tool-calls"))
        table = Table(title="Tool calls")
        table.add_column("Tool")
        table.add_column("Status")
        table.add_column("Confirmed")
        for call in response.json():
            table.add_row(call["tool_name"], call["status"], "yes" if call["confirmed_at"] else "")
        self.console.print(table)

    def _show_help(self) -> None:
        help_text = """
[bold]Available Commands:[/bold]
• /help - Show this help message
• /new - Start a new conversation
• /tools - Show the tool calls made in this conversation
• /quit or /exit - Exit the chat

[bold]Things to try:[/bold]
1. "What's on my boards?"
2. "Add a task to buy milk"
3. "How are my habits this week?"
4. "I'm feeling tired today, and I finally sent the letter"

[bold]Tips:[/bold]
• Anything that changes your data asks for confirmation first
• Deletions must be confirmed by typing the tool name
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]Help[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the chat CLI."""
    args = [arg for arg in sys.argv[1:] if arg != "--stream"]
    base_url = args[0] if args else "http://localhost:8000"

    chat = ChatCLI(base_url, stream="--stream" in sys.argv)
    chat.start()


if __name__ == "__main__":
    main()
