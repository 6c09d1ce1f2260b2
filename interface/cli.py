"""
Daxue Reader - CLI Interface
Rich terminal reader: chapter navigation, passages, AI interpretation panels
"""

from typing import Callable, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text

import config
from core.content_loader import Chapter, clean_content
from core.response_parser import InterpretationResult
from interface.reader_client import InterpretationOutcome, LocalState, ReaderSession

PLACEHOLDER = "内容生成中..."

# Panel order and titles; the wise-parent case is shown before the common one
RESULT_PANELS = (
    ("explanation", "白话文解释", "cyan"),
    ("principle", "家庭教育智慧", "magenta"),
    ("positive_case", "智慧家长案例", "green"),
    ("negative_case", "普通家长案例", "yellow"),
)

INTRO_TEXT = (
    "《大学》原为《礼记》第四十二篇，朱熹将其分为【经】一章、【传】十章，"
    "并作《格物致知补传》。\n"
    "选择章节阅读原文，再选择一段，AI 导师会给出白话解释、家庭教育智慧和两个家长案例。"
)


def format_section(text: str) -> str:
    """Non-empty lines of a section, or the placeholder when it is empty."""
    if not text:
        return PLACEHOLDER
    return "\n".join(line for line in text.split("\n") if line.strip())


class ReaderCLI:
    """
    Rich CLI reader.

    Provides:
    - Chapter navigation grouped into 经 and 传
    - Numbered passages per chapter
    - Interpretation panels with retry on failure
    """

    def __init__(self, session: ReaderSession, local_state: Optional[LocalState] = None):
        self.console = Console()
        self.session = session
        self.local_state = local_state
        self._running = False
        self._commands: Dict[str, Callable[[str], None]] = {}
        self._setup_commands()

    def _setup_commands(self) -> None:
        """Register slash commands."""
        self._commands = {
            "/help": self._cmd_help,
            "/chapters": self._cmd_chapters,
            "/read": self._cmd_read,
            "/ask": self._cmd_ask,
            "/retry": self._cmd_retry,
            "/intro": self._cmd_intro,
            "/quit": self._cmd_quit,
            "/exit": self._cmd_quit,
        }

    def start(self) -> None:
        """Start the reading loop."""
        self._running = True
        self.session.client.track_page_view()
        self.show_intro()

        if self.local_state is not None and not self.local_state.ai_button_clicked:
            self.console.print("[bold yellow]✨ 提示：选中一段原文后输入 /ask <编号>，即可获得 AI 解读[/bold yellow]")

        while self._running:
            try:
                user_input = Prompt.ask("[bold green]阅读[/bold green]")
            except (KeyboardInterrupt, EOFError):
                self.console.print()
                break

            if not user_input.strip():
                continue
            self.handle_command(user_input.strip())

    def handle_command(self, input_str: str) -> None:
        """Handle a slash command (a bare number reads that chapter)."""
        if input_str.isdigit():
            self._cmd_read(input_str)
            return

        parts = input_str.split(maxsplit=1)
        cmd = parts[0].lower()
        args = parts[1] if len(parts) > 1 else ""

        if cmd in self._commands:
            self._commands[cmd](args)
        else:
            self.console.print(f"[yellow]Unknown command: {cmd}[/yellow]")
            self.console.print("[dim]Type /help for available commands[/dim]")

    # =========================================================================
    # RENDERING
    # =========================================================================

    def show_intro(self) -> None:
        self.session.open_intro()
        self.console.print(Panel(INTRO_TEXT, title=f"📖 {config.PROJECT_NAME}", border_style="red"))
        self._cmd_chapters("")

    def render_chapter_nav(self, chapters: List[Chapter]) -> Table:
        table = Table(title="目录", show_header=True)
        table.add_column("#", style="cyan", justify="right")
        table.add_column("章节")
        table.add_column("释义", style="dim")

        for category, header in (("经", "【经】（总纲）"), ("传", "【传】（释义）")):
            group = [c for c in chapters if c.category == category]
            if not group:
                continue
            table.add_row("", f"[bold]{header}[/bold]", "")
            for chapter in group:
                number = chapters.index(chapter) + 1
                name = f"  └ {chapter.name}" if chapter.is_sub_entry else chapter.name
                table.add_row(str(number), name, chapter.subtitle)
        return table

    def render_chapter(self, chapter: Chapter) -> None:
        self.console.print()
        self.console.print(f"[bold red]{chapter.name}[/bold red]  [dim]{chapter.subtitle}[/dim]")
        for index, paragraph in enumerate(chapter.paragraphs, start=1):
            self.console.print(Text.assemble((f"[{index}] ", "cyan"), clean_content(paragraph.content)))
        self.console.print("[dim]输入 /ask <编号> 获取 AI 解读[/dim]")

    def render_result(self, result: InterpretationResult) -> None:
        missing = result.missing_sections()
        for field_name, title, style in RESULT_PANELS:
            body = PLACEHOLDER if field_name in missing else format_section(getattr(result, field_name))
            self.console.print(Panel(Text(body), title=title, border_style=style))

    def render_outcome(self, outcome: InterpretationOutcome) -> None:
        self.console.print(Panel(Text(clean_content(outcome.paragraph.content)), title="原文", border_style="red"))
        if outcome.ok:
            self.render_result(outcome.result)
        else:
            self.console.print(Panel(
                Text.assemble(outcome.error, "\n\n", ("输入 /retry 重试", "dim")),
                title="请求失败",
                border_style="bold red",
            ))

    # =========================================================================
    # COMMANDS
    # =========================================================================

    def _cmd_help(self, args: str) -> None:
        """Show help."""
        table = Table(title="Available Commands", show_header=True)
        table.add_column("Command", style="cyan")
        table.add_column("Description")

        table.add_row("/help", "Show this help message")
        table.add_row("/chapters", "List chapters")
        table.add_row("/read <n>", "Read chapter n (a bare number works too)")
        table.add_row("/ask <n>", "Interpret passage n of the current chapter")
        table.add_row("/retry", "Retry the last interpretation")
        table.add_row("/intro", "Back to the book introduction")
        table.add_row("/quit, /exit", "Exit the reader")

        self.console.print(table)

    def _cmd_chapters(self, args: str) -> None:
        self.console.print(self.render_chapter_nav(self.session.chapters))

    def _cmd_read(self, args: str) -> None:
        try:
            chapter = self.session.chapters[int(args) - 1]
        except (ValueError, IndexError):
            self.console.print("[yellow]Usage: /read <chapter number>[/yellow]")
            return

        self.session.select_chapter(chapter.key)
        self.render_chapter(chapter)

    def _cmd_ask(self, args: str) -> None:
        chapter = self.session.current_chapter
        if chapter is None:
            self.console.print("[yellow]请先选择章节 (/read <n>)[/yellow]")
            return
        try:
            paragraph = chapter.paragraphs[int(args) - 1]
        except (ValueError, IndexError):
            self.console.print("[yellow]Usage: /ask <passage number>[/yellow]")
            return

        if self.local_state is not None:
            self.local_state.mark_ai_button_clicked()

        with self.console.status("AI 导师正在解读..."):
            outcome = self.session.select_paragraph(paragraph.id)
        if outcome is not None:
            self.render_outcome(outcome)

    def _cmd_retry(self, args: str) -> None:
        if self.session.current_paragraph is None:
            self.console.print("[yellow]Nothing to retry[/yellow]")
            return
        with self.console.status("AI 导师正在解读..."):
            outcome = self.session.retry()
        if outcome is not None:
            self.render_outcome(outcome)

    def _cmd_intro(self, args: str) -> None:
        self.show_intro()

    def _cmd_quit(self, args: str) -> None:
        """Quit the reader."""
        self.console.print("[dim]再见[/dim]")
        self._running = False
