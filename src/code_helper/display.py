# display.py
# All terminal output for the code-helper CLI.
#
# This module owns presentation entirely. run.py never formats strings; it
# calls named functions here. Diagnostics go to structlog on stderr, never
# through this module.
#
# Colour language:
#   cyan: pipeline routing / progress
#   blue: model output (observations, approach, generated code)
#   yellow: checkpoints waiting on the user (plan steps, apply prompt)
#   green: success / confirmed
#   red: failures and halts
#   magenta: analysis internals (context gathering, thinking)

from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm
from rich.rule import Rule
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from code_helper.errors import CodeHelperError, user_message
from code_helper.models import (
    CodeReviewResult,
    ImplementationResult,
    PlanStep,
    ReviewOutcome,
    StageType,
    StageUpdate,
)

console = Console()

_STAGE_COLOURS = {
    StageType.THINKING: "magenta",
    StageType.OBSERVATIONS: "blue",
    StageType.APPROACH: "blue",
    StageType.PLAN: "cyan",
}

_OUTCOME_STYLES = {
    ReviewOutcome.CLEAN: ("green", "CLEAN ✓"),
    ReviewOutcome.ISSUES_FOUND: ("yellow", "ISSUES"),
    ReviewOutcome.UNPARSED: ("magenta", "UNPARSED ?"),
    ReviewOutcome.FAILED: ("red", "FAILED ✗"),
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    if len(value) > max_len:
        return value[:max_len] + "…"
    return value


def _bullets(items: list[str]) -> str:
    return "\n".join(f"• {escape(item)}" for item in items)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


def banner(model: str, project_root: str) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Code Helper[/bold cyan]\n"
            "[dim]Context-aware planning and multi-aspect code review[/dim]\n\n"
            f"[dim]Model   :[/dim] [white]{escape(model)}[/white]\n"
            f"[dim]Project :[/dim] [white]{escape(project_root)}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def request_received(file_name: str, instruction: str) -> None:
    console.print()
    console.print(Rule("[cyan]NEW REQUEST[/cyan]", style="cyan"))
    console.print(
        Panel(
            f"[white]{escape(instruction)}[/white]",
            title=_label("INSTRUCTION", "cyan"),
            subtitle=f"[dim]{escape(file_name)}[/dim]",
            border_style="cyan",
            padding=(0, 2),
        )
    )


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------


def stage_update(update: StageUpdate) -> None:
    """Progress line for partial updates, a panel for the completed stage."""
    colour = _STAGE_COLOURS[update.stage_type]
    name = update.stage_type.value.upper()

    if not update.is_complete:
        console.print(
            _label(name, colour), f"[{colour}] {escape(_mono(update.content))}[/{colour}]"
        )
        return

    if update.points is not None:
        body = _bullets(update.points)
    else:
        body = Markdown(update.content)

    console.print()
    console.print(
        Panel(
            body,
            title=_label(f"{name} ✓", colour),
            border_style=colour,
            padding=(0, 2),
        )
    )


def failed_stages(stages: tuple[StageType, ...]) -> None:
    if not stages:
        return
    names = ", ".join(s.value for s in stages)
    console.print(
        f"  [bold red]✗ Degraded stages:[/bold red] [white]{names}[/white]"
        "  [dim](placeholder text shown; the plan was still produced)[/dim]"
    )


def plan_steps(steps: list[PlanStep]) -> None:
    console.print()
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="yellow",
        show_header=True,
        header_style="bold yellow",
        padding=(0, 1),
    )
    table.add_column("Step", justify="center", width=6)
    table.add_column("Description", style="white")
    table.add_column("Status", justify="center", width=10, style="dim")

    for step in steps:
        table.add_row(str(step.step), escape(step.description), step.status)

    console.print(
        Panel(
            table,
            title=_label(f"PLAN STEPS ({len(steps)})", "yellow"),
            border_style="yellow",
            padding=(0, 1),
        )
    )


def generating_implementation() -> None:
    console.print()
    console.print(
        _label("PIPELINE", "cyan"), "[cyan] → Generating implementation from plan steps…[/cyan]"
    )


def implementation(result: ImplementationResult, file_name: str) -> None:
    console.print()
    if result.explanation:
        console.print(
            Panel(
                Markdown(result.explanation),
                title=_label("EXPLANATION", "blue"),
                border_style="blue",
                padding=(0, 2),
            )
        )
    lexer = Syntax.guess_lexer(file_name, code=result.new_code)
    console.print(
        Panel(
            Syntax(result.new_code, lexer, line_numbers=True, word_wrap=True),
            title=_label("NEW CODE", "blue"),
            subtitle=f"[dim]{escape(file_name)}[/dim]",
            border_style="blue",
            padding=(0, 1),
        )
    )


def confirm_apply(file_name: str) -> bool:
    return Confirm.ask(
        f"[yellow]Replace the contents of[/yellow] [bold white]{escape(file_name)}[/bold white]?",
        console=console,
        default=False,
    )


def changes_applied(file_name: str, previous_chars: int, new_chars: int) -> None:
    console.print(
        f"  [bold green]✓ Applied[/bold green]  [white]{escape(file_name)}[/white]"
        f"  [dim]{previous_chars} → {new_chars} chars[/dim]"
    )


def changes_skipped() -> None:
    console.print("  [dim]Changes not applied.[/dim]")


# ---------------------------------------------------------------------------
# Code review
# ---------------------------------------------------------------------------


def review_start(file_name: str) -> None:
    console.print()
    console.print(Rule(f"[cyan]CODE REVIEW: {escape(file_name)}[/cyan]", style="cyan"))
    console.print(
        "[cyan]  Running bug, performance, security and clarity analyses…[/cyan]"
    )


def review_result(result: CodeReviewResult) -> None:
    colour, tag = _OUTCOME_STYLES[result.outcome]
    sections = [
        f"[bold]Issues[/bold]\n{_bullets(result.issues)}",
        f"[bold]Recommendations[/bold]\n{_bullets(result.recommendations)}",
        f"[bold]Steps[/bold]\n{_bullets(result.steps)}",
    ]
    if result.raw_preview:
        sections.append(f"[dim]Reply started with:[/dim] {escape(result.raw_preview)}")

    console.print()
    console.print(
        Panel(
            "\n\n".join(sections),
            title=_label(f"{result.aspect.value.upper()}: {tag}", colour),
            border_style=colour,
            padding=(0, 2),
        )
    )
    if result.generated_code:
        console.print(
            Panel(
                Syntax(result.generated_code, "text", word_wrap=True),
                title=_label("SUGGESTED FIX", "blue"),
                border_style="blue",
                padding=(0, 1),
            )
        )


def review_summary(results: list[CodeReviewResult]) -> None:
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold dim", padding=(0, 1))
    table.add_column("Aspect", width=12)
    table.add_column("Outcome", width=14)
    table.add_column("Findings", justify="right", width=9)

    for result in results:
        colour, tag = _OUTCOME_STYLES[result.outcome]
        findings = str(len(result.issues)) if result.outcome is ReviewOutcome.ISSUES_FOUND else "-"
        table.add_row(result.aspect.value, f"[{colour}]{tag}[/{colour}]", findings)

    console.print()
    console.print(Panel(table, title="[dim]REVIEW SUMMARY[/dim]", border_style="dim"))


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


def halt(exc: BaseException) -> None:
    detail = ""
    if isinstance(exc, CodeHelperError):
        detail = f"\n[dim]{exc.code.value}: {escape(str(exc))}[/dim]"
    console.print()
    console.print(
        Panel(
            f"[bold white]{escape(user_message(exc))}[/bold white]{detail}",
            title=_label("HALT", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
    console.print()
