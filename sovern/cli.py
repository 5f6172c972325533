"""Terminal interface for Sovern."""

import asyncio
import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from sovern import db, repository
from sovern.belief_store import BeliefStore, seed_core_beliefs
from sovern.coherence import (
    assess_health,
    coherence_score,
    consolidation_succeeded,
    describe_tension,
    domain_balance,
    health_check,
    prepare_consolidation,
    system_summary,
    volatile_beliefs,
)
from sovern.config import LOG_LEVEL
from sovern.errors import BeliefEngineError
from sovern.models import AppliedUpdate, ConsolidationChoice
from sovern.orchestrator import process_turn
from sovern.tension_tracker import TensionTracker
from sovern.update_applier import consolidate

console = Console()
logger = logging.getLogger("sovern")


def weight_bar(weight: int, width: int = 20) -> str:
    filled = weight * width // 10
    if weight <= 3:
        color = "red"
    elif weight <= 6:
        color = "yellow"
    else:
        color = "green"
    bar = "█" * filled + "░" * (width - filled)
    return f"[{color}]{bar}[/{color}] {weight}/10"


def coherence_bar(value: float, width: int = 40) -> str:
    filled = int(value / 100 * width)
    bar = "█" * filled + "░" * (width - filled)
    return f"[cyan]{bar}[/cyan] {value:.1f}"


def show_beliefs(store: BeliefStore):
    beliefs = store.snapshot()
    table = Table(title="Belief Network", show_lines=True)
    table.add_column("Stance", style="white", max_width=32)
    table.add_column("Domain", style="dim")
    table.add_column("Weight", width=28)
    table.add_column("Revisions", justify="right")
    table.add_column("Links", justify="right", style="dim")
    table.add_column("State", max_width=40)

    for b in sorted(beliefs, key=lambda b: b.weight, reverse=True):
        table.add_row(
            f"{b.stance}{'' if b.is_core else ' [dim](learned)[/dim]'}",
            b.domain.value,
            weight_bar(b.weight),
            str(b.revision_count),
            str(len(b.connection_ids)),
            describe_tension(b),
        )
    console.print(table)


def show_coherence(store: BeliefStore):
    beliefs = store.snapshot()
    health = assess_health(beliefs)
    volatile = ", ".join(b.stance for b in volatile_beliefs(beliefs)) or "none"

    console.print(Panel(
        f"[bold]Coherence: {coherence_bar(coherence_score(beliefs))}[/bold]\n"
        f"Domain balance: {domain_balance(beliefs):.1f}%\n"
        f"Most volatile: {volatile}\n\n"
        f"{health.recommended_action}",
        title=f"Network Coherence — {health.state.value}",
    ))


def show_health(store: BeliefStore):
    console.print(Panel(
        "\n".join(f"• {finding}" for finding in health_check(store.snapshot())),
        title="Health Check",
    ))


def show_tensions(tracker: TensionTracker):
    tensions = tracker.all()
    if not tensions:
        console.print("[dim]No tensions recorded.[/dim]")
        return

    table = Table(title="Epistemic Tensions")
    table.add_column("#", style="dim", width=3)
    table.add_column("Between", max_width=40)
    table.add_column("Description", max_width=50)
    table.add_column("Seen", justify="right")
    table.add_column("Status")
    for i, t in enumerate(tensions):
        status = "[green]resolved[/green]" if t.resolved else "[yellow]open[/yellow]"
        table.add_row(str(i), f"{t.belief1} ↔ {t.belief2}", t.description, str(t.encounter_count), status)
    console.print(table)


def resolve_tension(tracker: TensionTracker, args: list[str]):
    if len(args) < 2 or not args[0].isdigit():
        console.print("[red]Usage: \\resolve <#> <reasoning>[/red]")
        return
    tensions = tracker.all()
    index = int(args[0])
    if index >= len(tensions):
        console.print(f"[red]No tension #{index}[/red]")
        return
    record = tracker.resolve(tensions[index].id, " ".join(args[1:]))
    console.print(f"[green]✓ Resolved {record.belief1} ↔ {record.belief2}[/green]")


def show_consolidation(store: BeliefStore):
    suggestions = prepare_consolidation(assess_health(store.snapshot()).oscillating)
    if not suggestions:
        console.print("[dim]No oscillating beliefs to consolidate.[/dim]")
        return

    table = Table(title="Oscillating Beliefs")
    table.add_column("#", style="dim", width=3)
    table.add_column("Stance", max_width=32)
    table.add_column("Range", justify="center")
    table.add_column("Suggestion", max_width=60)
    for i, s in enumerate(suggestions):
        table.add_row(str(i), s.belief.stance, f"{s.min_weight}-{s.max_weight}", s.suggestion)
    console.print(table)
    console.print("[dim]Settle one with \\consolidate <#> <weight> <reason>[/dim]")


def consolidate_belief(store: BeliefStore, args: list[str]):
    if len(args) < 3 or not args[0].isdigit() or not args[1].isdigit():
        console.print("[red]Usage: \\consolidate <#> <weight 1-10> <reason>[/red]")
        return
    oscillating = assess_health(store.snapshot()).oscillating
    index, weight = int(args[0]), int(args[1])
    if index >= len(oscillating):
        console.print(f"[red]No oscillating belief #{index}[/red]")
        return
    if not 1 <= weight <= 10:
        console.print("[red]Weight must be between 1 and 10[/red]")
        return

    before = coherence_score(store.snapshot())
    consolidate(store, [ConsolidationChoice(
        belief_id=oscillating[index].id,
        selected_weight=weight,
        reason=" ".join(args[2:]),
    )])
    after = coherence_score(store.snapshot())

    color = "green" if consolidation_succeeded(after, before) else "yellow"
    console.print(
        f"[{color}]✓ Locked {oscillating[index].stance} at {weight}/10 "
        f"(coherence {before:.1f} → {after:.1f})[/{color}]"
    )


def show_help():
    console.print(Panel(
        "[bold]Commands:[/bold]\n"
        "  [cyan]\\beliefs[/cyan]              — Show the belief network\n"
        "  [cyan]\\coherence[/cyan]            — Coherence score, balance and health state\n"
        "  [cyan]\\health[/cyan]               — Health check findings\n"
        "  [cyan]\\tensions[/cyan]             — Recorded tensions\n"
        "  [cyan]\\resolve <#> <reason>[/cyan] — Resolve a tension\n"
        "  [cyan]\\consolidate <#> <w> <why>[/cyan] — List (no args) or settle oscillating beliefs\n"
        "  [cyan]\\summary[/cyan]              — Full system overview\n"
        "  [cyan]\\export <path>[/cyan]        — Write the network as JSON\n"
        "  [cyan]\\help[/cyan]                 — Show this help\n"
        "  [cyan]\\quit[/cyan]                 — Exit\n"
        "\n"
        "Anything else is sent as a chat message.",
        title="Sovern CLI",
    ))


async def handle_revision(applied: AppliedUpdate):
    r = applied.revision
    color = {"strengthen": "green", "weaken": "red"}.get(r.type.value, "yellow")
    console.print(
        f"  [{color}]↻ {applied.stance}[/{color}] {r.type.value} "
        f"{r.previous_weight} → {r.new_weight} [dim]({r.reason})[/dim]"
    )


async def load_state() -> tuple[BeliefStore, TensionTracker]:
    if not db.is_configured():
        return BeliefStore(), TensionTracker()
    await repository.init_schema()
    return await repository.load_beliefs(), await repository.load_tensions()


async def save_state(store: BeliefStore, tracker: TensionTracker):
    if db.is_configured():
        await repository.save_beliefs(store)
        await repository.save_tensions(tracker)


async def run_cli():
    console.print(Panel(
        "[bold]SOVERN[/bold]\n"
        "Deliberation over a weighted belief network\n"
        "[dim]Type \\help for commands[/dim]",
        border_style="bright_blue",
    ))

    store, tracker = await load_state()
    if seed_core_beliefs(store):
        console.print("[green]✓ Seeded core beliefs[/green]")
        await save_state(store, tracker)
    else:
        console.print(f"[dim]✓ {len(store)} beliefs loaded[/dim]")
    if not db.is_configured():
        console.print("[dim]No DATABASE_URL — running in memory[/dim]")

    console.print(f"[dim]Coherence: {coherence_score(store.snapshot()):.1f}[/dim]\n")

    while True:
        try:
            user_input = console.input("[bold cyan]you>[/bold cyan] ").strip()
        except (EOFError, KeyboardInterrupt):
            break

        if not user_input:
            continue

        if user_input.startswith("\\"):
            cmd, *args = user_input.split()
            cmd = cmd.lower()
            try:
                if cmd in ("\\quit", "\\exit", "\\q"):
                    break
                elif cmd in ("\\beliefs", "\\b"):
                    show_beliefs(store)
                elif cmd in ("\\coherence", "\\c"):
                    show_coherence(store)
                elif cmd == "\\health":
                    show_health(store)
                elif cmd in ("\\tensions", "\\t"):
                    show_tensions(tracker)
                elif cmd == "\\resolve":
                    resolve_tension(tracker, args)
                    await save_state(store, tracker)
                elif cmd == "\\consolidate":
                    if args:
                        consolidate_belief(store, args)
                        await save_state(store, tracker)
                    else:
                        show_consolidation(store)
                elif cmd == "\\summary":
                    console.print(system_summary(store.snapshot()))
                elif cmd == "\\export":
                    path = Path(args[0] if args else "beliefs.json")
                    path.write_text(store.export_json())
                    console.print(f"[green]✓ Wrote {path}[/green]")
                elif cmd == "\\help":
                    show_help()
                else:
                    console.print(f"[red]Unknown command: {cmd}[/red]")
            except (BeliefEngineError, OSError) as e:
                console.print(f"[red]{e}[/red]")
            continue

        console.print("[dim]Deliberating...[/dim]")
        try:
            result = await process_turn(store, tracker, user_input, on_revision=handle_revision)
            await save_state(store, tracker)
        except Exception as e:
            logger.exception("Turn failed")
            console.print(f"[red]Error: {e}[/red]")
            continue

        console.print()
        console.print(Panel(result["response"], title="[bold]sovern[/bold]", border_style="bright_blue"))
        skipped = f" | skipped={','.join(result['skipped'])}" if result["skipped"] else ""
        console.print(
            f"[dim]  coherence={result['coherence']:.1f} | updates={len(result['applied'])}"
            f"{skipped} | {result['coherence_state']}[/dim]\n"
        )

    await db.close_pool()
    console.print("[dim]Goodbye.[/dim]")


def main():
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )
    asyncio.run(run_cli())


if __name__ == "__main__":
    main()
