"""Rich renderables for battles."""

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from pokeduel.core.combatant import Combatant
from pokeduel.core.events import TurnEvent
from pokeduel.core.field import FieldState
from pokeduel.core.gate import DecisionKind, DecisionRequest
from pokeduel.core.moves import Move
from pokeduel.core.participant import Participant
from pokeduel.core.session import BattleResult, SessionStatus

console = Console()

TYPE_COLORS = {
    "normal": "white",
    "fire": "red",
    "water": "blue",
    "electric": "yellow",
    "grass": "green",
    "ice": "cyan",
    "fighting": "red",
    "poison": "magenta",
    "ground": "yellow",
    "flying": "cyan",
    "psychic": "magenta",
    "bug": "green",
    "rock": "yellow",
    "ghost": "magenta",
    "dragon": "blue",
    "dark": "white",
    "steel": "white",
    "fairy": "magenta",
    "typeless": "dim",
}

EVENT_STYLES = {
    "move": "bold",
    "damage": "red",
    "recoil": "red",
    "faint": "bold red",
    "switch": "cyan",
    "heal": "green",
    "status": "yellow",
    "stat": "yellow",
    "field": "blue",
    "weather": "blue",
    "mega": "bold magenta",
    "miss": "dim",
    "immune": "dim",
    "forfeit": "bold red",
    "win": "bold green",
    "draw": "bold yellow",
    "error": "bold red",
    "cancelled": "bold red",
}


def hp_bar(mon: Combatant, width: int = 20) -> Text:
    """HP bar coloured by remaining percentage."""
    filled = round(width * mon.current_hp / mon.max_hp)
    pct = mon.hp_percent
    color = "green" if pct > 50 else "yellow" if pct > 20 else "red"
    bar = Text("[")
    bar.append("=" * filled, style=color)
    bar.append(" " * (width - filled))
    bar.append(f"] {mon.current_hp}/{mon.max_hp}")
    return bar


def type_label(types: list[str]) -> Text:
    label = Text()
    for i, t in enumerate(types):
        if i:
            label.append("/")
        label.append(t.capitalize(), style=TYPE_COLORS.get(t, "white"))
    return label


def render_events(events: list[TurnEvent], target: Console | None = None) -> None:
    """Print battle events, one per line, with a rule between turns."""
    out = target or console
    last_turn = None
    for event in events:
        if event.turn != last_turn and event.turn > 0:
            out.rule(f"Turn {event.turn}", style="dim")
            last_turn = event.turn
        if not event.message:
            continue
        out.print(Text(event.message, style=EVENT_STYLES.get(event.event_type, "")))


def render_side(participant: Participant) -> Table:
    """Roster table for one side; the active combatant is marked."""
    table = Table(title=participant.name, box=box.SIMPLE, show_header=True)
    table.add_column("", width=2)
    table.add_column("Pokemon", style="bold")
    table.add_column("Type")
    table.add_column("HP")
    table.add_column("Status")
    for i, mon in enumerate(participant.roster):
        marker = ">" if i == participant.active_index else ""
        status = "fainted" if mon.is_fainted else ("" if mon.status.value == "none" else mon.status.value)
        table.add_row(marker, mon.display_name, type_label(mon.types), hp_bar(mon), status)
    return table


def render_field(field: FieldState) -> str:
    parts = []
    if field.weather is not None:
        parts.append(f"{field.weather.value} ({field.weather_turns_left} turns)")
    if field.terrain is not None:
        parts.append(f"{field.terrain.value} terrain ({field.terrain_turns_left} turns)")
    if field.trick_room_active:
        parts.append(f"trick room ({field.trick_room.turns_left} turns)")
    return ", ".join(parts) or "clear"


def render_moves(moves: list[Move], title: str = "Moves") -> Table:
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("#", style="dim", width=3)
    table.add_column("Move", style="bold")
    table.add_column("Type")
    table.add_column("Class")
    table.add_column("Power", justify="right")
    table.add_column("Acc", justify="right")
    table.add_column("PP", justify="right")
    table.add_column("Pri", justify="right")
    for i, m in enumerate(moves):
        table.add_row(
            str(i + 1),
            m.display_name,
            Text(m.type.capitalize(), style=TYPE_COLORS.get(m.type, "white")),
            m.damage_class.value,
            str(m.power) if m.power else "-",
            str(m.accuracy) if m.accuracy else "-",
            f"{m.current_pp}/{m.pp}",
            f"{m.priority:+d}" if m.priority else "",
        )
    return table


def render_request(participant: Participant, request: DecisionRequest) -> Panel:
    """Describe the choice a human must make."""
    lines = []
    if request.kind == DecisionKind.TURN and participant.active is not None:
        active = participant.active
        lines.append(f"[bold]{active.display_name}[/bold]  {hp_bar(active)}")
        legal = request.legal_moves
        for i, m in enumerate(active.moves):
            usable = legal is not None and legal.allows(i) and legal.requires_choice
            style = "" if usable else "dim"
            lines.append(f"[{style or 'white'}]  m{i + 1}: {m.display_name} ({m.current_pp}/{m.pp} PP)[/{style or 'white'}]")
        if legal is not None and not legal.requires_choice:
            lines.append(f"  m: continue ({legal.kind.value})")
        if request.can_mega_evolve:
            lines.append("  add '+' to a move to Mega Evolve (e.g. m1+)")
    for i in request.legal_switches:
        mon = participant.roster[i]
        lines.append(f"  s{i + 1}: switch to {mon.display_name} ({mon.current_hp}/{mon.max_hp} HP)")
    lines.append("  ff: forfeit")
    title = {
        DecisionKind.LEAD: "Choose your lead",
        DecisionKind.TURN: f"Turn {request.turn}",
        DecisionKind.FORCED_SWITCH: "Choose a replacement",
    }[request.kind]
    return Panel("\n".join(lines), title=title, border_style="cyan")


def render_result(result: BattleResult, participants: list[Participant]) -> Panel:
    names = {p.participant_id: p.name for p in participants}
    if result.status == SessionStatus.COMPLETED and result.winner_id is None:
        headline = "[bold yellow]Draw![/bold yellow]"
    elif result.winner_id:
        headline = f"[bold green]{names.get(result.winner_id, result.winner_id)} wins![/bold green]"
    else:
        headline = f"[bold red]No winner ({result.status.value})[/bold red]"
    body = [headline, f"Turns: {result.turns}", f"Reason: {result.reason}"]
    if result.forfeited_by:
        body.append("Forfeited: " + ", ".join(names.get(p, p) for p in result.forfeited_by))
    for pid, snaps in result.final_state.items():
        left = sum(1 for s in snaps if not s.fainted)
        body.append(f"{names.get(pid, pid)}: {left}/{len(snaps)} standing")
    return Panel("\n".join(body), title="Battle Over", border_style="green")
