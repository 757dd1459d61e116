"""CLI commands for battles hosted by a pokeduel server.

The CLI is a thin client here: it sends requests and renders the results.
"""

import os
from typing import Optional

import requests
import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pokeduel.cli.ui.displays import EVENT_STYLES
from pokeduel.data.teams import SAMPLE_MEGAS, SAMPLE_SPECIES
from pokeduel.utils.config import config

app = typer.Typer(name="remote", help="Battles on a pokeduel server")
console = Console()

SERVER_URL = "http://localhost:8000"


def _get_server_url() -> str:
    return os.getenv("POKEDUEL_SERVER_URL", SERVER_URL).rstrip("/")


def _request(method: str, path: str, **kwargs) -> dict | list | None:
    """Call the server. Prints the error and returns None on failure."""
    try:
        resp = requests.request(method, f"{_get_server_url()}{path}", timeout=10, **kwargs)
    except requests.ConnectionError:
        console.print("[red]Cannot connect to the pokeduel server.[/red] Is it running?")
        return None
    if resp.status_code >= 400:
        try:
            detail = resp.json().get("detail", resp.text)
        except ValueError:
            detail = resp.text
        console.print(f"[red]Error:[/red] {detail}")
        return None
    return resp.json()


def _combatant_spec(species: str, level: int) -> dict:
    key = species.lower()
    if key not in SAMPLE_SPECIES:
        console.print(f"[red]Unknown species:[/red] {species}")
        raise typer.Exit(1)
    type1, type2, base = SAMPLE_SPECIES[key]
    spec = {"species": key, "type1": type1, "type2": type2, "level": level, "base_stats": base}
    if key in SAMPLE_MEGAS:
        spec["mega_types"], spec["mega_stats"] = SAMPLE_MEGAS[key]
    return spec


def _submit(token: str, participant_id: str, action: dict) -> None:
    view = _request("GET", f"/sessions/{token}")
    if view is None:
        return
    side = next((s for s in view["sides"] if s["participant_id"] == participant_id), None)
    if side is None:
        console.print(f"[red]{participant_id} is not in battle {token}.[/red]")
        return
    pending = side.get("pending")
    if pending is None:
        console.print("[yellow]No decision is waiting for you right now.[/yellow]")
        return
    body = {
        "participant_id": participant_id,
        "turn": pending["turn"],
        "kind": pending["kind"],
        "action": action,
    }
    data = _request("POST", f"/sessions/{token}/actions", json=body)
    if data is None:
        return
    if data.get("accepted"):
        console.print("[dim]Action submitted. Waiting for the turn to resolve...[/dim]")
    else:
        console.print("[yellow]Action was too late and has been discarded.[/yellow]")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("challenge-ai")
def challenge_ai(
    participant_id: str = typer.Option(..., "--id", "-u", help="Your participant ID"),
    species: list[str] = typer.Option(..., "--pokemon", "-p", help="Species to bring (repeatable)"),
    opponent_species: Optional[list[str]] = typer.Option(None, "--vs", help="AI species (repeatable)"),
    level: int = typer.Option(config.default_level, "--level", "-l", min=1, max=100),
    battle_type: str = typer.Option("party", "--type", "-t"),
) -> None:
    """Start a battle against an AI trainer on the server."""
    body = {
        "challenger": {
            "participant_id": participant_id,
            "name": participant_id,
            "roster": [_combatant_spec(s, level) for s in species],
        },
        "opponent": {
            "participant_id": "rival",
            "name": "Rival",
            "automated": True,
            "roster": [_combatant_spec(s, level) for s in (opponent_species or species)],
        },
        "battle_type": battle_type,
    }
    data = _request("POST", "/sessions", json=body)
    if data is None:
        return
    console.print(
        Panel(
            f"Battle [bold]{data['token']}[/bold] started.\n"
            f"Check on it with: [bold]pokeduel remote status {data['token']}[/bold]",
            border_style="green",
        )
    )


@app.command("status")
def battle_status(token: str = typer.Argument(..., help="Battle token")) -> None:
    """View the current state of a battle."""
    data = _request("GET", f"/sessions/{token}")
    if data is None:
        return

    weather = data["field"]["weather"] or "clear"
    terrain = data["field"].get("terrain") or "none"
    console.print(
        Panel(
            f"Status: [bold]{data['status']}[/bold]  |  Turn: {data['turn']}  |  "
            f"Format: {data['battle_type']}  |  Weather: {weather}  |  Terrain: {terrain}",
            title=f"Battle {data['token'][:12]}...",
            border_style="cyan",
        )
    )
    for side in data["sides"]:
        table = Table(title=side["name"], box=box.SIMPLE)
        table.add_column("Slot", justify="center")
        table.add_column("Pokemon", style="bold")
        table.add_column("HP", justify="right")
        table.add_column("Status")
        table.add_column("Moves")
        for i, mon in enumerate(side["roster"]):
            marker = " >> " if i == side["active_index"] else ""
            status = "" if mon["status"] == "none" else mon["status"]
            moves = ", ".join(f"{name} ({pp})" for name, pp in mon["moves"])
            style = "red dim" if mon["fainted"] else "green"
            table.add_row(f"{marker}{i + 1}", mon["name"], f"{mon['current_hp']}/{mon['max_hp']}",
                          status, moves, style=style)
        console.print(table)
        if side.get("pending"):
            console.print(f"  [cyan]Waiting on {side['name']} ({side['pending']['kind']})[/cyan]")

    result = data.get("result")
    if result:
        winner = result.get("winner_id")
        if winner:
            console.print(f"[bold green]Winner: {winner}[/bold green] ({result['reason']})")
        else:
            console.print(f"[bold yellow]No winner[/bold yellow] ({result['status']}, {result['reason']})")


@app.command("move")
def submit_move(
    token: str = typer.Argument(..., help="Battle token"),
    move: int = typer.Argument(..., min=1, max=4, help="Move slot (1-4)"),
    participant_id: str = typer.Option(..., "--id", "-u"),
    mega: bool = typer.Option(False, "--mega", help="Mega Evolve before moving"),
) -> None:
    """Use a move this turn."""
    _submit(token, participant_id, {"kind": "move", "move_index": move - 1, "mega_evolve": mega})


@app.command("switch")
def switch_pokemon(
    token: str = typer.Argument(..., help="Battle token"),
    slot: int = typer.Argument(..., min=1, help="Roster slot to switch to (1-6)"),
    participant_id: str = typer.Option(..., "--id", "-u"),
) -> None:
    """Switch Pokemon (also used for leads and replacements)."""
    _submit(token, participant_id, {"kind": "switch", "index": slot - 1})


@app.command("forfeit")
def forfeit_battle(
    token: str = typer.Argument(..., help="Battle token"),
    participant_id: str = typer.Option(..., "--id", "-u"),
) -> None:
    """Forfeit a battle."""
    _submit(token, participant_id, {"kind": "forfeit"})


@app.command("log")
def read_log(token: str = typer.Argument(..., help="Battle token")) -> None:
    """Print battle events not yet read."""
    events = _request("GET", f"/sessions/{token}/log")
    if events is None:
        return
    if not events:
        console.print("[dim]Nothing new.[/dim]")
    for ev in events:
        msg = ev.get("message", "")
        if msg:
            style = EVENT_STYLES.get(ev.get("event_type", ""), "")
            console.print(f"  [{style}]{msg}[/{style}]" if style else f"  {msg}")


@app.command("abort")
def abort_battle(token: str = typer.Argument(..., help="Battle token")) -> None:
    """Cancel a running battle (admin)."""
    data = _request("DELETE", f"/sessions/{token}")
    if data is not None:
        console.print("[yellow]Battle cancelled.[/yellow]" if data["cancelled"] else "Battle was already over.")
