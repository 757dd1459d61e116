"""CLI commands for browsing moves."""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from pokeduel.cli.ui.displays import TYPE_COLORS, render_moves
from pokeduel.core.catalog import builtin_catalog
from pokeduel.core.errors import CatalogError
from pokeduel.core.moves import PokemonType
from pokeduel.data.pokeapi import PokeAPIMoveCatalog
from pokeduel.utils.config import config

app = typer.Typer(name="moves", help="Move catalog")
console = Console()


@app.command("list")
def list_moves(
    move_type: Optional[PokemonType] = typer.Option(None, "--type", "-t", help="Only moves of this type"),
) -> None:
    """List the built-in moves."""
    if move_type is not None:
        moves = builtin_catalog.by_type(move_type.value)
        title = f"{move_type.value.capitalize()} moves"
    else:
        moves = [builtin_catalog.get(name) for name in builtin_catalog.names()]
        title = f"Built-in moves ({len(moves)})"
    if not moves:
        console.print("[yellow]No moves found.[/yellow]")
        return
    console.print(render_moves(moves, title=title))


@app.command("info")
def move_info(
    name: str = typer.Argument(..., help="Move name, e.g. thunderbolt"),
    online: bool = typer.Option(False, "--online", help="Look the move up on PokeAPI"),
) -> None:
    """Show details for a single move."""
    if online:
        config.ensure_dirs()
        catalog = PokeAPIMoveCatalog(cache_dir=config.cache_dir)
        try:
            move = asyncio.run(catalog.fetch_move(name))
        except CatalogError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)
    else:
        try:
            move = builtin_catalog.get(name)
        except CatalogError:
            console.print(f"[red]Unknown move:[/red] {name}. Try [bold]--online[/bold].")
            raise typer.Exit(1)

    color = TYPE_COLORS.get(move.type, "white")
    lines = [
        f"Type: [{color}]{move.type.capitalize()}[/{color}]  |  Class: {move.damage_class.value}",
        f"Power: {move.power or '-'}  |  Accuracy: {move.accuracy or '-'}  |  PP: {move.pp}",
    ]
    if move.priority:
        lines.append(f"Priority: {move.priority:+d}")
    if move.status_effect.value != "none":
        chance = f" ({move.effect_chance}%)" if move.effect_chance else ""
        lines.append(f"Inflicts: {move.status_effect.value}{chance}")
    if move.stat_changes:
        changes = ", ".join(f"{stat} {delta:+d}" for stat, delta in move.stat_changes.items())
        lines.append(f"Stat changes ({move.stat_target}): {changes}")
    if move.volatile_effect.value != "none":
        lines.append(f"Effect: {move.volatile_effect.value}")
    if move.sets_weather is not None:
        lines.append(f"Weather: {move.sets_weather.value}")
    if move.sets_terrain is not None:
        lines.append(f"Terrain: {move.sets_terrain.value}")
    if move.sets_trick_room:
        lines.append("Field: trick room")
    console.print(Panel("\n".join(lines), title=move.display_name, border_style=color))
