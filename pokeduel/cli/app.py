"""Main CLI application for pokeduel."""

from typing import Optional

import typer
from rich.console import Console

from pokeduel import __version__
from pokeduel.cli.commands import battle, moves, remote
from pokeduel.utils.config import config
from pokeduel.utils.logging import setup_logging

app = typer.Typer(
    name="pokeduel",
    help="pokeduel - turn-based Pokemon battles between trainers and AI",
    no_args_is_help=True,
)

app.add_typer(battle.app, name="battle", help="Run battles locally")
app.add_typer(moves.app, name="moves", help="Move catalog")
app.add_typer(remote.app, name="remote", help="Battles on a pokeduel server")

console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"pokeduel {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
    version: Optional[bool] = typer.Option(
        None, "--version", "-V", callback=_version_callback, is_eager=True, help="Show the version"
    ),
) -> None:
    setup_logging(log_level or config.log_level)


@app.command("simulate")
def simulate_shortcut(
    seed: Optional[int] = typer.Option(None, "--seed", "-s"),
    size: int = typer.Option(3, "--size", "-n", min=1, max=6),
) -> None:
    """Quick AI vs AI battle."""
    battle.simulate(
        species=None,
        opponent_species=None,
        size=size,
        level=config.default_level,
        battle_type=battle.BattleType.PARTY,
        seed=seed,
        quiet=False,
    )


if __name__ == "__main__":
    app()
