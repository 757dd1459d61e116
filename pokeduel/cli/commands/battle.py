"""Local battles: AI vs AI simulations and a terminal game against the AI."""

import asyncio
import random
import threading
from typing import Callable, Optional

import typer
from rich.console import Console
from rich.prompt import Prompt

from pokeduel.cli.ui.displays import (
    render_events,
    render_field,
    render_request,
    render_result,
    render_side,
)
from pokeduel.core.actions import Action, ForfeitAction, MoveAction, SwitchAction
from pokeduel.core.errors import InvalidActionError
from pokeduel.core.gate import DecisionKind, DecisionRequest
from pokeduel.core.participant import AI_ID_PREFIX, AutomatedParticipant, HumanParticipant, Participant
from pokeduel.core.session import BattleSession, BattleType
from pokeduel.data.teams import SAMPLE_SPECIES, build_sample, random_team
from pokeduel.utils.config import config

app = typer.Typer(name="battle", help="Run battles locally")
console = Console()


def _team(species: Optional[list[str]], size: int, level: int, rng: random.Random) -> list:
    if not species:
        return random_team(size, level, rng)
    try:
        return [build_sample(name, level, rng) for name in species]
    except KeyError as e:
        console.print(f"[red]Error:[/red] {e.args[0]}")
        console.print(f"Known species: {', '.join(sorted(SAMPLE_SPECIES))}")
        raise typer.Exit(1)


def parse_choice(text: str, request: DecisionRequest, participant_id: str = "you") -> Action:
    """Turn terminal input into an action.

    ``m2`` uses the second move (``m2+`` also Mega Evolves), ``s3`` switches
    to the third roster slot, ``ff`` forfeits and a bare ``m`` continues a
    forced move or Struggle.
    """
    choice = text.strip().lower()
    if choice in ("ff", "forfeit"):
        return ForfeitAction()
    mega = choice.endswith("+")
    choice = choice.rstrip("+")
    if choice.startswith("s") and choice[1:].isdigit():
        return SwitchAction(index=int(choice[1:]) - 1)
    if choice.startswith("m") and request.kind == DecisionKind.TURN:
        if choice == "m":
            legal = request.legal_moves
            if legal is not None and not legal.requires_choice:
                return MoveAction(move_index=legal.indexes[0] if legal.indexes else 0, mega_evolve=mega)
        elif choice[1:].isdigit() and 1 <= int(choice[1:]) <= 4:
            return MoveAction(move_index=int(choice[1:]) - 1, mega_evolve=mega)
    raise InvalidActionError(participant_id, f"cannot understand '{text}'")


def _settle(future: asyncio.Future, result: Optional[str], error: Optional[Exception]) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


async def ask_on_daemon(ask: Callable[[], str]) -> str:
    """Run a blocking terminal read on a daemon thread.

    A read abandoned by a timeout or forfeit stays parked on stdin; being a
    daemon, it does not keep the process alive once the battle is over.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def worker() -> None:
        result, error = None, None
        try:
            result = ask()
        except Exception as e:
            error = e
        if loop.is_closed():
            return
        loop.call_soon_threadsafe(_settle, future, result, error)

    threading.Thread(target=worker, name="pokeduel-prompt", daemon=True).start()
    return await future


def _terminal_prompt(session_ref: list[BattleSession]):
    async def prompt(participant: Participant, request: DecisionRequest) -> Action:
        session = session_ref[0]
        render_events(session.log.drain(), console)
        if request.kind == DecisionKind.TURN:
            console.print(render_side(session.participants[1]))
            console.print(f"Field: {render_field(session.field)}")
        console.print(render_request(participant, request))
        text = await ask_on_daemon(lambda: Prompt.ask("Your choice", console=console))
        try:
            action = parse_choice(text, request, participant.participant_id)
            participant.validate_action(action, request)
        except InvalidActionError as e:
            console.print(f"[red]{e.detail}[/red]")
            raise
        return action

    return prompt


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("simulate")
def simulate(
    species: Optional[list[str]] = typer.Option(None, "--pokemon", "-p", help="Challenger species (repeatable)"),
    opponent_species: Optional[list[str]] = typer.Option(None, "--vs", help="Opponent species (repeatable)"),
    size: int = typer.Option(3, "--size", "-n", min=1, max=6, help="Random team size"),
    level: int = typer.Option(config.default_level, "--level", "-l", min=1, max=100),
    battle_type: BattleType = typer.Option(BattleType.PARTY, "--type", "-t"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Seed for a reproducible battle"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show the result"),
) -> None:
    """Watch two AI trainers battle."""
    rng = random.Random(seed)
    red = AutomatedParticipant(
        participant_id=f"{AI_ID_PREFIX}red", name="Red", roster=_team(species, size, level, rng)
    )
    blue = AutomatedParticipant(
        participant_id=f"{AI_ID_PREFIX}blue", name="Blue", roster=_team(opponent_species, size, level, rng)
    )
    session = BattleSession(red, blue, battle_type=battle_type, seed=seed)
    result = asyncio.run(session.run())

    if not quiet:
        render_events(session.log.all_events(), console)
        console.print()
    console.print(render_result(result, session.participants))


@app.command("play")
def play(
    name: str = typer.Option("Trainer", "--name", help="Your trainer name"),
    species: Optional[list[str]] = typer.Option(None, "--pokemon", "-p", help="Your species (repeatable)"),
    size: int = typer.Option(3, "--size", "-n", min=1, max=6),
    level: int = typer.Option(config.default_level, "--level", "-l", min=1, max=100),
    battle_type: BattleType = typer.Option(BattleType.PARTY, "--type", "-t"),
    timeout: float = typer.Option(300.0, "--timeout", help="Seconds allowed per decision"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s"),
) -> None:
    """Battle an AI trainer in the terminal."""
    rng = random.Random(seed)
    session_ref: list[BattleSession] = []
    you = HumanParticipant(
        participant_id="local",
        name=name,
        roster=_team(species, size, level, rng),
        prompt=_terminal_prompt(session_ref),
    )
    rival = AutomatedParticipant(
        participant_id=f"{AI_ID_PREFIX}rival", name="Rival", roster=_team(None, size, level, rng)
    )
    settings = config.model_copy(
        update={"lead_timeout": timeout, "turn_timeout": timeout, "forced_switch_timeout": timeout}
    )
    session = BattleSession(you, rival, battle_type=battle_type, config=settings, seed=seed)
    session_ref.append(session)

    try:
        result = asyncio.run(session.run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Battle abandoned.[/yellow]")
        raise typer.Exit(1)

    render_events(session.log.drain(), console)
    console.print(render_result(result, session.participants))
