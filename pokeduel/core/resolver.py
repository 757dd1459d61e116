"""Turn ordering and resolution.

The resolver is synchronous: given both sides' committed actions it
orders them, applies them one by one and runs end-of-turn effects. It
mutates the participants and the field in place and never awaits.
"""

from __future__ import annotations

import logging
import random

from pydantic import BaseModel, Field

from pokeduel.core.actions import Action, ForfeitAction, LegalMoveKind, MoveAction, SwitchAction
from pokeduel.core.combatant import STAT_NAMES, Combatant
from pokeduel.core.errors import InvariantViolationError
from pokeduel.core.events import TurnEvent
from pokeduel.core.field import (
    TERRAIN_START_MESSAGES,
    WEATHER_ACTIVE_MESSAGES,
    WEATHER_IMMUNE_TYPES,
    WEATHER_START_MESSAGES,
    FieldState,
    Terrain,
    Weather,
)
from pokeduel.core.moves import (
    STATUS_IMMUNE_TYPES,
    TYPELESS,
    DamageClass,
    Move,
    StatusEffect,
    VolatileEffect,
    accuracy_stage_multiplier,
    calculate_damage,
    roll_critical,
    struggle,
)
from pokeduel.core.participant import Participant

logger = logging.getLogger(__name__)

_STATUS_VERB = {
    StatusEffect.BURN: "burned",
    StatusEffect.FREEZE: "frozen solid",
    StatusEffect.PARALYSIS: "paralyzed",
    StatusEffect.POISON: "poisoned",
    StatusEffect.BADLY_POISONED: "badly poisoned",
    StatusEffect.SLEEP: "put to sleep",
}

_CONFUSION_HIT = Move(name="confusion-hit", type=TYPELESS, damage_class=DamageClass.PHYSICAL, power=40)


class TurnOutcome(BaseModel):
    """What happened in one resolved turn."""

    events: list[TurnEvent] = Field(default_factory=list)
    replacements: list[int] = Field(default_factory=list)  # Sides owing a forced switch
    finished: bool = False
    winner_side: int | None = None  # None with finished=True is a draw
    forfeited_sides: list[int] = Field(default_factory=list)


def check_invariants(participants: list[Participant]) -> None:
    """Raise InvariantViolationError if the battle state is corrupt."""
    for side, p in enumerate(participants):
        for mon in p.roster:
            if not 0 <= mon.current_hp <= mon.max_hp:
                raise InvariantViolationError(
                    f"side {side} {mon.display_name} has {mon.current_hp}/{mon.max_hp} HP"
                )
            for stat, stage in mon.stages.items():
                if not -6 <= stage <= 6:
                    raise InvariantViolationError(f"side {side} {mon.display_name} {stat} stage is {stage}")
        if p.active_index is not None and not 0 <= p.active_index < len(p.roster):
            raise InvariantViolationError(f"side {side} active index {p.active_index} out of range")


def selected_move(participant: Participant, action: MoveAction) -> tuple[int | None, Move]:
    """The move an action will actually use, after locks and Struggle.

    Returns (move_index, move); the index is None for Struggle.
    """
    active = participant.active
    if active is None:
        raise InvariantViolationError(f"{participant.participant_id} has no active combatant")
    legal = participant.legal_moves()
    if legal.kind == LegalMoveKind.STRUGGLE:
        return None, struggle()
    if legal.kind == LegalMoveKind.FORCED:
        index = legal.indexes[0]
        return index, active.moves[index]
    index = action.move_index
    if index not in legal.indexes:
        # Stale choice: fall back to the first usable move
        index = legal.indexes[0]
    return index, active.moves[index]


def action_order(
    participants: list[Participant],
    actions: list[Action],
    field: FieldState,
) -> list[int]:
    """Side indexes in execution order for this turn's actions.

    Switches go first, fastest raw Speed first. Moves follow, by priority
    and then effective Speed (slowest first under Trick Room). Remaining
    ties keep side order, so the result never depends on which side
    committed first.
    """

    def sort_key(side: int) -> tuple[int, int, int, int]:
        action = actions[side]
        active = participants[side].active
        if isinstance(action, SwitchAction):
            speed = active.base_stat("spe") if active else 0
            return (0, 0, -speed, side)
        if not isinstance(action, MoveAction):
            raise InvariantViolationError(f"side {side} cannot be ordered with {action!r}")
        _, move = selected_move(participants[side], action)
        speed = active.effective_speed() if active else 0
        if not field.trick_room_active:
            speed = -speed
        return (1, -move.priority, speed, side)

    acting = [s for s, a in enumerate(actions) if isinstance(a, (MoveAction, SwitchAction))]
    return sorted(acting, key=sort_key)


class TurnResolver:
    """Applies one turn of committed actions to the battle state."""

    def __init__(
        self,
        participants: list[Participant],
        field: FieldState,
        rng: random.Random | None = None,
        inverse: bool = False,
        weather_turns: int = 5,
        trick_room_turns: int = 5,
        terrain_turns: int = 5,
    ):
        if len(participants) != 2:
            raise ValueError("a battle has exactly two participants")
        self.participants = participants
        self.field = field
        self.rng = rng or random.Random()
        self.inverse = inverse
        self.weather_turns = weather_turns
        self.trick_room_turns = trick_room_turns
        self.terrain_turns = terrain_turns
        self._turn = 0
        self._events: list[TurnEvent] = []
        self._acted: set[int] = set()

    # -- Events ---------------------------------------------------------------

    def _emit(self, event_type: str, message: str, side: int | None = None, **kwargs) -> TurnEvent:
        event = TurnEvent(
            turn=self._turn,
            event_type=event_type,
            side=side,
            participant_id=self.participants[side].participant_id if side is not None else None,
            message=message,
            **kwargs,
        )
        self._events.append(event)
        return event

    # -- Entry point ----------------------------------------------------------

    def resolve(self, actions: list[Action], turn: int) -> TurnOutcome:
        """Resolve one turn. Mutates participants and field in place."""
        self._turn = turn
        self._events = []
        self._acted = set()
        check_invariants(self.participants)
        for side, p in enumerate(self.participants):
            if p.active is None or p.active.is_fainted:
                raise InvariantViolationError(f"side {side} starts turn {turn} without an able combatant")
            p.action = actions[side]

        forfeited = [s for s, a in enumerate(actions) if isinstance(a, ForfeitAction)]
        if forfeited:
            for side in forfeited:
                p = self.participants[side]
                self._emit("forfeit", f"{p.name} forfeited the battle!", side)
            winner = None if len(forfeited) == 2 else 1 - forfeited[0]
            return self._outcome(finished=True, winner_side=winner, forfeited_sides=forfeited)

        order = action_order(self.participants, actions, self.field)

        for side in order:
            action = actions[side]
            if isinstance(action, SwitchAction):
                self._switch(side, action)

        for side in order:
            action = actions[side]
            if isinstance(action, MoveAction) and action.mega_evolve:
                self._mega_evolve(side)

        for side in order:
            action = actions[side]
            if isinstance(action, MoveAction):
                check_invariants(self.participants)
                self._use_move(side, action)
                self._acted.add(side)
                if self._battle_over():
                    return self._finish()
            elif isinstance(action, SwitchAction):
                self._acted.add(side)

        self._end_of_turn()
        if self._battle_over():
            return self._finish()

        for p in self.participants:
            p.action = None
        return self._outcome(
            replacements=[s for s, p in enumerate(self.participants) if p.needs_replacement]
        )

    def _outcome(self, **kwargs) -> TurnOutcome:
        return TurnOutcome(events=list(self._events), **kwargs)

    def _battle_over(self) -> bool:
        return any(not p.has_usable_combatants for p in self.participants)

    def _finish(self) -> TurnOutcome:
        out = [not p.has_usable_combatants for p in self.participants]
        winner = None if all(out) else out.index(False)
        for p in self.participants:
            p.action = None
        return self._outcome(finished=True, winner_side=winner)

    # -- Switching and mega evolution ------------------------------------------

    def _switch(self, side: int, action: SwitchAction) -> None:
        p = self.participants[side]
        if action.index not in p.legal_switches():
            logger.info("Skipping illegal switch by %s to slot %s", p.participant_id, action.index)
            self._emit("info", f"{p.name} couldn't switch out!", side)
            return
        old = p.active
        new = p.switch_to(action.index)
        if old is not None:
            self._emit("switch", f"{p.name} withdrew {old.display_name} and sent out {new.display_name}!",
                       side, pokemon_name=new.display_name)
        else:
            self._emit("switch", f"{p.name} sent out {new.display_name}!", side, pokemon_name=new.display_name)
        self.announce_weather(side)

    def send_in(self, side: int, index: int) -> None:
        """Forced switch after a faint (also used for the lead)."""
        p = self.participants[side]
        new = p.switch_to(index)
        self._emit("switch", f"{p.name} sent out {new.display_name}!", side, pokemon_name=new.display_name)
        self.announce_weather(side)

    def announce_weather(self, side: int) -> None:
        if self.field.weather is not None:
            self._emit("field", WEATHER_ACTIVE_MESSAGES[self.field.weather], side)

    def drain_events(self) -> list[TurnEvent]:
        """Take the events produced outside ``resolve`` (forced switches)."""
        events, self._events = self._events, []
        return events

    def begin(self, turn: int) -> None:
        self._turn = turn
        self._events = []

    def _mega_evolve(self, side: int) -> None:
        p = self.participants[side]
        mon = p.active
        if p.has_mega_evolved or mon is None or mon.is_fainted or not mon.mega_evolve():
            logger.info("Mega evolution unavailable for %s", p.participant_id)
            return
        p.has_mega_evolved = True
        self._emit("mega", f"{mon.display_name} has Mega Evolved!", side, pokemon_name=mon.display_name)

    # -- HP helpers -------------------------------------------------------------

    def _hurt(self, side: int, mon: Combatant, amount: int) -> int:
        was_alive = not mon.is_fainted
        lost = mon.take_damage(amount)
        if was_alive and mon.is_fainted:
            self._emit("faint", f"{mon.display_name} fainted!", side, pokemon_name=mon.display_name)
        return lost

    def _chance(self, percent: int | None) -> bool:
        if percent is None:
            return True
        return self.rng.randint(1, 100) <= percent

    # -- Moves -------------------------------------------------------------------

    def _can_act(self, side: int, user: Combatant) -> bool:
        """Run pre-move status checks. Returns False if the turn is lost."""
        name = user.display_name
        if user.flinched:
            self._emit("status", f"{name} flinched and couldn't move!", side, pokemon_name=name)
            return False

        if user.status == StatusEffect.SLEEP:
            user.status_turns -= 1
            if user.status_turns <= 0:
                user.cure_status()
                self._emit("status", f"{name} woke up!", side, pokemon_name=name)
            else:
                self._emit("status", f"{name} is fast asleep.", side, pokemon_name=name)
                return False

        if user.status == StatusEffect.FREEZE:
            if self.rng.random() < 0.2:
                user.cure_status()
                self._emit("status", f"{name} thawed out!", side, pokemon_name=name)
            else:
                self._emit("status", f"{name} is frozen solid!", side, pokemon_name=name)
                return False

        if user.status == StatusEffect.PARALYSIS and self.rng.random() < 0.25:
            self._emit("status", f"{name} is paralyzed! It can't move!", side, pokemon_name=name)
            return False

        if user.confusion_turns > 0:
            user.confusion_turns -= 1
            if user.confusion_turns == 0:
                self._emit("status", f"{name} snapped out of its confusion!", side, pokemon_name=name)
            else:
                self._emit("status", f"{name} is confused!", side, pokemon_name=name)
                if self.rng.random() < 1 / 3:
                    damage, _, _ = calculate_damage(
                        user.level, _CONFUSION_HIT, user.stat("atk"), user.stat("def"),
                        [], user.type1, user.type2, critical=False, rng=self.rng,
                    )
                    lost = self._hurt(side, user, damage)
                    self._emit("damage", f"It hurt itself in its confusion! (-{lost} HP)", side,
                               pokemon_name=name, damage=lost)
                    return False
        return True

    def _use_move(self, side: int, action: MoveAction) -> None:
        me = self.participants[side]
        foe_side = 1 - side
        foe = self.participants[foe_side]
        user = me.active
        if user is None or user.is_fainted:
            logger.info("Skipping move by %s: no able active combatant", me.participant_id)
            return

        move_index, move = selected_move(me, action)
        continuing_lock = user.is_locked

        if not self._can_act(side, user):
            user.locked_move_index = None
            user.locked_turns = 0
            return

        if move.is_struggle:
            self._emit("info", f"{user.display_name} has no moves left!", side, pokemon_name=user.display_name)
        elif not continuing_lock:
            move.current_pp = max(0, (move.current_pp or 0) - 1)

        target = foe.active
        self._emit("move", f"{user.display_name} used {move.display_name}!", side,
                   pokemon_name=user.display_name,
                   target_name=target.display_name if target else None,
                   move_name=move.display_name)

        if move.targets_opponent and (target is None or target.is_fainted):
            logger.info("Skipping %s by %s: no target", move.name, me.participant_id)
            self._emit("info", "But there was no target...", side)
            return

        if move.sets_weather is not None:
            self._set_weather(side, move.sets_weather)
            return
        if move.sets_terrain is not None:
            self._set_terrain(side, user, move.sets_terrain)
            return
        if move.sets_trick_room:
            self._toggle_trick_room(side, user)
            return
        if move.volatile_effect == VolatileEffect.PROTECT:
            user.protected = True
            self._emit("status", f"{user.display_name} protected itself!", side, pokemon_name=user.display_name)
            return

        if move.targets_opponent:
            if target is None:
                raise InvariantViolationError(f"{move.name} needs a target but side {foe_side} has none")
            if target.protected:
                self._emit("info", f"{target.display_name} protected itself!", foe_side,
                           pokemon_name=target.display_name)
                return
            if move.priority > 0 and self.field.terrain == Terrain.PSYCHIC and target.is_grounded:
                self._emit("info", f"{target.display_name} is protected by the Psychic Terrain!", foe_side,
                           pokemon_name=target.display_name)
                return
            if not self._accuracy_check(user, target, move):
                self._emit("miss", f"{user.display_name}'s attack missed!", side, pokemon_name=user.display_name)
                user.locked_move_index = None
                user.locked_turns = 0
                return

        if move.damage_class == DamageClass.STATUS:
            self._status_move(side, user, move, foe_side, target)
            return

        if target is None:
            raise InvariantViolationError(f"{move.name} needs a target but side {foe_side} has none")
        self._damaging_move(side, user, move, foe_side, target)
        self._advance_lock(side, user, move, move_index)

    def _accuracy_check(self, user: Combatant, target: Combatant, move: Move) -> bool:
        if move.accuracy is None:
            return True
        stage = user.stages.get("accuracy", 0) - target.stages.get("evasion", 0)
        threshold = move.accuracy * accuracy_stage_multiplier(stage)
        return self.rng.randint(1, 100) <= threshold

    def _damaging_move(self, side: int, user: Combatant, move: Move, foe_side: int, target: Combatant) -> None:
        hits = self.rng.randint(move.min_hits, move.max_hits) if move.max_hits > 1 else 1
        total = 0
        landed = 0
        effectiveness = 1.0
        for _ in range(hits):
            if target.is_fainted or user.is_fainted:
                break
            crit = roll_critical(move.crit_stage, self.rng)
            if move.damage_class == DamageClass.PHYSICAL:
                atk = user.stat("atk", ignore_stage="negative" if crit else None)
                dfn = target.stat("def", ignore_stage="positive" if crit else None)
            else:
                atk = user.stat("spa", ignore_stage="negative" if crit else None)
                dfn = target.stat("spd", ignore_stage="positive" if crit else None)
            damage, effectiveness, crit = calculate_damage(
                attacker_level=user.level,
                move=move,
                attack_stat=atk,
                defense_stat=dfn,
                attacker_types=user.types,
                defender_type1=target.types[0],
                defender_type2=target.types[1] if len(target.types) > 1 else None,
                critical=crit,
                weather=self.field.weather,
                terrain=self.field.terrain,
                inverse=self.inverse,
                burned=user.status == StatusEffect.BURN,
                rng=self.rng,
            )
            if effectiveness == 0:
                self._emit("immune", f"It doesn't affect {target.display_name}...", foe_side,
                           pokemon_name=target.display_name, effectiveness=0.0)
                return
            landed += 1
            crit_msg = " A critical hit!" if crit else ""
            if target.has_substitute:
                absorbed = min(damage, target.substitute_hp)
                target.substitute_hp -= absorbed
                total += absorbed
                self._emit("damage", f"The substitute took damage for {target.display_name}!{crit_msg}",
                           foe_side, pokemon_name=target.display_name, damage=absorbed,
                           effectiveness=effectiveness, critical=crit)
                if not target.has_substitute:
                    self._emit("status", f"{target.display_name}'s substitute faded!", foe_side,
                               pokemon_name=target.display_name)
                continue
            lost = self._hurt(foe_side, target, damage)
            total += lost
            self._emit("damage", f"{target.display_name} took {lost} damage!{crit_msg}", foe_side,
                       pokemon_name=target.display_name, damage=lost,
                       effectiveness=effectiveness, critical=crit)

        if effectiveness > 1.0:
            self._emit("info", "It's super effective!", foe_side)
        elif 0 < effectiveness < 1.0:
            self._emit("info", "It's not very effective...", foe_side)
        if hits > 1:
            self._emit("info", f"Hit {landed} time(s)!", side)

        self._drain_and_recoil(side, user, move, total)
        if not target.is_fainted and landed:
            self._secondary_effects(side, user, move, foe_side, target)
        if move.stat_target == "self" and move.stat_changes and not user.is_fainted and landed:
            self._apply_stat_changes(side, user, move.stat_changes)

    def _drain_and_recoil(self, side: int, user: Combatant, move: Move, dealt: int) -> None:
        name = user.display_name
        if move.drain_percent > 0 and dealt > 0:
            healed = user.heal(max(1, dealt * move.drain_percent // 100))
            if healed:
                self._emit("heal", f"{name} drained {healed} HP!", side, pokemon_name=name)
        elif move.drain_percent < 0 and dealt > 0:
            recoil = self._hurt(side, user, max(1, dealt * -move.drain_percent // 100))
            self._emit("recoil", f"{name} was damaged by the recoil! (-{recoil} HP)", side,
                       pokemon_name=name, damage=recoil)
        if move.recoil_max_hp_percent and not user.is_fainted:
            recoil = self._hurt(side, user, max(1, user.max_hp * move.recoil_max_hp_percent // 100))
            self._emit("recoil", f"{name} was damaged by the recoil! (-{recoil} HP)", side,
                       pokemon_name=name, damage=recoil)

    def _secondary_effects(self, side: int, user: Combatant, move: Move, foe_side: int, target: Combatant) -> None:
        if target.has_substitute:
            return
        if move.status_effect != StatusEffect.NONE and self._chance(move.effect_chance):
            self._inflict_status(foe_side, target, move.status_effect, announce_failure=False)
        if move.volatile_effect == VolatileEffect.CONFUSION and self._chance(move.effect_chance):
            self._confuse(foe_side, target)
        if move.volatile_effect == VolatileEffect.TRAP and target.trapped_turns == 0:
            target.trapped_turns = self.rng.randint(4, 5)
            target.trap_damage = True
            self._emit("status", f"{target.display_name} was trapped!", foe_side, pokemon_name=target.display_name)
        if move.stat_target == "opponent" and move.stat_changes and self._chance(move.effect_chance):
            self._apply_stat_changes(foe_side, target, move.stat_changes)
        if move.flinch_chance and foe_side not in self._acted and self._chance(move.flinch_chance):
            target.flinched = True

    def _advance_lock(self, side: int, user: Combatant, move: Move, move_index: int | None) -> None:
        if move.volatile_effect != VolatileEffect.LOCK or move_index is None or user.is_fainted:
            return
        if not user.is_locked:
            user.locked_move_index = move_index
            user.locked_turns = self.rng.randint(2, 3)
        user.locked_turns -= 1
        if user.locked_turns <= 0:
            user.locked_move_index = None
            user.locked_turns = 0
            self._confuse(side, user, reason="due to fatigue")

    # -- Status moves ---------------------------------------------------------

    def _status_move(
        self,
        side: int,
        user: Combatant,
        move: Move,
        foe_side: int,
        target: Combatant | None,
    ) -> None:
        name = user.display_name

        if move.name == "rest":
            if user.current_hp == user.max_hp or self._terrain_blocking(user, StatusEffect.SLEEP):
                self._emit("info", "But it failed!", side)
                return
            user.heal(user.max_hp)
            user.cure_status()
            user.status = StatusEffect.SLEEP
            user.status_turns = 2
            self._emit("status", f"{name} slept and became healthy!", side, pokemon_name=name)
            return

        if move.healing_percent > 0:
            healed = user.heal(user.max_hp * move.healing_percent // 100)
            if healed:
                self._emit("heal", f"{name} restored {healed} HP!", side, pokemon_name=name)
            else:
                self._emit("info", f"{name}'s HP is full!", side)
            return

        if move.volatile_effect == VolatileEffect.SUBSTITUTE:
            cost = user.max_hp // 4
            if user.has_substitute or user.current_hp <= cost:
                self._emit("info", "But it failed!", side)
                return
            self._hurt(side, user, cost)
            user.substitute_hp = cost
            self._emit("status", f"{name} put in a substitute!", side, pokemon_name=name)
            return

        affected = False
        if target is not None and move.targets_opponent and target.has_substitute:
            self._emit("info", "But it failed!", side)
            return
        if move.status_effect != StatusEffect.NONE and target is not None:
            affected |= self._inflict_status(foe_side, target, move.status_effect, announce_failure=True)
        if move.volatile_effect == VolatileEffect.CONFUSION and target is not None:
            affected |= self._confuse(foe_side, target)
        if move.volatile_effect == VolatileEffect.TRAP and target is not None:
            if target.trapped_turns == 0:
                target.trapped_turns = 5
                target.trap_damage = False
                self._emit("status", f"{target.display_name} can no longer escape!", foe_side,
                           pokemon_name=target.display_name)
                affected = True
        if move.stat_changes:
            if move.stat_target == "self":
                affected |= self._apply_stat_changes(side, user, move.stat_changes)
            elif target is not None:
                affected |= self._apply_stat_changes(foe_side, target, move.stat_changes)
        if not affected and move.status_effect == StatusEffect.NONE:
            self._emit("info", "But nothing happened!", side)

    def _inflict_status(self, side: int, mon: Combatant, status: StatusEffect, announce_failure: bool) -> bool:
        immune = STATUS_IMMUNE_TYPES.get(status, set())
        if mon.status != StatusEffect.NONE or any(mon.has_type(t) for t in immune):
            if announce_failure:
                self._emit("info", f"It doesn't affect {mon.display_name}...", side, pokemon_name=mon.display_name)
            return False
        terrain = self._terrain_blocking(mon, status)
        if terrain is not None:
            if announce_failure:
                self._emit("info", f"{mon.display_name} is protected by the {terrain.value.title()} Terrain!", side,
                           pokemon_name=mon.display_name)
            return False
        if not mon.set_status(status, self.rng):
            return False
        self._emit("status", f"{mon.display_name} was {_STATUS_VERB[status]}!", side, pokemon_name=mon.display_name)
        return True

    def _confuse(self, side: int, mon: Combatant, reason: str = "") -> bool:
        if mon.confusion_turns > 0 or mon.is_fainted:
            return False
        mon.confusion_turns = self.rng.randint(2, 5)
        suffix = f" {reason}" if reason else ""
        self._emit("status", f"{mon.display_name} became confused{suffix}!", side, pokemon_name=mon.display_name)
        return True

    def _apply_stat_changes(self, side: int, mon: Combatant, changes: dict[str, int]) -> bool:
        changed = False
        for stat, delta in changes.items():
            applied = mon.modify_stage(stat, delta)
            label = STAT_NAMES.get(stat, stat)
            if applied == 0:
                direction = "higher" if delta > 0 else "lower"
                self._emit("stat", f"{mon.display_name}'s {label} won't go any {direction}!", side,
                           pokemon_name=mon.display_name)
                continue
            changed = True
            size = {1: "", 2: " sharply", 3: " drastically"}.get(abs(applied), " drastically")
            verb = "rose" if applied > 0 else "fell"
            self._emit("stat", f"{mon.display_name}'s {label}{size} {verb}!", side, pokemon_name=mon.display_name)
        return changed

    # -- Field ---------------------------------------------------------------

    def _set_weather(self, side: int, weather: Weather) -> None:
        if not self.field.set_weather(weather, self.weather_turns):
            self._emit("info", "But it failed!", side)
            return
        self._emit("field", WEATHER_START_MESSAGES[weather], side)

    def _set_terrain(self, side: int, user: Combatant, terrain: Terrain) -> None:
        if not self.field.set_terrain(terrain, self.terrain_turns):
            self._emit("info", "But it failed!", side)
            return
        self._emit("field", TERRAIN_START_MESSAGES[terrain], side, pokemon_name=user.display_name)

    def _terrain_blocking(self, mon: Combatant, status: StatusEffect) -> Terrain | None:
        """The terrain that keeps ``status`` off ``mon``, if any."""
        terrain = self.field.terrain
        if terrain is None or not mon.is_grounded:
            return None
        if terrain == Terrain.MISTY or (terrain == Terrain.ELECTRIC and status == StatusEffect.SLEEP):
            return terrain
        return None

    def _toggle_trick_room(self, side: int, user: Combatant) -> None:
        if self.field.toggle_trick_room(self.trick_room_turns):
            self._emit("field", f"{user.display_name} twisted the dimensions!", side)
        else:
            self._emit("field", "The twisted dimensions returned to normal!", side)

    # -- End of turn ----------------------------------------------------------

    def _end_of_turn(self) -> None:
        weather = self.field.weather
        if weather is not None and self.field.weather_turns_left > 1:
            self._emit("field", WEATHER_ACTIVE_MESSAGES[weather])

        for side, p in enumerate(self.participants):
            mon = p.active
            if mon is None or mon.is_fainted:
                continue
            self._weather_damage(side, mon, weather)
            if not mon.is_fainted:
                self._terrain_heal(side, mon)
            if not mon.is_fainted:
                self._status_damage(side, mon)
            if not mon.is_fainted:
                self._trap_countdown(side, mon)
            mon.protected = False
            mon.flinched = False
            if self._battle_over():
                return

        for message in self.field.tick():
            self._emit("field", message)

    def _terrain_heal(self, side: int, mon: Combatant) -> None:
        if self.field.terrain != Terrain.GRASSY or not mon.is_grounded:
            return
        healed = mon.heal(max(1, mon.max_hp // 16))
        if healed:
            self._emit("heal", f"{mon.display_name} is healed by the grassy terrain! (+{healed} HP)", side,
                       pokemon_name=mon.display_name)

    def _weather_damage(self, side: int, mon: Combatant, weather: Weather | None) -> None:
        if weather not in WEATHER_IMMUNE_TYPES:
            return
        if any(mon.has_type(t) for t in WEATHER_IMMUNE_TYPES[weather]):
            return
        lost = self._hurt(side, mon, max(1, mon.max_hp // 16))
        what = "the sandstorm" if weather == Weather.SANDSTORM else "the hail"
        self._emit("weather", f"{mon.display_name} is buffeted by {what}! (-{lost} HP)", side,
                   pokemon_name=mon.display_name, damage=lost)

    def _status_damage(self, side: int, mon: Combatant) -> None:
        if mon.status == StatusEffect.BURN:
            lost = self._hurt(side, mon, max(1, mon.max_hp // 16))
            message = f"{mon.display_name} was hurt by its burn! (-{lost} HP)"
        elif mon.status == StatusEffect.POISON:
            lost = self._hurt(side, mon, max(1, mon.max_hp // 8))
            message = f"{mon.display_name} was hurt by poison! (-{lost} HP)"
        elif mon.status == StatusEffect.BADLY_POISONED:
            mon.status_turns = min(15, mon.status_turns + 1)
            lost = self._hurt(side, mon, max(1, mon.max_hp * mon.status_turns // 16))
            message = f"{mon.display_name} was badly hurt by poison! (-{lost} HP)"
        else:
            return
        self._emit("status", message, side, pokemon_name=mon.display_name, damage=lost)

    def _trap_countdown(self, side: int, mon: Combatant) -> None:
        if mon.trapped_turns <= 0:
            return
        if mon.trap_damage:
            lost = self._hurt(side, mon, max(1, mon.max_hp // 8))
            self._emit("status", f"{mon.display_name} is hurt by the trap! (-{lost} HP)", side,
                       pokemon_name=mon.display_name, damage=lost)
        mon.trapped_turns -= 1
        if mon.trapped_turns == 0:
            mon.trap_damage = False
            if not mon.is_fainted:
                self._emit("status", f"{mon.display_name} was freed!", side, pokemon_name=mon.display_name)
