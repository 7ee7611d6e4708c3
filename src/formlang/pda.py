import logging
from collections import defaultdict
from typing import Iterable, NamedTuple, Optional

from formlang.core import (
    EPSILON,
    Alphabet,
    AlphabetError,
    InvalidAutomaton,
    InvalidState,
    StackAlphabet,
    State,
)
from formlang.transitions import StackTransition

logger = logging.getLogger(__name__)


class Configuration(NamedTuple):
    """A snapshot of a running PDA, the top of the stack is the last symbol"""

    state: State
    stack: tuple[str, ...] = ()

    def top(self) -> Optional[str]:
        return self.stack[-1] if self.stack else None

    def push(self, symbol: str) -> tuple[str, ...]:
        if symbol == EPSILON:
            return self.stack
        return self.stack + (symbol,)

    def __str__(self):
        return f"({self.state}, {''.join(reversed(self.stack)) or EPSILON})"


class PDA:
    """
    A nondeterministic pushdown automaton accepting by final state

    The ε-closure of a set of configurations is bounded: it follows at most
    `max_epsilon_steps` consecutive ε-moves (the number of states by default).
    Runs that need a longer chain of ε-moves between two input symbols are not
    explored, so a too small bound under-approximates the language.

    Examples
    --------
    >>> q0, q1, q2 = State("q0"), State("q1"), State("q2")
    >>> delta = StackTransition.from_rules([
    ...     (q0, EPSILON, EPSILON, q1, "$"),
    ...     (q1, EPSILON, "a", q1, "a"),
    ...     (q1, "a", "b", q1, EPSILON),
    ...     (q1, "$", EPSILON, q2, EPSILON),
    ... ])
    >>> pda = PDA({q0, q1, q2}, "ab", {"a", "$"}, delta, q0, {q2})
    >>> pda.accepts("aabb"), pda.accepts("aab"), pda.accepts("")
    (True, False, True)
    """

    __slots__ = (
        "_states",
        "_input_alphabet",
        "_stack_alphabet",
        "_transition",
        "_start_state",
        "_accepting_states",
        "_max_epsilon_steps",
    )

    def __init__(
        self,
        states: Iterable[State],
        input_alphabet: Iterable[str],
        stack_alphabet: Iterable[str],
        transition: StackTransition,
        start_state: State,
        accepting_states: Iterable[State],
        max_epsilon_steps: Optional[int] = None,
    ):
        self._states = frozenset(states)
        self._input_alphabet = (
            input_alphabet if isinstance(input_alphabet, Alphabet) else Alphabet(input_alphabet)
        )
        self._stack_alphabet = (
            stack_alphabet
            if isinstance(stack_alphabet, StackAlphabet)
            else StackAlphabet(stack_alphabet)
        )
        self._transition = transition
        self._start_state = start_state
        self._accepting_states = frozenset(accepting_states)
        self._max_epsilon_steps = (
            len(self._states) if max_epsilon_steps is None else max_epsilon_steps
        )
        self._validate()

    def _validate(self) -> None:
        if self._start_state not in self._states:
            raise InvalidAutomaton(f"start state {self._start_state} is not in the state set")
        if missing := self._accepting_states - self._states:
            raise InvalidAutomaton(f"accepting states {sorted(missing)} are not in the state set")
        if foreign := self._transition.sources() - self._states:
            raise InvalidState(
                f"transitions leave from states {sorted(foreign)} outside the state set"
            )
        if unclosed := set(self._transition.targets()) - self._states:
            raise InvalidAutomaton(f"transition targets {sorted(unclosed)} are not in the state set")
        if foreign_symbols := self._transition.tape_symbols() - self._input_alphabet:
            raise AlphabetError(
                f"transitions read symbols {sorted(foreign_symbols)} not in {self._input_alphabet}"
            )
        if foreign_symbols := self._transition.stack_symbols() - self._stack_alphabet:
            raise AlphabetError(
                f"transitions use stack symbols {sorted(foreign_symbols)} not in {self._stack_alphabet}"
            )
        if self._max_epsilon_steps < 0:
            raise InvalidAutomaton(
                f"max_epsilon_steps must not be negative, got {self._max_epsilon_steps}"
            )

    @property
    def states(self) -> frozenset[State]:
        return self._states

    @property
    def input_alphabet(self) -> Alphabet:
        return self._input_alphabet

    @property
    def stack_alphabet(self) -> StackAlphabet:
        return self._stack_alphabet

    @property
    def transition(self) -> StackTransition:
        return self._transition

    @property
    def start_state(self) -> State:
        return self._start_state

    @property
    def accepting_states(self) -> frozenset[State]:
        return self._accepting_states

    @property
    def max_epsilon_steps(self) -> int:
        return self._max_epsilon_steps

    def start_configurations(self) -> frozenset[Configuration]:
        return self.epsilon_closure((Configuration(self._start_state),))

    def transition_step(self, config: Configuration, symbol: str) -> set[Configuration]:
        """
        Every configuration one move away from `config` reading `symbol`

        Stepping on ε keeps `config` itself, as staying put is always an ε-move
        """
        step = set()
        if symbol == EPSILON:
            step.add(config)
        for state, push in self._transition.epsilon_stack(config.state, symbol):
            step.add(Configuration(state, config.push(push)))
        if (top := config.top()) is not None:
            popped = Configuration(config.state, config.stack[:-1])
            for state, push in self._transition(config.state, top, symbol):
                step.add(Configuration(state, popped.push(push)))
        return step

    def epsilon_closure(self, configs: Iterable[Configuration]) -> frozenset[Configuration]:
        """All configurations within `max_epsilon_steps` ε-moves of `configs`, breadth first"""
        closure = set(configs)
        frontier = set(closure)
        for _ in range(self._max_epsilon_steps):
            frontier = {
                stepped
                for config in frontier
                for stepped in self.transition_step(config, EPSILON)
            } - closure
            if not frontier:
                break
            closure |= frontier
        logger.debug("ε-closure explored %d configurations", len(closure))
        return frozenset(closure)

    def accepts(self, string: str) -> bool:
        self._input_alphabet.check(string)
        configs = self.start_configurations()
        for symbol in string:
            configs = self.epsilon_closure(
                stepped
                for config in configs
                for stepped in self.transition_step(config, symbol)
            )
            if not configs:
                return False
        return any(config.state in self._accepting_states for config in configs)

    def describe(self) -> str:
        """The formal 6-tuple (Q, Σ, Γ, δ, q0, F)"""
        grouped = defaultdict(list)
        for state_in, stack_in, symbol, state_out, stack_out in self._transition.rules():
            grouped[(state_in, symbol, stack_in)].append(f"({state_out}, {stack_out})")
        lines = [
            f"Q = {{{', '.join(map(str, sorted(self._states)))}}}",
            f"Σ = {self._input_alphabet}",
            f"Γ = {self._stack_alphabet}",
            "δ =",
        ]
        for (state, symbol, stack_in), results in sorted(grouped.items()):
            lines.append(f"    δ({state}, {symbol}, {stack_in}) -> {{{', '.join(sorted(results))}}}")
        lines.append(f"q0 = {self._start_state}")
        lines.append(f"F = {{{', '.join(map(str, sorted(self._accepting_states)))}}}")
        return "\n".join(lines)

    def __repr__(self):
        return (
            f"PDA(states={len(self._states)}, input_alphabet={self._input_alphabet}, "
            f"stack_alphabet={self._stack_alphabet}, start={self._start_state})"
        )
