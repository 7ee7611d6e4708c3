import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Iterable, Optional

from tqdm import tqdm

from formlang.core import EPSILON, Alphabet, InvalidAutomaton, InvalidState, State, StateAllocator
from formlang.parser import (
    ChoiceToken,
    EmptyToken,
    LiteralToken,
    NullToken,
    Token,
    concat,
    star,
    union,
)
from formlang.transitions import GeneralTransition
from formlang.utils import AutomatonFlag

if TYPE_CHECKING:
    from formlang.fsm import NFA

logger = logging.getLogger(__name__)


def label_for(symbols: Iterable[str]) -> Token:
    """
    The token matching exactly the symbols on a bundle of parallel edges

    >>> label_for([])
    NullToken()
    >>> label_for(["a"])
    LiteralToken(symbol='a')
    >>> label_for([EPSILON])
    EmptyToken()
    """
    symbols = set(symbols)
    literals = symbols - {EPSILON}
    if len(literals) == 1:
        token: Token = LiteralToken(literals.pop())
    elif literals:
        token = ChoiceToken(frozenset(literals))
    else:
        token = NullToken()
    if EPSILON in symbols:
        return union(EmptyToken(), token)
    return token


class GNFA:
    """
    A generalized NFA: every ordered pair of states is joined by an edge labelled
    with a regex token, absent edges carry the null token

    The start state has no incoming edges and the single accepting state has
    no outgoing edges. Eliminating the other states one at a time leaves the
    regex of the whole automaton on the start to accept edge.
    """

    __slots__ = ("_states", "_alphabet", "_transition", "_start_state", "_accepting_state")

    def __init__(
        self,
        states: Iterable[State],
        alphabet: Iterable[str],
        transition: GeneralTransition,
        start_state: State,
        accepting_state: State,
    ):
        self._states = frozenset(states)
        self._alphabet = alphabet if isinstance(alphabet, Alphabet) else Alphabet(alphabet)
        self._transition = transition
        self._start_state = start_state
        self._accepting_state = accepting_state
        self._validate()

    def _validate(self) -> None:
        if self._start_state not in self._states:
            raise InvalidAutomaton(f"start state {self._start_state} is not in the state set")
        if self._accepting_state not in self._states:
            raise InvalidAutomaton(
                f"accepting state {self._accepting_state} is not in the state set"
            )
        if self._start_state == self._accepting_state:
            raise InvalidAutomaton("the start and accepting states of a GNFA must differ")
        if self._transition.states != self._states:
            raise InvalidState(
                f"transition covers states {sorted(self._transition.states)}, "
                f"expected {sorted(self._states)}"
            )
        if foreign := (self._transition.sources() | set(self._transition.targets())) - self._states:
            raise InvalidAutomaton(f"edges reach states {sorted(foreign)} outside the state set")
        if self._start_state in set(self._transition.targets()):
            raise InvalidAutomaton(f"start state {self._start_state} has incoming edges")
        if self._accepting_state in self._transition.sources():
            raise InvalidAutomaton(f"accepting state {self._accepting_state} has outgoing edges")

    @classmethod
    def from_nfa(cls, nfa: "NFA", allocator: StateAllocator) -> "GNFA":
        """Adds the two bridge states then bundles parallel edges into a single label"""
        bridged = nfa.with_single_accept(allocator)
        (accepting_state,) = bridged.accepting_states

        symbols: defaultdict[tuple[State, State], set[str]] = defaultdict(set)
        for state, symbol, end in bridged.edges():
            symbols[(state, end)].add(symbol)

        return cls(
            bridged.states,
            bridged.alphabet,
            GeneralTransition(
                bridged.states,
                {pair: label_for(bundle) for pair, bundle in symbols.items()},
            ),
            bridged.start_state,
            accepting_state,
        )

    @property
    def states(self) -> frozenset[State]:
        return self._states

    @property
    def alphabet(self) -> Alphabet:
        return self._alphabet

    @property
    def transition(self) -> GeneralTransition:
        return self._transition

    @property
    def start_state(self) -> State:
        return self._start_state

    @property
    def accepting_state(self) -> State:
        return self._accepting_state

    def interior(self) -> list[State]:
        return sorted(self._states - {self._start_state, self._accepting_state})

    def _check_interior(self, state: State) -> None:
        if state not in self._states:
            raise InvalidState(f"{state} is not a state of this GNFA")
        if state in (self._start_state, self._accepting_state):
            raise InvalidState(f"cannot rip the start or accepting state {state}")

    def repair_cost(self, state: State) -> int:
        """The number of new edges ripping `state` creates"""
        self._check_interior(state)
        return self._transition.out_degree(state) * self._transition.in_degree(state)

    def lowest_cost_state(self) -> Optional[State]:
        interior = self.interior()
        if not interior:
            return None
        return min(interior, key=lambda state: (self.repair_cost(state), state))

    def rip(self, state: State) -> "GNFA":
        """
        Removes `state`, rerouting every path in -> state -> out through
        a direct edge labelled in (loop)* out
        """
        self._check_interior(state)
        delta = self._transition
        loop = star(delta(state, state))
        others = sorted(self._states - {state})

        updates = {}
        for start in others:
            going_in = delta(start, state)
            if isinstance(going_in, NullToken):
                continue
            for end in others:
                going_out = delta(state, end)
                if isinstance(going_out, NullToken):
                    continue
                updates[(start, end)] = union(
                    delta(start, end), concat(going_in, loop, going_out)
                )

        return GNFA(
            self._states - {state},
            self._alphabet,
            delta.without(state, updates),
            self._start_state,
            self._accepting_state,
        )

    def to_token(self, flags: AutomatonFlag = AutomatonFlag.NOFLAG) -> Token:
        gnfa = self
        with tqdm(
            total=len(self.interior()), desc="state elimination", disable=not flags.debug()
        ) as progress:
            while (state := gnfa.lowest_cost_state()) is not None:
                logger.debug("ripping %s at cost %d", state, gnfa.repair_cost(state))
                gnfa = gnfa.rip(state)
                progress.update()
        return gnfa.transition(gnfa.start_state, gnfa.accepting_state)

    def to_regex(self, flags: AutomatonFlag = AutomatonFlag.NOFLAG) -> str:
        """
        Examples
        --------
        >>> from formlang.compiler import compile_regex
        >>> regex = compile_regex("ab*", "ab").to_regex()
        >>> [compile_regex(regex, "ab").accepts(s) for s in ("a", "abbb", "ba")]
        [True, True, False]
        """
        return str(self.to_token(flags))

    def __repr__(self):
        return (
            f"GNFA(states={len(self._states)}, start={self._start_state}, "
            f"accept={self._accepting_state})"
        )
