"""
Transition functions

All four stores are immutable mappings keyed by a single composite tuple.
Undefined inputs read as a shared, immutable empty value rather than raising,
the automata themselves decide whether an undefined entry is an error.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from types import MappingProxyType
from typing import Final, Generic, Hashable, Iterable, Iterator, Mapping, NamedTuple, Optional, TypeVar

from formlang.core import EPSILON, State
from formlang.parser import NullToken, Token

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

EMPTY: Final[frozenset] = frozenset()


class StackState(NamedTuple):
    state: State
    stack_symbol: str

    def __str__(self):
        return f"{self.state}, {self.stack_symbol}"


class TransitionFunction(Mapping[K, V], Generic[K, V], ABC):
    __slots__ = ("_table",)

    _table: dict[K, V]

    def __getitem__(self, key: K) -> V:
        return self._table[key]

    def __iter__(self) -> Iterator[K]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def __hash__(self):
        return hash(frozenset(self._table.items()))

    def __eq__(self, other):
        if isinstance(other, TransitionFunction):
            return self._table == other._table
        return NotImplemented

    @abstractmethod
    def sources(self) -> set[State]:
        """The states some transition starts from"""
        ...

    @abstractmethod
    def targets(self) -> Iterator[State]:
        """Every state some transition ends in"""
        ...

    def __repr__(self):
        entries = ", ".join(
            f"{key}: {value}" for key, value in sorted(self._table.items(), key=str)
        )
        return f"{self.__class__.__name__}({{{entries}}})"


class DeterministicTransition(TransitionFunction[tuple[State, str], State]):
    """
    δ: Q × Σ → Q

    Examples
    --------
    >>> p, q = State("p"), State("q")
    >>> delta = DeterministicTransition({(p, "a"): q, (q, "a"): p})
    >>> delta(p, "a")
    q
    >>> delta(p, "b") is None
    True
    """

    def __init__(self, table: Mapping[tuple[State, str], State] = ()):  # type: ignore
        self._table = dict(table)

    def __call__(self, state: State, symbol: str) -> Optional[State]:
        return self._table.get((state, symbol))

    def sources(self) -> set[State]:
        return {state for state, _ in self._table}

    def targets(self) -> Iterator[State]:
        yield from self._table.values()

    def edges(self) -> Iterator[tuple[State, str, State]]:
        for (state, symbol), end in self._table.items():
            yield state, symbol, end

    def relabel(self, mapping: Mapping[State, State]) -> "DeterministicTransition":
        return DeterministicTransition(
            {
                (mapping[state], symbol): mapping[end]
                for (state, symbol), end in self._table.items()
            }
        )


class NondeterministicTransition(TransitionFunction[tuple[State, str], frozenset[State]]):
    """
    δ: Q × (Σ ∪ {ε}) → P(Q)

    Examples
    --------
    >>> p, q, r = State("p"), State("q"), State("r")
    >>> delta = NondeterministicTransition.from_edges([(p, "a", q), (p, "a", r), (q, EPSILON, r)])
    >>> sorted(delta(p, "a"))
    [q, r]
    >>> delta(r, "a")
    frozenset()
    """

    __slots__ = ("_outgoing",)

    def __init__(self, table: Mapping[tuple[State, str], Iterable[State]] = ()):  # type: ignore
        self._table = {}
        self._outgoing: defaultdict[State, dict[str, frozenset[State]]] = defaultdict(dict)
        for (state, symbol), ends in dict(table).items():
            if ends := frozenset(ends):
                self._table[(state, symbol)] = ends
                self._outgoing[state][symbol] = ends

    @staticmethod
    def from_edges(edges: Iterable[tuple[State, str, State]]) -> "NondeterministicTransition":
        table: defaultdict[tuple[State, str], set[State]] = defaultdict(set)
        for state, symbol, end in edges:
            table[(state, symbol)].add(end)
        return NondeterministicTransition(table)

    def __call__(self, state: State, symbol: str) -> frozenset[State]:
        return self._table.get((state, symbol), EMPTY)

    def outgoing(self, state: State) -> Mapping[str, frozenset[State]]:
        return MappingProxyType(self._outgoing.get(state, {}))

    def sources(self) -> set[State]:
        return set(self._outgoing)

    def targets(self) -> Iterator[State]:
        for ends in self._table.values():
            yield from ends

    def symbols(self) -> set[str]:
        return {symbol for _, symbol in self._table}

    def edges(self) -> Iterator[tuple[State, str, State]]:
        for (state, symbol), ends in self._table.items():
            for end in ends:
                yield state, symbol, end

    def relabel(self, mapping: Mapping[State, State]) -> "NondeterministicTransition":
        return NondeterministicTransition.from_edges(
            (mapping[state], symbol, mapping[end]) for state, symbol, end in self.edges()
        )


class StackTransition(
    TransitionFunction[tuple[State, str, str], frozenset[StackState]]
):
    """
    δ: Q × (Γ ∪ {ε}) × (Σ ∪ {ε}) → P(Q × (Γ ∪ {ε}))

    A key is (state, popped stack symbol, tape symbol), popping ε leaves the stack alone
    and pushing ε pushes nothing

    Examples
    --------
    >>> p = State("p")
    >>> delta = StackTransition.from_rules([(p, EPSILON, "a", p, "A"), (p, "A", "b", p, EPSILON)])
    >>> delta.epsilon_stack(p, "a")
    frozenset({StackState(state=p, stack_symbol='A')})
    >>> delta(p, "A", "a")
    frozenset()
    """

    def __init__(self, table: Mapping[tuple[State, str, str], Iterable[StackState]] = ()):  # type: ignore
        self._table = {
            key: results
            for key, ends in dict(table).items()
            if (results := frozenset(StackState(*end) for end in ends))
        }

    @staticmethod
    def from_rules(
        rules: Iterable[tuple[State, str, str, State, str]]
    ) -> "StackTransition":
        table: defaultdict[tuple[State, str, str], set[StackState]] = defaultdict(set)
        for state_in, stack_in, symbol, state_out, stack_out in rules:
            table[(state_in, stack_in, symbol)].add(StackState(state_out, stack_out))
        return StackTransition(table)

    def __call__(self, state: State, stack_symbol: str, symbol: str) -> frozenset[StackState]:
        return self._table.get((state, stack_symbol, symbol), EMPTY)

    def epsilon_stack(self, state: State, symbol: str) -> frozenset[StackState]:
        """Transitions that neither look at nor pop the stack"""
        return self(state, EPSILON, symbol)

    def rules(self) -> Iterator[tuple[State, str, str, State, str]]:
        for (state_in, stack_in, symbol), results in self._table.items():
            for state_out, stack_out in results:
                yield state_in, stack_in, symbol, state_out, stack_out

    def sources(self) -> set[State]:
        return {state for state, _, _ in self._table}

    def targets(self) -> Iterator[State]:
        for results in self._table.values():
            for result in results:
                yield result.state

    def stack_symbols(self) -> set[str]:
        symbols = set()
        for _, stack_in, _, _, stack_out in self.rules():
            symbols |= {stack_in, stack_out}
        return symbols - {EPSILON}

    def tape_symbols(self) -> set[str]:
        return {symbol for _, _, symbol in self._table} - {EPSILON}


class GeneralTransition(TransitionFunction[tuple[State, State], Token]):
    """
    δ: Q × Q → Regex, total over its state set, absent pairs read as the null token

    Examples
    --------
    >>> from formlang.parser import LiteralToken
    >>> p, q = State("p"), State("q")
    >>> delta = GeneralTransition({p, q}, {(p, q): LiteralToken("a")})
    >>> delta(p, q), delta(q, p)
    (LiteralToken(symbol='a'), NullToken())
    """

    __slots__ = ("_states",)

    def __init__(self, states: Iterable[State], table: Mapping[tuple[State, State], Token] = ()):  # type: ignore
        self._states = frozenset(states)
        self._table = {
            key: token
            for key, token in dict(table).items()
            if not isinstance(token, NullToken)
        }

    def __call__(self, start: State, end: State) -> Token:
        return self._table.get((start, end), NullToken())

    @property
    def states(self) -> frozenset[State]:
        return self._states

    def sources(self) -> set[State]:
        return {start for start, _ in self._table}

    def targets(self) -> Iterator[State]:
        for _, end in self._table:
            yield end

    def out_degree(self, state: State) -> int:
        return sum(
            1 for start, end in self._table if start == state and end != state
        )

    def in_degree(self, state: State) -> int:
        return sum(
            1 for start, end in self._table if end == state and start != state
        )

    def without(self, removed: State, updates: Mapping[tuple[State, State], Token]) -> "GeneralTransition":
        """A copy with `removed` and its edges dropped and the labels in `updates` overwritten"""
        table = {
            (start, end): token
            for (start, end), token in self._table.items()
            if removed not in (start, end)
        }
        table.update(updates)
        return GeneralTransition(self._states - {removed}, table)
