import logging
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from functools import reduce
from itertools import combinations
from typing import TYPE_CHECKING, Iterable, Iterator, Optional

import graphviz
from more_itertools import minmax
from tqdm import tqdm

from formlang.core import (
    EPSILON,
    Alphabet,
    AlphabetError,
    InvalidAutomaton,
    InvalidState,
    State,
    StateAllocator,
)
from formlang.transitions import (
    EMPTY,
    DeterministicTransition,
    NondeterministicTransition,
)
from formlang.utils import AutomatonFlag, UnionFind

if TYPE_CHECKING:
    from formlang.gnfa import GNFA

logger = logging.getLogger(__name__)


def subset_state(states: Iterable[State]) -> State:
    """
    The canonical name of a set of NFA states, equal sets always get equal names

    >>> subset_state([State("q2"), State("q10"), State("q1")])
    {q1, q10, q2}
    >>> subset_state([])
    {}
    """
    return State("{" + ", ".join(sorted(state.name for state in states)) + "}")


class FiniteStateAutomaton(ABC):
    __slots__ = ("_states", "_alphabet", "_transition", "_start_state", "_accepting_states")

    def __init__(
        self,
        states: Iterable[State],
        alphabet: Iterable[str],
        transition,
        start_state: State,
        accepting_states: Iterable[State],
    ):
        self._states = frozenset(states)
        self._alphabet = alphabet if isinstance(alphabet, Alphabet) else Alphabet(alphabet)
        self._transition = transition
        self._start_state = start_state
        self._accepting_states = frozenset(accepting_states)
        self._validate()

    @property
    def states(self) -> frozenset[State]:
        return self._states

    @property
    def alphabet(self) -> Alphabet:
        return self._alphabet

    @property
    def transition(self):
        return self._transition

    @property
    def start_state(self) -> State:
        return self._start_state

    @property
    def accepting_states(self) -> frozenset[State]:
        return self._accepting_states

    def _validate(self) -> None:
        if self._start_state not in self._states:
            raise InvalidAutomaton(
                f"start state {self._start_state} is not in the state set {sorted(self._states)}"
            )
        if missing := self._accepting_states - self._states:
            raise InvalidAutomaton(
                f"accepting states {sorted(missing)} are not in the state set {sorted(self._states)}"
            )
        if foreign := self._transition.sources() - self._states:
            raise InvalidState(
                f"transitions leave from states {sorted(foreign)} outside the state set"
            )
        if unclosed := set(self._transition.targets()) - self._states:
            raise InvalidAutomaton(
                f"transition targets {sorted(unclosed)} are not in the state set"
            )

    def _check_state(self, state: State) -> None:
        if state not in self._states:
            raise InvalidState(f"{state} is not a state of {self!r}")

    @abstractmethod
    def accepts(self, string: str) -> bool:
        pass

    @abstractmethod
    def edges(self) -> Iterator[tuple[State, str, State]]:
        pass

    def graph(self, render: bool = False, directory: str = "graphs") -> graphviz.Digraph:
        dot = graphviz.Digraph(
            self.__class__.__name__ + ", ".join(map(str, sorted(self.states))),
            format="pdf",
            engine="dot",
        )
        dot.attr("graph", rankdir="LR")
        dot.attr("node", fontname="verdana")
        dot.attr("edge", fontname="verdana")

        for state in sorted(self.states):
            dot.node(
                str(state),
                color="green" if state == self.start_state else "",
                shape="doublecircle" if state in self.accepting_states else "circle",
                style="filled",
            )

        labels: defaultdict[tuple[State, State], list[str]] = defaultdict(list)
        for state, symbol, end in self.edges():
            labels[(state, end)].append(symbol)
        for (state, end), symbols in sorted(labels.items()):
            if symbols == [EPSILON]:
                dot.edge(str(state), str(end), label=EPSILON, color="blue", style="dotted")
            else:
                dot.edge(str(state), str(end), label=", ".join(sorted(symbols)), color="black")

        dot.node("start", shape="none")
        dot.edge("start", f"{self.start_state}", arrowhead="vee")
        if render:
            dot.render(view=False, directory=directory, filename=str(id(self)))
        return dot

    def to_json(self) -> dict:
        return {
            "states": [state.name for state in sorted(self.states)],
            "alphabet": sorted(self.alphabet),
            "transitions": [
                [state.name, symbol, end.name] for state, symbol, end in sorted(self.edges())
            ],
            "start_state": self.start_state.name,
            "accepting_states": [state.name for state in sorted(self.accepting_states)],
        }

    def describe(self) -> str:
        """The formal 5-tuple (Q, Σ, δ, q0, F)"""
        lines = [
            f"Q = {{{', '.join(map(str, sorted(self.states)))}}}",
            f"Σ = {self.alphabet}",
            "δ =",
        ]
        for state, symbol, end in sorted(self.edges()):
            lines.append(f"    δ({state}, {symbol}) -> {end}")
        lines.append(f"q0 = {self.start_state}")
        lines.append(f"F = {{{', '.join(map(str, sorted(self.accepting_states)))}}}")
        return "\n".join(lines)

    def __repr__(self):
        return (
            f"{self.__class__.__name__}(states={len(self.states)}, alphabet={self.alphabet}, "
            f"start={self.start_state}, accepting={sorted(self.accepting_states)})"
        )


class NFA(FiniteStateAutomaton):
    """
    A nondeterministic finite automaton with ε-moves

    Transitions may be partial, an undefined (state, symbol) pair leads nowhere

    Examples
    --------
    >>> q0, q1 = State("q0"), State("q1")
    >>> nfa = NFA({q0, q1}, "ab", NondeterministicTransition.from_edges([(q0, "a", q1), (q1, "b", q1)]), q0, {q1})
    >>> nfa.accepts("abb"), nfa.accepts("ba")
    (True, False)
    >>> nfa.acceptable_substrings("abba")
    [1, 2, 3]
    """

    __slots__ = ()

    _transition: NondeterministicTransition

    def _validate(self) -> None:
        super()._validate()
        if foreign := self._transition.symbols() - self._alphabet - {EPSILON}:
            raise AlphabetError(
                f"transitions use symbols {sorted(foreign)} not in alphabet {self._alphabet}"
            )

    def edges(self) -> Iterator[tuple[State, str, State]]:
        return self._transition.edges()

    def move(self, states: Iterable[State], symbol: str) -> frozenset[State]:
        return reduce(
            frozenset.union,
            (self._transition(state, symbol) for state in states),
            EMPTY,
        )

    def epsilon_closure(self, states: Iterable[State]) -> frozenset[State]:
        closure = set(states)
        queue = deque(closure)
        while queue:
            state = queue.popleft()
            for end in self._transition(state, EPSILON):
                if end not in closure:
                    closure.add(end)
                    queue.append(end)
        return frozenset(closure)

    def accepts(self, string: str) -> bool:
        self.alphabet.check(string)
        active = self.epsilon_closure((self.start_state,))
        for symbol in string:
            active = self.epsilon_closure(self.move(active, symbol))
            if not active:
                return False
        return not active.isdisjoint(self.accepting_states)

    def acceptable_substrings(self, string: str, start: int = 0) -> list[int]:
        """
        Every offset `end` such that this automaton accepts string[start:end], scanning
        from `start`, in ascending order

        The offsets are the candidate match ends for a longest match scanner
        """
        self.alphabet.check(string[start:])
        active = self.epsilon_closure((self.start_state,))
        ends = []
        for pos in range(start, len(string)):
            active = self.epsilon_closure(self.move(active, string[pos]))
            if not active:
                break
            if not active.isdisjoint(self.accepting_states):
                ends.append(pos + 1)
        return ends

    def clone_replace_states(self, allocator: StateAllocator) -> "NFA":
        """A structurally identical NFA in which every state is a fresh state"""
        mapping = {state: allocator() for state in sorted(self.states)}
        return NFA(
            mapping.values(),
            self.alphabet,
            self._transition.relabel(mapping),
            mapping[self.start_state],
            {mapping[state] for state in self.accepting_states},
        )

    def simplify_epsilon(self) -> "NFA":
        """
        Removes every state that is neither start nor accepting and whose only
        way out is by ε-moves

        References to a removed state are replaced by the states of its ε-closure that survive,
        so a chain A -ε-> B -ε-> C -a-> D collapses into A -ε-> C -a-> D
        """
        redundant = {
            state
            for state in self.states
            if state != self.start_state
            and state not in self.accepting_states
            and set(self._transition.outgoing(state)) <= {EPSILON}
        }
        if not redundant:
            return self

        replacement = {
            state: self.epsilon_closure((state,)) - redundant for state in redundant
        }

        def rewritten() -> Iterator[tuple[State, str, State]]:
            for state, symbol, end in self.edges():
                if state in redundant:
                    continue
                for target in replacement.get(end, (end,)):
                    if symbol != EPSILON or target != state:
                        yield state, symbol, target

        logger.debug(
            "simplify removed %d of %d states", len(redundant), len(self.states)
        )
        return NFA(
            self.states - redundant,
            self.alphabet,
            NondeterministicTransition.from_edges(rewritten()),
            self.start_state,
            self.accepting_states,
        )

    def with_single_accept(self, allocator: StateAllocator) -> "NFA":
        """
        Adds a fresh start state with no incoming edges and a fresh accepting state
        with no outgoing edges, joined to the old start and accepting states by ε-moves
        """
        start, accept = allocator.fragment()
        if {start, accept} & self.states:
            raise InvalidState(
                f"allocator produced states {start} and {accept} already in {self!r}"
            )
        edges = list(self.edges())
        edges.append((start, EPSILON, self.start_state))
        edges.extend((state, EPSILON, accept) for state in self.accepting_states)
        return NFA(
            self.states | {start, accept},
            self.alphabet,
            NondeterministicTransition.from_edges(edges),
            start,
            {accept},
        )

    def subset_construction(self, flags: AutomatonFlag = AutomatonFlag.NOFLAG) -> "DFA":
        start = self.epsilon_closure((self.start_state,))
        seen = {start}
        queue = deque([start])
        table: dict[tuple[State, str], State] = {}
        accepting = set()
        symbols = sorted(self.alphabet)

        progress = tqdm(desc="subset construction", unit="subset", disable=not flags.debug())
        while queue:
            subset = queue.popleft()
            name = subset_state(subset)
            if not subset.isdisjoint(self.accepting_states):
                accepting.add(name)
            for symbol in symbols:
                image = self.epsilon_closure(self.move(subset, symbol))
                table[(name, symbol)] = subset_state(image)
                if image not in seen:
                    seen.add(image)
                    queue.append(image)
            progress.update()
        progress.close()

        logger.debug(
            "subset construction: %d NFA states -> %d DFA states",
            len(self.states),
            len(seen),
        )
        return DFA(
            {subset_state(subset) for subset in seen},
            self.alphabet,
            DeterministicTransition(table),
            subset_state(start),
            accepting,
        )

    to_dfa = subset_construction

    def to_gnfa(self, allocator: Optional[StateAllocator] = None) -> "GNFA":
        from formlang.gnfa import GNFA

        if allocator is None:
            allocator = StateAllocator("g", reserved=self.states)
        return GNFA.from_nfa(self, allocator)

    def to_regex(
        self,
        allocator: Optional[StateAllocator] = None,
        flags: AutomatonFlag = AutomatonFlag.NOFLAG,
    ) -> str:
        return self.to_gnfa(allocator).to_regex(flags)


class DFA(FiniteStateAutomaton):
    """
    A deterministic finite automaton whose transition function is total

    Examples
    --------
    >>> even, odd = State("even"), State("odd")
    >>> delta = DeterministicTransition({(even, "a"): odd, (odd, "a"): even})
    >>> dfa = DFA({even, odd}, "a", delta, even, {even})
    >>> dfa.accepts("aa"), dfa.accepts("aaa")
    (True, False)
    >>> DFA({even, odd}, "a", DeterministicTransition({(even, "a"): odd}), even, {even})
    Traceback (most recent call last):
        ...
    formlang.core.InvalidAutomaton: transition δ(odd, 'a') is undefined
    """

    __slots__ = ()

    _transition: DeterministicTransition

    def _validate(self) -> None:
        super()._validate()
        if foreign := {symbol for _, symbol in self._transition} - self._alphabet:
            raise AlphabetError(
                f"transitions use symbols {sorted(foreign)} not in alphabet {self._alphabet}"
            )
        for state in sorted(self._states):
            for symbol in sorted(self._alphabet):
                if self._transition(state, symbol) is None:
                    raise InvalidAutomaton(
                        f"transition δ({state}, {symbol!r}) is undefined"
                    )

    def edges(self) -> Iterator[tuple[State, str, State]]:
        return self._transition.edges()

    def accepts(self, string: str) -> bool:
        self.alphabet.check(string)
        state = self.start_state
        for symbol in string:
            state = self._transition(state, symbol)
        return state in self.accepting_states

    def reachable(self) -> frozenset[State]:
        seen = {self.start_state}
        queue = deque(seen)
        while queue:
            state = queue.popleft()
            for symbol in self.alphabet:
                end = self._transition(state, symbol)
                if end not in seen:
                    seen.add(end)
                    queue.append(end)
        return frozenset(seen)

    def are_distinguishable(self, p: State, q: State) -> bool:
        """True if some string takes exactly one of `p` and `q` into an accepting state"""
        self._check_state(p)
        self._check_state(q)
        seen = {(p, q)}
        queue = deque(seen)
        while queue:
            p, q = queue.popleft()
            if (p in self.accepting_states) != (q in self.accepting_states):
                return True
            for symbol in self.alphabet:
                pair = (self._transition(p, symbol), self._transition(q, symbol))
                if pair not in seen:
                    seen.add(pair)
                    queue.append(pair)
        return False

    def distinguishable_pairs(self, states: Iterable[State]) -> set[tuple[State, State]]:
        """
        Table filling over `states`, which must be closed under transitions

        The pairs are ordered (smaller, larger)
        """
        ordered = sorted(states)
        distinguishable = {
            (p, q)
            for p, q in combinations(ordered, 2)
            if (p in self.accepting_states) != (q in self.accepting_states)
        }
        changed = True
        while changed:
            changed = False
            for p, q in combinations(ordered, 2):
                if (p, q) in distinguishable:
                    continue
                for symbol in self.alphabet:
                    p_next, q_next = self._transition(p, symbol), self._transition(q, symbol)
                    if p_next != q_next and minmax(p_next, q_next) in distinguishable:
                        distinguishable.add((p, q))
                        changed = True
                        break
        return distinguishable

    def minimize(self) -> "DFA":
        """
        Myhill-Nerode minimization

        Drops unreachable states then merges every class of indistinguishable states
        into its member with the smallest name

        Examples
        --------
        >>> a, b, c = State("a"), State("b"), State("c")
        >>> delta = DeterministicTransition({(a, "x"): b, (b, "x"): c, (c, "x"): b})
        >>> minimal = DFA({a, b, c}, "x", delta, a, {b, c}).minimize()
        >>> sorted(minimal.states), minimal.accepts("xxx")
        ([a, b], True)
        """
        reached = self.reachable()
        distinguishable = self.distinguishable_pairs(reached)

        classes = UnionFind(reached)
        for p, q in combinations(sorted(reached), 2):
            if (p, q) not in distinguishable:
                classes.union(p, q)

        representative = {}
        for group in classes.to_sets():
            smallest = min(group)
            for state in group:
                representative[state] = smallest

        table = {
            (representative[state], symbol): representative[self._transition(state, symbol)]
            for state in reached
            for symbol in self.alphabet
        }
        minimal = DFA(
            set(representative.values()),
            self.alphabet,
            DeterministicTransition(table),
            representative[self.start_state],
            {representative[state] for state in reached & self.accepting_states},
        )
        logger.debug(
            "minimization: %d states -> %d states", len(self.states), len(minimal.states)
        )
        return minimal

    def clone_replace_states(self, allocator: StateAllocator) -> "DFA":
        mapping = {state: allocator() for state in sorted(self.states)}
        return DFA(
            mapping.values(),
            self.alphabet,
            self._transition.relabel(mapping),
            mapping[self.start_state],
            {mapping[state] for state in self.accepting_states},
        )

    def to_nfa(self) -> NFA:
        return NFA(
            self.states,
            self.alphabet,
            NondeterministicTransition.from_edges(self.edges()),
            self.start_state,
            self.accepting_states,
        )

    def to_gnfa(self, allocator: Optional[StateAllocator] = None) -> "GNFA":
        return self.to_nfa().to_gnfa(allocator)

    def to_regex(
        self,
        allocator: Optional[StateAllocator] = None,
        flags: AutomatonFlag = AutomatonFlag.NOFLAG,
    ) -> str:
        return self.to_nfa().to_regex(allocator, flags)


if __name__ == "__main__":
    import doctest

    doctest.testmod()
