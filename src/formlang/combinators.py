"""
Building blocks for automata

Every function here returns a new automaton and leaves its arguments untouched.
Functions that invent states take the StateAllocator to draw them from.
"""

from itertools import product
from typing import Callable, Iterable

from more_itertools import pairwise

from formlang.core import (
    EPSILON,
    Alphabet,
    AlphabetMismatch,
    InvalidAutomaton,
    InvalidState,
    State,
    StateAllocator,
)
from formlang.fsm import DFA, NFA, FiniteStateAutomaton
from formlang.transitions import DeterministicTransition, NondeterministicTransition


def check_compatible(*automata: FiniteStateAutomaton) -> None:
    """Raise if the automata do not share one alphabet or if any two share a state"""
    for first, second in pairwise(automata):
        if first.alphabet != second.alphabet:
            raise AlphabetMismatch(
                f"cannot combine automata over {first.alphabet} and {second.alphabet}"
            )
    seen: set[State] = set()
    for automaton in automata:
        if shared := seen & automaton.states:
            raise InvalidState(
                f"automata share states {sorted(shared)}, relabel one with clone_replace_states()"
            )
        seen |= automaton.states


def for_empty(alphabet: Iterable[str], allocator: StateAllocator) -> NFA:
    """Accepts only the empty string"""
    state = allocator()
    return NFA({state}, alphabet, NondeterministicTransition(), state, {state})


def for_null(alphabet: Iterable[str], allocator: StateAllocator) -> NFA:
    """Accepts nothing"""
    state = allocator()
    return NFA({state}, alphabet, NondeterministicTransition(), state, set())


def for_literal(string: str, alphabet: Iterable[str], allocator: StateAllocator) -> NFA:
    """
    Accepts exactly `string`

    >>> nfa = for_literal("ab", "abc", StateAllocator())
    >>> nfa.accepts("ab"), nfa.accepts("a"), len(nfa.states)
    (True, False, 3)
    """
    alphabet = Alphabet(alphabet)
    alphabet.check(string)
    states = [allocator() for _ in range(len(string) + 1)]
    return NFA(
        states,
        alphabet,
        NondeterministicTransition.from_edges(
            (state, symbol, end) for (state, end), symbol in zip(pairwise(states), string)
        ),
        states[0],
        {states[-1]},
    )


def for_any_symbol(
    symbols: Iterable[str], alphabet: Iterable[str], allocator: StateAllocator
) -> NFA:
    """Accepts any single symbol from `symbols`, a two state fragment"""
    alphabet = Alphabet(alphabet)
    symbols = sorted(symbols)
    alphabet.check("".join(symbols))
    start, accept = allocator.fragment()
    return NFA(
        {start, accept},
        alphabet,
        NondeterministicTransition.from_edges((start, symbol, accept) for symbol in symbols),
        start,
        {accept},
    )


def concatenate(*nfas: NFA) -> NFA:
    """
    Joins the accepting states of each automaton to the start of the next by ε-moves

    >>> allocator = StateAllocator()
    >>> ab = concatenate(for_literal("a", "ab", allocator), for_literal("b", "ab", allocator))
    >>> ab.accepts("ab"), ab.accepts("a")
    (True, False)
    """
    if not nfas:
        raise InvalidAutomaton("concatenate() needs at least one automaton")
    check_compatible(*nfas)
    edges = [edge for nfa in nfas for edge in nfa.edges()]
    for first, second in pairwise(nfas):
        edges.extend(
            (state, EPSILON, second.start_state) for state in first.accepting_states
        )
    return NFA(
        frozenset().union(*(nfa.states for nfa in nfas)),
        nfas[0].alphabet,
        NondeterministicTransition.from_edges(edges),
        nfas[0].start_state,
        nfas[-1].accepting_states,
    )


def union(*nfas: NFA, allocator: StateAllocator) -> NFA:
    """A fresh start state with an ε-move to the start of every alternative"""
    if not nfas:
        raise InvalidAutomaton("union() needs at least one automaton")
    check_compatible(*nfas)
    start = allocator()
    if any(start in nfa.states for nfa in nfas):
        raise InvalidState(f"allocator produced {start}, which is already in use")
    edges = [edge for nfa in nfas for edge in nfa.edges()]
    edges.extend((start, EPSILON, nfa.start_state) for nfa in nfas)
    return NFA(
        frozenset({start}).union(*(nfa.states for nfa in nfas)),
        nfas[0].alphabet,
        NondeterministicTransition.from_edges(edges),
        start,
        frozenset().union(*(nfa.accepting_states for nfa in nfas)),
    )


def kleene_star(nfa: NFA, allocator: StateAllocator) -> NFA:
    """
    A fresh accepting start state with an ε-move into the old start, and ε-moves
    from every old accepting state back to it

    >>> star = kleene_star(for_literal("ab", "ab", StateAllocator()), StateAllocator("s"))
    >>> [star.accepts(s) for s in ("", "ab", "abab", "aba")]
    [True, True, True, False]
    """
    start = allocator()
    if start in nfa.states:
        raise InvalidState(f"allocator produced {start}, which is already in {nfa!r}")
    edges = list(nfa.edges())
    edges.append((start, EPSILON, nfa.start_state))
    edges.extend((state, EPSILON, start) for state in nfa.accepting_states)
    return NFA(
        nfa.states | {start},
        nfa.alphabet,
        NondeterministicTransition.from_edges(edges),
        start,
        nfa.accepting_states | {start},
    )


def power(nfa: NFA, k: int, allocator: StateAllocator) -> NFA:
    """
    `nfa` concatenated with itself `k` times, every factor is a fresh copy

    >>> cubed = power(for_literal("a", "a", StateAllocator()), 3, StateAllocator("p"))
    >>> cubed.accepts("aaa"), cubed.accepts("aa")
    (True, False)
    """
    if k < 1:
        raise InvalidAutomaton(f"power must be at least 1, got {k}")
    return concatenate(*(nfa.clone_replace_states(allocator) for _ in range(k)))


def _cross_product(
    first: DFA, second: DFA, accept: Callable[[bool, bool], bool]
) -> DFA:
    check_compatible(first, second)

    def pair(p: State, q: State) -> State:
        return State(f"({p}, {q})")

    table = {}
    accepting = set()
    for p, q in product(sorted(first.states), sorted(second.states)):
        for symbol in first.alphabet:
            table[(pair(p, q), symbol)] = pair(
                first.transition(p, symbol), second.transition(q, symbol)
            )
        if accept(p in first.accepting_states, q in second.accepting_states):
            accepting.add(pair(p, q))

    return DFA(
        {pair(p, q) for p, q in product(first.states, second.states)},
        first.alphabet,
        DeterministicTransition(table),
        pair(first.start_state, second.start_state),
        accepting,
    )


def dfa_union(first: DFA, second: DFA) -> DFA:
    return _cross_product(first, second, lambda p, q: p or q)


def dfa_intersection(first: DFA, second: DFA) -> DFA:
    return _cross_product(first, second, lambda p, q: p and q)

