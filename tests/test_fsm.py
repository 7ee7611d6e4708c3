from itertools import product

import graphviz
import pytest

from formlang.combinators import (
    concatenate,
    dfa_intersection,
    dfa_union,
    for_any_symbol,
    for_empty,
    for_literal,
    for_null,
    kleene_star,
    power,
    union,
)
from formlang.core import (
    EPSILON,
    AlphabetError,
    AlphabetMismatch,
    InvalidAutomaton,
    InvalidState,
    State,
    StateAllocator,
)
from formlang.fsm import DFA, NFA, subset_state
from formlang.transitions import DeterministicTransition, NondeterministicTransition


def strings(alphabet: str, max_length: int):
    for length in range(max_length + 1):
        for symbols in product(sorted(alphabet), repeat=length):
            yield "".join(symbols)


def divisible_by_three() -> DFA:
    states = [State(f"r{remainder}") for remainder in range(3)]
    table = {
        (states[remainder], digit): states[(2 * remainder + int(digit)) % 3]
        for remainder in range(3)
        for digit in "01"
    }
    return DFA(states, "01", DeterministicTransition(table), states[0], {states[0]})


def even_length() -> DFA:
    even, odd = State("e0"), State("e1")
    table = {(even, d): odd for d in "01"} | {(odd, d): even for d in "01"}
    return DFA({even, odd}, "01", DeterministicTransition(table), even, {even})


def redundant_divisible_by_three(start: str = "r0") -> DFA:
    """Divisible by three with an unreachable copy of r2 and reachable copies of r0 and r2"""
    r0, r1, r2, s2, t0 = (State(name) for name in ("r0", "r1", "r2", "s2", "t0"))
    table = {
        (r0, "0"): t0, (r0, "1"): r1,
        (t0, "0"): r0, (t0, "1"): r1,
        (r1, "0"): s2, (r1, "1"): r0,
        (s2, "0"): r1, (s2, "1"): s2,
        (r2, "0"): r1, (r2, "1"): r2,
    }
    return DFA(
        {r0, r1, r2, s2, t0},
        "01",
        DeterministicTransition(table),
        State(start),
        {r0, t0},
    )


@pytest.mark.parametrize(
    "string, expected",
    [("110", True), ("1001", True), ("101", False), ("", True), ("0", True), ("11", True)],
)
def test_divisible_by_three(string, expected):
    assert divisible_by_three().accepts(string) is expected
    assert redundant_divisible_by_three().accepts(string) is expected


def test_dfa_rejects_foreign_symbols():
    with pytest.raises(AlphabetError):
        divisible_by_three().accepts("012")


@pytest.mark.parametrize(
    "build, error",
    [
        (lambda p, q: DFA({p}, "a", DeterministicTransition({(p, "a"): p}), q, set()), InvalidAutomaton),
        (lambda p, q: DFA({p}, "a", DeterministicTransition({(p, "a"): p}), p, {q}), InvalidAutomaton),
        (lambda p, q: DFA({p, q}, "a", DeterministicTransition({(p, "a"): q}), p, set()), InvalidAutomaton),
        (lambda p, q: DFA({p}, "a", DeterministicTransition({(p, "a"): q}), p, set()), InvalidAutomaton),
        (lambda p, q: DFA({p}, "a", DeterministicTransition({(p, "a"): p, (q, "a"): p}), p, set()), InvalidState),
        (lambda p, q: DFA({p}, "a", DeterministicTransition({(p, "a"): p, (p, "b"): p}), p, set()), AlphabetError),
        (lambda p, q: NFA({p}, "a", NondeterministicTransition.from_edges([(p, "b", p)]), p, set()), AlphabetError),
        (lambda p, q: NFA({p}, "a", NondeterministicTransition.from_edges([(p, "a", q)]), p, set()), InvalidAutomaton),
        (lambda p, q: NFA({p}, "a", NondeterministicTransition.from_edges([(q, "a", p)]), p, set()), InvalidState),
    ],
)
def test_invalid_automata(build, error):
    with pytest.raises(error):
        build(State("p"), State("q"))


def test_reachable():
    assert redundant_divisible_by_three().reachable() == {
        State("r0"), State("r1"), State("s2"), State("t0")
    }


def test_are_distinguishable():
    dfa = redundant_divisible_by_three()
    assert not dfa.are_distinguishable(State("r0"), State("t0"))
    assert not dfa.are_distinguishable(State("r2"), State("s2"))
    assert dfa.are_distinguishable(State("r0"), State("r1"))
    assert dfa.are_distinguishable(State("r1"), State("s2"))
    with pytest.raises(InvalidState):
        dfa.are_distinguishable(State("r0"), State("x"))


def test_minimize():
    dfa = redundant_divisible_by_three()
    minimal = dfa.minimize()
    assert sorted(state.name for state in minimal.states) == ["r0", "r1", "s2"]
    assert minimal.start_state == State("r0")
    assert minimal.accepting_states == {State("r0")}
    for string in strings("01", 7):
        assert minimal.accepts(string) == dfa.accepts(string), string


def test_minimize_redirects_start_to_its_representative():
    minimal = redundant_divisible_by_three(start="t0").minimize()
    assert minimal.start_state == State("r0")
    assert len(minimal.states) == 3


@pytest.mark.parametrize(
    "dfa",
    [divisible_by_three(), even_length(), redundant_divisible_by_three()],
)
def test_minimize_is_idempotent(dfa):
    once = dfa.minimize()
    twice = once.minimize()
    assert len(once.states) == len(twice.states)
    for string in strings("01", 6):
        assert twice.accepts(string) == dfa.accepts(string)


def test_cross_product():
    first, second = divisible_by_three(), even_length()
    both, either = dfa_intersection(first, second), dfa_union(first, second)
    assert len(both.states) == len(either.states) == 6
    assert both.start_state == State("(r0, e0)")
    for string in strings("01", 6):
        assert both.accepts(string) == (first.accepts(string) and second.accepts(string))
        assert either.accepts(string) == (first.accepts(string) or second.accepts(string))


def test_cross_product_requires_distinct_states():
    with pytest.raises(InvalidState):
        dfa_union(divisible_by_three(), divisible_by_three())
    relabeled = divisible_by_three().clone_replace_states(StateAllocator("d"))
    assert dfa_union(divisible_by_three(), relabeled).accepts("110")


def three_state_nfa() -> NFA:
    q0, q1, q2 = State("q0"), State("q1"), State("q2")
    delta = NondeterministicTransition.from_edges(
        [(q0, "a", q1), (q0, "a", q2), (q2, "b", q2)]
    )
    return NFA({q0, q1, q2}, "ab", delta, q0, {q2})


def test_subset_construction_names_subsets_canonically():
    dfa = three_state_nfa().subset_construction()
    assert sorted(state.name for state in dfa.states) == ["{q0}", "{q1, q2}", "{q2}", "{}"]
    assert dfa.start_state == State("{q0}")
    assert dfa.accepting_states == {State("{q1, q2}"), State("{q2}")}
    assert dfa.transition(State("{}"), "a") == State("{}")
    assert subset_state([State("q2"), State("q1")]) == State("{q1, q2}")


def test_subset_construction_follows_epsilon_moves():
    q0, q1, q2 = State("q0"), State("q1"), State("q2")
    delta = NondeterministicTransition.from_edges(
        [(q0, EPSILON, q1), (q1, "a", q2), (q2, EPSILON, q0)]
    )
    nfa = NFA({q0, q1, q2}, "a", delta, q0, {q2})
    dfa = nfa.to_dfa()
    assert dfa.start_state == State("{q0, q1}")
    assert dfa.transition(dfa.start_state, "a") == State("{q0, q1, q2}")
    for string in strings("a", 5):
        assert dfa.accepts(string) == nfa.accepts(string)


def test_epsilon_closure():
    a, b, c, d = (State(name) for name in "ABCD")
    delta = NondeterministicTransition.from_edges(
        [(a, EPSILON, b), (b, EPSILON, c), (c, EPSILON, a), (c, "x", d)]
    )
    nfa = NFA({a, b, c, d}, "x", delta, a, {d})
    assert nfa.epsilon_closure({a}) == {a, b, c}
    assert nfa.epsilon_closure({d}) == {d}
    assert nfa.epsilon_closure(set()) == set()


def test_simplify_epsilon_collapses_chains():
    a, b, c, d = (State(name) for name in "ABCD")
    delta = NondeterministicTransition.from_edges(
        [(a, "x", b), (b, EPSILON, c), (c, EPSILON, d), (d, "x", a)]
    )
    nfa = NFA({a, b, c, d}, "x", delta, a, {d})
    simplified = nfa.simplify_epsilon()
    assert simplified.states == {a, d}
    assert simplified.transition(a, "x") == {d}
    for string in strings("x", 6):
        assert simplified.accepts(string) == nfa.accepts(string)


def test_simplify_epsilon_drops_dead_states():
    nfa = three_state_nfa()
    simplified = nfa.simplify_epsilon()
    assert simplified.states == {State("q0"), State("q2")}
    for string in strings("ab", 5):
        assert simplified.accepts(string) == nfa.accepts(string)


def test_simplify_epsilon_without_redundant_states():
    nfa = for_literal("ab", "ab", StateAllocator())
    assert nfa.simplify_epsilon() is nfa


def test_acceptable_substrings():
    q0, q1 = State("q0"), State("q1")
    delta = NondeterministicTransition.from_edges([(q0, "a", q1), (q1, "a", q1)])
    nfa = NFA({q0, q1}, "ab", delta, q0, {q1})
    assert nfa.acceptable_substrings("aaba") == [1, 2]
    assert nfa.acceptable_substrings("aaba", start=1) == [2]
    assert nfa.acceptable_substrings("aaba", start=3) == [4]
    assert nfa.acceptable_substrings("baaa") == []


def test_clone_replace_states():
    nfa = three_state_nfa()
    clone = nfa.clone_replace_states(StateAllocator("c"))
    assert clone.states.isdisjoint(nfa.states)
    assert len(clone.states) == len(nfa.states)
    assert clone.start_state == State("c0")
    for string in strings("ab", 5):
        assert clone.accepts(string) == nfa.accepts(string)


def test_builders():
    allocator = StateAllocator()
    assert for_empty("ab", allocator).accepts("")
    assert not for_empty("ab", allocator).accepts("a")
    assert not any(for_null("ab", allocator).accepts(s) for s in strings("ab", 3))
    assert for_literal("aba", "ab", allocator).accepts("aba")
    assert not for_literal("aba", "ab", allocator).accepts("ab")
    choice = for_any_symbol("a", "abc", allocator)
    assert [choice.accepts(s) for s in "abc"] == [True, False, False]
    with pytest.raises(AlphabetError):
        for_literal("abc", "ab", allocator)


def test_combinators():
    allocator = StateAllocator()
    a, b = for_literal("a", "ab", allocator), for_literal("b", "ab", allocator)
    either = union(a, b, allocator=allocator)
    assert [either.accepts(s) for s in ("a", "b", "ab", "")] == [True, True, False, False]
    ab = concatenate(a, b)
    assert [ab.accepts(s) for s in ("ab", "a", "ba")] == [True, False, False]
    many = kleene_star(ab, allocator)
    assert [many.accepts(s) for s in ("", "ab", "abab", "aba")] == [True, True, True, False]
    # the operands are left untouched
    assert a.accepts("a") and not a.accepts("ab")


def test_combinators_reject_shared_states():
    allocator = StateAllocator()
    a = for_literal("a", "ab", allocator)
    with pytest.raises(InvalidState):
        concatenate(a, a)
    with pytest.raises(InvalidState):
        union(a, a, allocator=allocator)
    with pytest.raises(InvalidState):
        kleene_star(a, StateAllocator())


def test_combinators_reject_different_alphabets():
    allocator = StateAllocator()
    with pytest.raises(AlphabetMismatch):
        concatenate(for_literal("a", "ab", allocator), for_literal("a", "a", allocator))
    with pytest.raises(AlphabetMismatch):
        union(for_literal("a", "ab", allocator), for_literal("a", "ac", allocator), allocator=allocator)


@pytest.mark.parametrize("k", [1, 2, 4])
def test_power(k):
    ab = for_literal("ab", "ab", StateAllocator())
    powered = power(ab, k, StateAllocator("p"))
    for string in strings("ab", 8):
        assert powered.accepts(string) == (string == "ab" * k)


def test_invalid_power():
    with pytest.raises(InvalidAutomaton):
        power(for_literal("a", "a", StateAllocator()), 0, StateAllocator("p"))


def test_describe_and_graph():
    dfa = divisible_by_three()
    description = dfa.describe()
    assert "q0 = r0" in description
    assert "δ(r1, 0) -> r2" in description
    assert dfa.to_json()["accepting_states"] == ["r0"]
    dot = three_state_nfa().graph()
    assert isinstance(dot, graphviz.Digraph)
    assert "doublecircle" in dot.source
