import re
from itertools import product

import pytest

from formlang.compiler import compile_regex
from formlang.core import EPSILON, InvalidAutomaton, InvalidState, State, StateAllocator
from formlang.fsm import DFA
from formlang.gnfa import GNFA, label_for
from formlang.parser import (
    ChoiceToken,
    EmptyToken,
    LiteralToken,
    NullToken,
    UnionToken,
)
from formlang.transitions import DeterministicTransition, GeneralTransition


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


@pytest.mark.parametrize(
    "symbols, token",
    [
        ([], NullToken()),
        (["a"], LiteralToken("a")),
        (["a", "b"], ChoiceToken(frozenset("ab"))),
        ([EPSILON], EmptyToken()),
        ([EPSILON, "a"], UnionToken((EmptyToken(), LiteralToken("a")))),
    ],
)
def test_label_for(symbols, token):
    assert label_for(symbols) == token


@pytest.mark.parametrize(
    "pattern",
    ["ab*a", "(a|b)*abb", "a+b?", "(ab|ba)+", "a*|b*", "a(|b)b", "((a|b)(a|b))*", "", "[]"],
)
def test_round_trip(pattern):
    nfa = compile_regex(pattern, "ab")
    extracted = nfa.to_regex()
    recompiled = compile_regex(extracted, "ab")
    for text in strings("ab", 6):
        assert recompiled.accepts(text) == nfa.accepts(text), (pattern, extracted, text)


def test_round_trip_from_dfa():
    dfa = divisible_by_three()
    extracted = dfa.to_regex()
    recompiled = compile_regex(extracted, "01")
    for text in strings("01", 7):
        assert recompiled.accepts(text) == dfa.accepts(text), (extracted, text)


def test_round_trip_from_minimal_dfa():
    dfa = compile_regex("(a|b)*abb", "ab").subset_construction().minimize()
    recompiled = compile_regex(dfa.to_regex(), "ab")
    for text in strings("ab", 6):
        assert recompiled.accepts(text) == dfa.accepts(text)
        assert dfa.accepts(text) == (re.fullmatch("(a|b)*abb", text) is not None)


def test_gnfa_from_nfa_has_bridge_states():
    nfa = compile_regex("ab", "ab")
    gnfa = nfa.to_gnfa(StateAllocator("g"))
    assert gnfa.start_state == State("g0")
    assert gnfa.accepting_state == State("g1")
    assert gnfa.states == nfa.states | {State("g0"), State("g1")}
    assert gnfa.transition(gnfa.start_state, nfa.start_state) == EmptyToken()


def line() -> GNFA:
    s, x, y, f = State("s"), State("x"), State("y"), State("f")
    delta = GeneralTransition(
        {s, x, y, f},
        {
            (s, x): EmptyToken(),
            (x, x): LiteralToken("a"),
            (x, y): LiteralToken("b"),
            (y, f): EmptyToken(),
        },
    )
    return GNFA({s, x, y, f}, "ab", delta, s, f)


def test_rip_returns_a_new_gnfa():
    gnfa = line()
    ripped = gnfa.rip(State("x"))
    assert State("x") not in ripped.states
    assert State("x") in gnfa.states
    assert str(ripped.transition(State("s"), State("y"))) == "a*b"


def test_rip_unions_with_the_direct_edge():
    s, x, f = State("s"), State("x"), State("f")
    delta = GeneralTransition(
        {s, x, f},
        {(s, x): LiteralToken("a"), (x, f): LiteralToken("b"), (s, f): LiteralToken("c")},
    )
    ripped = GNFA({s, x, f}, "abc", delta, s, f).rip(x)
    assert str(ripped.transition(s, f)) == "c|ab"
    assert str(ripped.to_regex()) == "c|ab"


def test_repair_cost_and_order():
    gnfa = line()
    assert gnfa.repair_cost(State("x")) == 1
    assert gnfa.repair_cost(State("y")) == 1
    # ties go to the smallest name
    assert gnfa.lowest_cost_state() == State("x")
    assert str(gnfa.to_token()) == "a*b"


@pytest.mark.parametrize("state", ["s", "f", "z"])
def test_cannot_rip(state):
    with pytest.raises(InvalidState):
        line().rip(State(state))
    with pytest.raises(InvalidState):
        line().repair_cost(State(state))


def test_invalid_gnfa():
    s, f = State("s"), State("f")
    with pytest.raises(InvalidAutomaton):
        GNFA({s, f}, "a", GeneralTransition({s, f}, {(f, s): LiteralToken("a")}), s, f)
    with pytest.raises(InvalidAutomaton):
        GNFA({s}, "a", GeneralTransition({s}), s, s)
    with pytest.raises(InvalidState):
        GNFA({s, f}, "a", GeneralTransition({s}), s, f)


def test_two_state_gnfa_needs_no_elimination():
    s, f = State("s"), State("f")
    gnfa = GNFA({s, f}, "a", GeneralTransition({s, f}), s, f)
    assert gnfa.lowest_cost_state() is None
    assert gnfa.to_regex() == "[]"


def test_default_bridge_states_avoid_existing_names():
    g0, g1 = State("g0"), State("g1")
    dfa = DFA({g0, g1}, "a", DeterministicTransition({(g0, "a"): g1, (g1, "a"): g0}), g0, {g0})
    gnfa = dfa.to_gnfa()
    assert {gnfa.start_state, gnfa.accepting_state} == {State("g2"), State("g3")}
    recompiled = compile_regex(dfa.to_regex(), "a")
    for n in range(8):
        assert recompiled.accepts("a" * n) == (n % 2 == 0)


def test_explicit_bridge_allocator_stays_strict():
    g0, g1 = State("g0"), State("g1")
    dfa = DFA({g0, g1}, "a", DeterministicTransition({(g0, "a"): g1, (g1, "a"): g0}), g0, {g0})
    with pytest.raises(InvalidState):
        dfa.to_gnfa(StateAllocator("g"))
