from dataclasses import dataclass
from itertools import count
from typing import Final, Iterable

EPSILON: Final[str] = "ε"
BOTTOM: Final[str] = "$"


class AutomatonError(Exception):
    ...


class AlphabetError(AutomatonError):
    ...


class AlphabetMismatch(AlphabetError):
    ...


class InvalidState(AutomatonError):
    ...


class InvalidAutomaton(AutomatonError):
    ...


@dataclass(frozen=True, order=True, slots=True)
class State:
    """
    A state in an automaton

    States are compared, hashed and ordered by name only, so two states with the same
    name are the same state

    Examples
    --------
    >>> State("q0") == State("q0")
    True
    >>> sorted([State("q2"), State("q1")])
    [q1, q2]
    """

    name: str

    def __str__(self):
        return self.name

    def __repr__(self):
        return self.name


class StateAllocator:
    """
    Hands out fresh states named `prefix0`, `prefix1`, ...

    Every builder that needs new states receives an allocator explicitly.
    Automata that will later be combined must draw their states from the same allocator

    Examples
    --------
    >>> allocator = StateAllocator()
    >>> allocator(), allocator()
    (q0, q1)
    >>> StateAllocator("t")()
    t0
    >>> StateAllocator("g", reserved={State("g0")}).fragment()
    (g1, g2)
    """

    __slots__ = ("prefix", "_counter", "_reserved")

    def __init__(self, prefix: str = "q", start: int = 0, reserved: Iterable[State] = ()):
        self.prefix = prefix
        self._counter = count(start)
        # names that are already taken and must be skipped
        self._reserved = frozenset(reserved)

    def __call__(self) -> State:
        while (state := State(f"{self.prefix}{next(self._counter)}")) in self._reserved:
            continue
        return state

    def fragment(self) -> tuple[State, State]:
        return self(), self()

    def __repr__(self):
        return f"StateAllocator(prefix={self.prefix!r})"


class Alphabet(frozenset[str]):
    """
    A finite, non-empty set of single-character symbols

    Examples
    --------
    >>> sorted(Alphabet("abba"))
    ['a', 'b']
    >>> Alphabet("")
    Traceback (most recent call last):
        ...
    formlang.core.AlphabetError: alphabet must contain at least 1 symbol
    >>> Alphabet("aε")
    Traceback (most recent call last):
        ...
    formlang.core.AlphabetError: 'ε' is reserved and cannot be part of an alphabet
    """

    def __new__(cls, symbols: Iterable[str] = ()):
        alphabet = super().__new__(cls, symbols)
        alphabet._validate()
        return alphabet

    def _validate(self):
        if not self:
            raise AlphabetError("alphabet must contain at least 1 symbol")
        if EPSILON in self:
            raise AlphabetError(
                f"{EPSILON!r} is reserved and cannot be part of an alphabet"
            )
        for symbol in self:
            if not isinstance(symbol, str) or len(symbol) != 1:
                raise AlphabetError(
                    f"alphabet symbols must be single characters: got {symbol!r}"
                )

    def check(self, string: str) -> None:
        """Raise an AlphabetError for the first symbol of `string` outside this alphabet"""
        for symbol in string:
            if symbol not in self:
                raise AlphabetError(
                    f"string {string!r} contains symbol {symbol!r} not in alphabet {self}"
                )

    def __repr__(self):
        return "{" + ", ".join(sorted(self)) + "}"

    __str__ = __repr__


class StackAlphabet(Alphabet):
    """
    The symbols a PDA may push, symbols here can be longer than one character

    >>> sorted(StackAlphabet(["S", "$", "a"]))
    ['$', 'S', 'a']
    """

    def _validate(self):
        if not self:
            raise AlphabetError("stack alphabet must contain at least 1 symbol")
        if EPSILON in self:
            raise AlphabetError(
                f"{EPSILON!r} is reserved and cannot be part of a stack alphabet"
            )
