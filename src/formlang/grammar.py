"""
Context-free grammars

Rules are written `S -> aSb | ab | ε`: uppercase letters are variables,
every other character is a terminal, and `ε` or an empty alternative stands for
the empty string.
"""

import heapq
from collections import defaultdict
from dataclasses import dataclass
from itertools import islice
from typing import Iterable, Iterator, Optional

from more_itertools import first_true

from formlang.core import (
    BOTTOM,
    EPSILON,
    Alphabet,
    AlphabetError,
    AutomatonError,
    StackAlphabet,
    State,
    StateAllocator,
)
from formlang.pda import PDA
from formlang.transitions import StackTransition


class GrammarError(AutomatonError):
    ...


@dataclass(frozen=True, order=True, slots=True)
class Variable:
    name: str

    def __str__(self):
        return self.name


@dataclass(frozen=True, order=True, slots=True)
class Terminal:
    symbol: str

    def __str__(self):
        return self.symbol


Element = Variable | Terminal


class CFString(tuple[Element, ...]):
    """
    A sentential form, a string of variables and terminals

    >>> form = CFString.from_string("aSb")
    >>> form.first_variable(), form.is_complete()
    (1, False)
    >>> str(form.replace(1, CFString.from_string("ab")))
    'aabb'
    """

    @staticmethod
    def from_string(string: str) -> "CFString":
        return CFString(
            Variable(char) if "A" <= char <= "Z" else Terminal(char)
            for char in string
            if char != EPSILON
        )

    def first_variable(self) -> Optional[int]:
        return first_true(
            range(len(self)), default=None, pred=lambda i: isinstance(self[i], Variable)
        )

    def is_complete(self) -> bool:
        return all(isinstance(element, Terminal) for element in self)

    def replace(self, index: int, output: "CFString") -> "CFString":
        return CFString(self[:index] + output + self[index + 1 :])

    def sort_key(self) -> tuple:
        """Shorter forms first, then variables before terminals position by position"""
        return len(self), tuple(
            (isinstance(element, Terminal), str(element)) for element in self
        )

    def __str__(self):
        return "".join(map(str, self))

    def __repr__(self):
        return f"CFString({str(self)!r})"


class Grammar(defaultdict[Variable, set[CFString]]):
    """
    The production relation, a map from each variable to its right-hand sides

    Examples
    --------
    >>> grammar = Grammar()
    >>> grammar.add_rule("S -> aSb | ε")
    >>> sorted(map(str, grammar[Variable("S")]))
    ['', 'aSb']
    >>> sorted(map(str, grammar.apply_rule(CFString.from_string("aSb"))))
    ['aaSbb', 'ab']
    """

    def __init__(self, rules: Iterable[str] = ()):
        super().__init__(set)
        for rule in rules:
            self.add_rule(rule)

    def add_rule(self, rule: str) -> None:
        head, arrow, body = rule.partition("->")
        head = head.strip()
        if not arrow:
            raise GrammarError(f"rule {rule!r} has no '->'")
        if len(head) != 1 or not "A" <= head <= "Z":
            raise GrammarError(
                f"the left side of rule {rule!r} must be a single uppercase variable"
            )
        self[Variable(head)].update(
            CFString.from_string(alternative.strip()) for alternative in body.split("|")
        )

    def apply_rule(self, form: CFString, index: Optional[int] = None) -> set[CFString]:
        """
        Every form one rewrite away from `form`, rewriting the variable at `index`
        or, by default, any variable
        """
        if index is None:
            return {
                rewritten
                for position in range(len(form))
                for rewritten in self.apply_rule(form, position)
            }
        if not 0 <= index < len(form) or not isinstance(form[index], Variable):
            return set()
        return {form.replace(index, output) for output in self.get(form[index], ())}

    def variables(self) -> set[Variable]:
        found = set(self)
        for outputs in self.values():
            for output in outputs:
                found.update(e for e in output if isinstance(e, Variable))
        return found

    def terminals(self) -> set[str]:
        return {
            element.symbol
            for outputs in self.values()
            for output in outputs
            for element in output
            if isinstance(element, Terminal)
        }

    def __str__(self):
        return "\n".join(
            f"{variable} -> {' | '.join(sorted(str(o) or EPSILON for o in outputs))}"
            for variable, outputs in sorted(self.items())
        )


class CFG:
    """
    A context-free grammar (V, Σ, R, S)

    Examples
    --------
    >>> cfg = CFG.from_rules(["S -> aSb | ab"])
    >>> list(cfg.sample_strings(3))
    ['ab', 'aabb', 'aaabbb']
    >>> pda = cfg.to_pda()
    >>> pda.accepts("aabb"), pda.accepts("abab")
    (True, False)
    """

    __slots__ = ("_variables", "_alphabet", "_grammar", "_start")

    def __init__(
        self,
        variables: Iterable[Variable],
        alphabet: Iterable[str],
        grammar: Grammar,
        start: Variable,
    ):
        self._variables = frozenset(variables)
        self._alphabet = alphabet if isinstance(alphabet, Alphabet) else Alphabet(alphabet)
        self._grammar = grammar
        self._start = start
        self._validate()

    def _validate(self) -> None:
        if self._start not in self._variables:
            raise GrammarError(f"start variable {self._start} is not a variable of the grammar")
        if undeclared := self._grammar.variables() - self._variables:
            raise GrammarError(f"rules use undeclared variables {sorted(map(str, undeclared))}")
        if foreign := self._grammar.terminals() - self._alphabet:
            raise AlphabetError(f"rules use terminals {sorted(foreign)} not in {self._alphabet}")
        if BOTTOM in self._alphabet:
            raise AlphabetError(f"{BOTTOM!r} is reserved for the bottom of the stack")

    @staticmethod
    def from_rules(rules: Iterable[str], start: str = "S") -> "CFG":
        grammar = Grammar(rules)
        return CFG(grammar.variables(), grammar.terminals(), grammar, Variable(start))

    @property
    def variables(self) -> frozenset[Variable]:
        return self._variables

    @property
    def alphabet(self) -> Alphabet:
        return self._alphabet

    @property
    def grammar(self) -> Grammar:
        return self._grammar

    @property
    def start(self) -> Variable:
        return self._start

    def sample_strings(self, limit: Optional[int] = None) -> Iterator[str]:
        """
        Strings of the language, found by expanding the leftmost variable of the
        shortest pending sentential form first

        Yields forever for an infinite language unless `limit` is given
        """
        return islice(self._derive(), limit)

    def _derive(self) -> Iterator[str]:
        origin = CFString((self._start,))
        seen = {origin}
        pending = [(origin.sort_key(), origin)]
        while pending:
            _, form = heapq.heappop(pending)
            if (index := form.first_variable()) is None:
                yield str(form)
                continue
            for rewritten in self._grammar.apply_rule(form, index):
                if rewritten not in seen:
                    seen.add(rewritten)
                    heapq.heappush(pending, (rewritten.sort_key(), rewritten))

    def to_pda(
        self,
        allocator: Optional[StateAllocator] = None,
        max_epsilon_steps: Optional[int] = None,
    ) -> PDA:
        """
        The standard three phase PDA for this grammar

        START pushes the bottom marker then the start variable, LOOP expands the
        variable on top of the stack or matches the terminal on top against the
        input, and LOOP moves to FINAL once only the bottom marker is left.
        A production is pushed one symbol per state, rightmost symbol first.
        """
        allocator = allocator or StateAllocator()
        begin, loop, end = State("START"), State("LOOP"), State("FINAL")
        pushed_bottom = allocator()

        rules = [
            (begin, EPSILON, EPSILON, pushed_bottom, BOTTOM),
            (pushed_bottom, EPSILON, EPSILON, loop, str(self._start)),
        ]
        intermediate = [pushed_bottom]
        for variable, outputs in sorted(self._grammar.items()):
            for output in sorted(outputs, key=CFString.sort_key):
                if not output:
                    rules.append((loop, str(variable), EPSILON, loop, EPSILON))
                    continue
                state, popped = loop, str(variable)
                for position in reversed(range(len(output))):
                    following = loop if position == 0 else allocator()
                    if following != loop:
                        intermediate.append(following)
                    rules.append((state, popped, EPSILON, following, str(output[position])))
                    state, popped = following, EPSILON
        for symbol in sorted(self._alphabet):
            rules.append((loop, symbol, symbol, loop, EPSILON))
        rules.append((loop, BOTTOM, EPSILON, end, EPSILON))

        return PDA(
            {begin, loop, end, *intermediate},
            self._alphabet,
            StackAlphabet({BOTTOM, *map(str, self._variables), *self._alphabet}),
            StackTransition.from_rules(rules),
            begin,
            {end},
            max_epsilon_steps,
        )

    def __str__(self):
        return str(self._grammar)

    def __repr__(self):
        return (
            f"CFG(variables={sorted(map(str, self._variables))}, "
            f"alphabet={self._alphabet}, start={self._start})"
        )
