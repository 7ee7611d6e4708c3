from dataclasses import dataclass
from typing import Final

from formlang.core import AutomatonError

QUANTIFIER_OPTIONS: Final[tuple[str, ...]] = ("*", "+", "?")


class RegexpParsingError(AutomatonError):
    ...


class RegexToken:
    """
    Base class of the regex tokens

    Tokens form a closed family, code that consumes them dispatches with a `match` statement
    over the concrete classes below rather than through methods on the tokens
    """

    __slots__ = ()

    def __str__(self):
        return to_string(self)  # type: ignore


@dataclass(frozen=True, slots=True)
class EmptyToken(RegexToken):
    """Matches only the empty string"""


@dataclass(frozen=True, slots=True)
class NullToken(RegexToken):
    """Matches nothing at all"""


@dataclass(frozen=True, slots=True)
class LiteralToken(RegexToken):
    symbol: str


@dataclass(frozen=True, slots=True)
class AnySymbolToken(RegexToken):
    """Matches any single symbol of the alphabet"""


@dataclass(frozen=True, slots=True)
class ChoiceToken(RegexToken):
    symbols: frozenset[str]


@dataclass(frozen=True, slots=True)
class ConcatToken(RegexToken):
    tokens: tuple["Token", ...]


@dataclass(frozen=True, slots=True)
class UnionToken(RegexToken):
    tokens: tuple["Token", ...]


@dataclass(frozen=True, slots=True)
class KleeneToken(RegexToken):
    token: "Token"


@dataclass(frozen=True, slots=True)
class PlusToken(RegexToken):
    token: "Token"


@dataclass(frozen=True, slots=True)
class OptionalToken(RegexToken):
    token: "Token"


Token = (
    EmptyToken
    | NullToken
    | LiteralToken
    | AnySymbolToken
    | ChoiceToken
    | ConcatToken
    | UnionToken
    | KleeneToken
    | PlusToken
    | OptionalToken
)

QUANTIFIERS: Final = {"*": KleeneToken, "+": PlusToken, "?": OptionalToken}


def _unwrap(token: Token) -> Token:
    while isinstance(token, ConcatToken) and len(token.tokens) == 1:
        token = token.tokens[0]
    return token


def _atom(token: Token) -> str:
    """Render `token` so that a postfix operator applies to all of it"""
    token = _unwrap(token)
    match token:
        case ConcatToken() | UnionToken():
            return f"({to_string(token)})"
    return to_string(token)


def to_string(token: Token) -> str:
    """
    Converts a token back to a pattern that the parser reads as an equivalent token

    Examples
    --------
    >>> to_string(RegexParser("a(b|c)*d?").root)
    'a(b|c)*d?'
    >>> to_string(UnionToken((ConcatToken((LiteralToken("a"), LiteralToken("b"))), EmptyToken())))
    'ab|()'
    >>> to_string(NullToken()), to_string(ChoiceToken(frozenset("ba")))
    ('[]', '[ab]')
    """
    match token:
        case EmptyToken():
            return "()"
        case NullToken():
            return "[]"
        case LiteralToken(symbol):
            return symbol
        case AnySymbolToken():
            return "."
        case ChoiceToken(symbols):
            return f"[{''.join(sorted(symbols))}]"
        case ConcatToken(tokens):
            if not tokens:
                return "()"
            if len(tokens) == 1:
                return to_string(tokens[0])
            return "".join(
                f"({to_string(sub)})" if isinstance(_unwrap(sub), UnionToken) else to_string(sub)
                for sub in tokens
            )
        case UnionToken(tokens):
            if not tokens:
                return "[]"
            return "|".join(to_string(sub) for sub in tokens)
        case KleeneToken(sub):
            return f"{_atom(sub)}*"
        case PlusToken(sub):
            return f"{_atom(sub)}+"
        case OptionalToken(sub):
            return f"{_atom(sub)}?"
    raise TypeError(f"not a regex token: {token!r}")


def concat(*tokens: Token) -> Token:
    """
    Concatenation that drops empty tokens, flattens nested concatenations and
    absorbs into null

    >>> concat(LiteralToken("a"), EmptyToken(), LiteralToken("b"))
    ConcatToken(tokens=(LiteralToken(symbol='a'), LiteralToken(symbol='b')))
    >>> concat(LiteralToken("a"), NullToken())
    NullToken()
    """
    flattened: list[Token] = []
    for token in tokens:
        match token:
            case NullToken():
                return NullToken()
            case EmptyToken():
                continue
            case ConcatToken(inner):
                flattened.extend(inner)
            case _:
                flattened.append(token)
    if not flattened:
        return EmptyToken()
    if len(flattened) == 1:
        return flattened[0]
    return ConcatToken(tuple(flattened))


def union(*tokens: Token) -> Token:
    """
    Alternation that drops null tokens, flattens nested alternations and duplicates

    >>> union(NullToken(), LiteralToken("a"), LiteralToken("a"))
    LiteralToken(symbol='a')
    >>> union()
    NullToken()
    """
    flattened: list[Token] = []
    for token in tokens:
        match token:
            case NullToken():
                continue
            case UnionToken(inner):
                candidates = inner
            case _:
                candidates = (token,)
        for candidate in candidates:
            if candidate not in flattened:
                flattened.append(candidate)
    if not flattened:
        return NullToken()
    if len(flattened) == 1:
        return flattened[0]
    return UnionToken(tuple(flattened))


def star(token: Token) -> Token:
    """
    >>> star(NullToken())
    EmptyToken()
    >>> star(star(LiteralToken("a")))
    KleeneToken(token=LiteralToken(symbol='a'))
    """
    match token:
        case EmptyToken() | NullToken():
            return EmptyToken()
        case KleeneToken():
            return token
    return KleeneToken(token)


class RegexParser:
    """
    Single left to right scan of the pattern language

        literal characters, `.` for any symbol, postfix `*`, `+` and `?`,
        `[...]` choices, `(...)` groups and `|` alternation

    There are no escapes, every character other than the operators is a literal

    Examples
    --------
    >>> RegexParser("ab*").tokens
    [LiteralToken(symbol='a'), KleeneToken(token=LiteralToken(symbol='b'))]
    >>> RegexParser("a|b").root
    UnionToken(tokens=(ConcatToken(tokens=(LiteralToken(symbol='a'),)), ConcatToken(tokens=(LiteralToken(symbol='b'),))))
    >>> RegexParser("(ab")
    Traceback (most recent call last):
        ...
    formlang.parser.RegexpParsingError: expected ')' at position 3 of '(ab': found EOF
    """

    def __init__(self, regex: str):
        self._regex = regex
        self._pos = 0
        self._depth = 0
        self._tokens = self.parse_sequence()
        if self._pos < len(self._regex):
            raise RegexpParsingError(
                f"could not finish parsing regex, left = {self._regex[self._pos:]!r}"
            )

    @property
    def tokens(self) -> list[Token]:
        return list(self._tokens)

    @property
    def root(self) -> Token:
        if not self._tokens:
            return EmptyToken()
        if len(self._tokens) == 1:
            return self._tokens[0]
        return ConcatToken(tuple(self._tokens))

    def within_bounds(self) -> bool:
        return self._pos < len(self._regex)

    def current(self) -> str:
        return self._regex[self._pos]

    def consume(self, char: str) -> None:
        if not self.within_bounds() or self.current() != char:
            found = self.current() if self.within_bounds() else "EOF"
            raise RegexpParsingError(
                f"expected {char!r} at position {self._pos} of {self._regex!r}: found {found}"
            )
        self._pos += 1

    def consume_and_return(self) -> str:
        char = self.current()
        self.consume(char)
        return char

    def parse_sequence(self) -> list[Token]:
        tokens: list[Token] = []
        alternatives: list[Token] = []

        while self.within_bounds():
            if self.current() == ")":
                if self._depth == 0:
                    raise RegexpParsingError(
                        f"unbalanced ')' at position {self._pos} of {self._regex!r}"
                    )
                break

            char = self.consume_and_return()
            match char:
                case ".":
                    tokens.append(AnySymbolToken())
                case "*" | "+" | "?":
                    if not tokens:
                        raise RegexpParsingError(
                            f"nothing to repeat at position {self._pos - 1} of {self._regex!r}"
                        )
                    tokens.append(QUANTIFIERS[char](tokens.pop()))
                case "[":
                    tokens.append(self.parse_choice())
                case "]":
                    raise RegexpParsingError(
                        f"unbalanced ']' at position {self._pos - 1} of {self._regex!r}"
                    )
                case "(":
                    tokens.append(self.parse_group())
                case "|":
                    # everything so far becomes one alternative
                    alternatives.append(ConcatToken(tuple(tokens)))
                    tokens = []
                case _:
                    tokens.append(LiteralToken(char))

        if not alternatives:
            return tokens
        alternatives.append(ConcatToken(tuple(tokens)))
        return [UnionToken(tuple(alternatives))]

    def parse_group(self) -> Token:
        self._depth += 1
        tokens = self.parse_sequence()
        self.consume(")")
        self._depth -= 1
        return ConcatToken(tuple(tokens))

    def parse_choice(self) -> ChoiceToken:
        start = self._pos
        while self.within_bounds() and self.current() != "]":
            self._pos += 1
        symbols = frozenset(self._regex[start : self._pos])
        self.consume("]")
        return ChoiceToken(symbols)

    def __repr__(self):
        return f"Parser({self._regex})"


if __name__ == "__main__":
    import doctest

    doctest.testmod()
