from functools import reduce
from typing import Iterable, Optional

from formlang.combinators import (
    concatenate,
    for_any_symbol,
    for_empty,
    for_null,
    kleene_star,
    union,
)
from formlang.core import Alphabet, StateAllocator
from formlang.fsm import NFA
from formlang.parser import (
    AnySymbolToken,
    ChoiceToken,
    ConcatToken,
    EmptyToken,
    KleeneToken,
    LiteralToken,
    NullToken,
    OptionalToken,
    PlusToken,
    RegexParser,
    Token,
    UnionToken,
)
from formlang.utils import AutomatonFlag


def token_to_nfa(token: Token, alphabet: Alphabet, allocator: StateAllocator) -> NFA:
    """Thompson translation of a single token"""
    match token:
        case EmptyToken():
            return for_empty(alphabet, allocator)
        case NullToken():
            return for_null(alphabet, allocator)
        case LiteralToken(symbol):
            return for_any_symbol(symbol, alphabet, allocator)
        case AnySymbolToken():
            return for_any_symbol(alphabet, alphabet, allocator)
        case ChoiceToken(symbols):
            return for_any_symbol(symbols, alphabet, allocator)
        case ConcatToken(tokens):
            if not tokens:
                return for_empty(alphabet, allocator)
            return reduce(
                concatenate,
                (token_to_nfa(sub, alphabet, allocator) for sub in tokens),
            )
        case UnionToken(tokens):
            if not tokens:
                return for_null(alphabet, allocator)
            return union(
                *(token_to_nfa(sub, alphabet, allocator) for sub in tokens),
                allocator=allocator,
            )
        case KleeneToken(sub):
            return kleene_star(token_to_nfa(sub, alphabet, allocator), allocator)
        case PlusToken(sub):
            once = token_to_nfa(sub, alphabet, allocator)
            return concatenate(
                once.clone_replace_states(allocator), kleene_star(once, allocator)
            )
        case OptionalToken(sub):
            return union(
                for_empty(alphabet, allocator),
                token_to_nfa(sub, alphabet, allocator),
                allocator=allocator,
            )
    raise TypeError(f"not a regex token: {token!r}")


def compile_regex(
    pattern: str,
    alphabet: Iterable[str],
    allocator: Optional[StateAllocator] = None,
    flags: AutomatonFlag = AutomatonFlag.SIMPLIFY,
) -> NFA:
    """
    Compiles `pattern` to an NFA over `alphabet`

    Examples
    --------
    >>> nfa = compile_regex("ab*a", "ab")
    >>> nfa.accepts("aa"), nfa.accepts("abbba"), nfa.accepts("ab")
    (True, True, False)
    >>> compile_regex("a(b", "ab")
    Traceback (most recent call last):
        ...
    formlang.parser.RegexpParsingError: expected ')' at position 3 of 'a(b': found EOF
    >>> compile_regex("abc", "ab")
    Traceback (most recent call last):
        ...
    formlang.core.AlphabetError: string 'c' contains symbol 'c' not in alphabet {a, b}
    """
    alphabet = alphabet if isinstance(alphabet, Alphabet) else Alphabet(alphabet)
    allocator = allocator or StateAllocator()
    nfa = token_to_nfa(RegexParser(pattern).root, alphabet, allocator)
    if flags.should_simplify():
        return nfa.simplify_epsilon()
    return nfa
