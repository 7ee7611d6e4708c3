import doctest
import importlib

import pytest


@pytest.mark.parametrize(
    "module",
    [
        "formlang.core",
        "formlang.utils",
        "formlang.transitions",
        "formlang.parser",
        "formlang.fsm",
        "formlang.combinators",
        "formlang.compiler",
        "formlang.gnfa",
        "formlang.pda",
        "formlang.grammar",
    ],
)
def test_docstring_examples(module):
    results = doctest.testmod(importlib.import_module(module))
    assert results.failed == 0
