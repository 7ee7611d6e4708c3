import json
import logging
from typing import IO

import click

from formlang.compiler import compile_regex
from formlang.grammar import CFG
from formlang.utils import AutomatonFlag


@click.group(name="formlang", help="Finite and pushdown automata toolkit")
@click.option(
    "--debug",
    "-g",
    is_flag=True,
    show_default=True,
    default=False,
    help="Turn on debug mode",
)
@click.pass_context
def entry(ctx: click.Context, debug: bool):
    ctx.ensure_object(dict)
    ctx.obj["flags"] = AutomatonFlag.DEBUG if debug else AutomatonFlag.NOFLAG
    if debug:
        logging.basicConfig(level=logging.DEBUG)


@entry.command(name="regex", help="Compile a regex and test strings against it")
@click.argument("pattern", type=click.STRING)
@click.option("--alphabet", "-a", type=click.STRING, required=True, help="Symbols of the alphabet")
@click.option("--text", "-t", type=click.STRING, multiple=True, help="String to test")
@click.option(
    "--dfa", "-d", is_flag=True, default=False, help="Run the subset construction first"
)
@click.option(
    "--minimize", "-m", is_flag=True, default=False, help="Minimize the DFA, implies --dfa"
)
@click.option(
    "--describe", is_flag=True, default=False, help="Include the automaton in the output"
)
@click.option(
    "--graph", is_flag=True, default=False, help="Render the automaton with graphviz"
)
@click.option(
    "--out", "-o", type=click.File("w"), default="-", help="Output file"
)
@click.pass_context
def regex(
    ctx: click.Context,
    pattern: str,
    alphabet: str,
    text: tuple[str, ...],
    dfa: bool,
    minimize: bool,
    describe: bool,
    graph: bool,
    out: IO,
):
    flags = ctx.obj["flags"] | AutomatonFlag.SIMPLIFY
    if minimize:
        flags |= AutomatonFlag.MINIMIZE

    automaton = compile_regex(pattern, alphabet, flags=flags)
    if dfa or minimize:
        automaton = automaton.subset_construction(flags)
        if flags & AutomatonFlag.MINIMIZE:
            automaton = automaton.minimize()
    if graph:
        automaton.graph(render=True)

    results = {"pattern": pattern, "matches": {s: automaton.accepts(s) for s in text}}
    if describe:
        results["automaton"] = automaton.to_json()
    out.write(json.dumps(results, indent=4, ensure_ascii=False) + "\n")


@entry.command(name="extract", help="Compile a regex then extract an equivalent one")
@click.argument("pattern", type=click.STRING)
@click.option("--alphabet", "-a", type=click.STRING, required=True, help="Symbols of the alphabet")
@click.option(
    "--minimize", "-m", is_flag=True, default=False, help="Extract from the minimal DFA"
)
@click.pass_context
def extract(ctx: click.Context, pattern: str, alphabet: str, minimize: bool):
    flags = ctx.obj["flags"]
    nfa = compile_regex(pattern, alphabet, flags=flags | AutomatonFlag.SIMPLIFY)
    if minimize:
        click.echo(nfa.subset_construction(flags).minimize().to_regex(flags=flags))
    else:
        click.echo(nfa.to_regex(flags=flags))


@entry.command(name="grammar", help="Compile a context free grammar to a PDA")
@click.argument("rules", type=click.STRING, nargs=-1, required=True)
@click.option("--start", "-s", type=click.STRING, default="S", show_default=True)
@click.option("--text", "-t", type=click.STRING, multiple=True, help="String to test")
@click.option("--sample", "-n", type=click.INT, default=0, help="Number of strings to sample")
@click.option(
    "--max-epsilon-steps",
    type=click.INT,
    default=None,
    help="Bound on consecutive ε-moves, the number of PDA states by default",
)
def grammar(
    rules: tuple[str, ...],
    start: str,
    text: tuple[str, ...],
    sample: int,
    max_epsilon_steps: int,
):
    cfg = CFG.from_rules(rules, start)
    pda = cfg.to_pda(max_epsilon_steps=max_epsilon_steps)
    results = {
        "grammar": str(cfg).splitlines(),
        "matches": {s: pda.accepts(s) for s in text},
    }
    if sample:
        results["sample"] = list(cfg.sample_strings(sample))
    click.echo(json.dumps(results, indent=4, ensure_ascii=False))


if __name__ == "__main__":
    entry()
