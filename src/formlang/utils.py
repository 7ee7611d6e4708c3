from collections import defaultdict
from enum import IntFlag, auto
from typing import Generic, Hashable, Iterable, Iterator, TypeVar

T = TypeVar("T", bound=Hashable)


class AutomatonFlag(IntFlag):
    NOFLAG = 0
    SIMPLIFY = auto()  # collapse epsilon-only states after translating a regex
    MINIMIZE = auto()
    DEBUG = auto()  # show progress bars for the slower conversions

    def should_simplify(self) -> bool:
        return bool(self & AutomatonFlag.SIMPLIFY)

    def debug(self) -> bool:
        return bool(self & AutomatonFlag.DEBUG)


class UnionFind(Generic[T]):
    """
    Disjoint sets with union by size, used to group the indistinguishable states of a DFA
    into equivalence classes during minimization

    Examples
    --------
    >>> uf = UnionFind("abcd")
    >>> uf.union("a", "c")
    >>> uf["a"] == uf["c"], uf["a"] == uf["b"]
    (True, False)
    >>> sorted(sorted(group) for group in uf.to_sets())
    [['a', 'c'], ['b'], ['d']]
    """

    def __init__(self, items: Iterable[T] = ()):
        # union by size, the weight of a root is the size of its set
        self.parents: dict[T, T] = {}
        self.weights: dict[T, int] = {}

        for item in items:
            self.parents[item] = item
            self.weights[item] = 1

    def __getitem__(self, item: T) -> T:
        # FIND-SET()
        if item not in self.parents:
            self.parents[item] = item  # MAKE-SET()
            self.weights[item] = 1
            return item
        # store nodes in the path leading to the root for later updating
        # this is the path-compression step
        path = [item]
        root = self.parents[item]
        while root != path[-1]:
            path.append(root)
            root = self.parents[root]
        for node in path:
            self.parents[node] = root
        return root

    def union(self, *objects: T) -> None:
        """Find the sets containing the objects and merge them all."""
        roots = iter(
            sorted(
                {self[x] for x in objects}, key=lambda r: self.weights[r], reverse=True
            )
        )
        try:
            heaviest = next(roots)
        except StopIteration:
            return

        for r in roots:
            self.weights[heaviest] += self.weights[r]
            self.parents[r] = heaviest

    def __iter__(self) -> Iterator[T]:
        return iter(self.parents)

    def to_sets(self) -> Iterator[set[T]]:
        groups: defaultdict[T, set[T]] = defaultdict(set)
        for item in self.parents:
            groups[self[item]].add(item)
        yield from groups.values()

    def __str__(self):
        return str(list(self.to_sets()))
