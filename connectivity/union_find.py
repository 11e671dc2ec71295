# connectivity/union_find.py
from typing import Dict, Hashable, List


class UnionFind:
    """Disjoint sets over hashable keys (path compression + union by rank)."""

    def __init__(self):
        self.parent: Dict[Hashable, Hashable] = {}
        self.rank: Dict[Hashable, int] = {}

    def add(self, key: Hashable) -> None:
        if key not in self.parent:
            self.parent[key] = key
            self.rank[key] = 0

    def __contains__(self, key: Hashable) -> bool:
        return key in self.parent

    def find(self, key: Hashable) -> Hashable:
        self.add(key)
        root = key
        while self.parent[root] != root:
            root = self.parent[root]
        # Compress
        while self.parent[key] != root:
            self.parent[key], key = root, self.parent[key]
        return root

    def union(self, a: Hashable, b: Hashable) -> Hashable:
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a == root_b:
            return root_a
        if self.rank[root_a] < self.rank[root_b]:
            root_a, root_b = root_b, root_a
        self.parent[root_b] = root_a
        if self.rank[root_a] == self.rank[root_b]:
            self.rank[root_a] += 1
        return root_a

    def connected(self, a: Hashable, b: Hashable) -> bool:
        return self.find(a) == self.find(b)

    def groups(self) -> Dict[Hashable, List[Hashable]]:
        result: Dict[Hashable, List[Hashable]] = {}
        for key in self.parent:
            result.setdefault(self.find(key), []).append(key)
        return result

    def __len__(self) -> int:
        return len(self.parent)
