from __future__ import annotations

from typing import Iterator, Mapping, Sequence


def find_cycles(adjacency: Mapping[str, Sequence[str]]) -> list[tuple[str, ...]]:
    """Depth-first cycle search over downstream edges.

    Each cycle is the DFS stack slice from the first occurrence of the
    revisited node through the current node, closed by repeating the revisited
    node, e.g. ``("a", "b", "a")``. A node is reported in at most one cycle;
    the first discovery wins.
    """
    visited: set[str] = set()
    on_stack: set[str] = set()
    stack: list[str] = []
    claimed: set[str] = set()
    cycles: list[tuple[str, ...]] = []

    for root in adjacency:
        if root in visited:
            continue
        visited.add(root)
        stack.append(root)
        on_stack.add(root)
        frames: list[Iterator[str]] = [iter(adjacency.get(root, ()))]
        while frames:
            neighbor = next(frames[-1], None)
            if neighbor is None:
                frames.pop()
                on_stack.discard(stack.pop())
                continue
            if neighbor in on_stack:
                start = stack.index(neighbor)
                cycle = (*stack[start:], neighbor)
                members = set(cycle)
                if not members & claimed:
                    claimed.update(members)
                    cycles.append(cycle)
            elif neighbor not in visited:
                visited.add(neighbor)
                stack.append(neighbor)
                on_stack.add(neighbor)
                frames.append(iter(adjacency.get(neighbor, ())))
    return cycles


def last_edge(cycle: Sequence[str]) -> tuple[str, str] | None:
    """The edge closing a cycle: ``(predecessor, repeated node)``."""
    if len(cycle) < 2:
        return None
    return cycle[-2], cycle[-1]
