"""
Tree rendering for diagnostics - never mutates the trie
"""

from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from allocator import AllocationTrie, Node


def _collect(node: Optional[Node], indent: int, depth: int, lines: List[str]):
    if node is None:
        return

    if node.value is not None:
        lines.append(
            f"{'  ' * indent} {'--' * (depth - indent)} "
            f"{node.value.label} ({node.value})"
        )

    # Single-child chains collapse into one run of dashes
    if node.left is not None and node.right is not None:
        indent = depth

    _collect(node.left, indent, depth + 1, lines)
    _collect(node.right, indent, depth + 1, lines)


def render_lines(trie: AllocationTrie) -> List[str]:
    lines: List[str] = []
    _collect(trie.snapshot(), 0, 0, lines)
    return lines


def utilization_bar(used: int, total: int) -> str:
    util = (used / total) * 100 if total > 0 else 0
    bar = "█" * min(int(util / 5), 20) + "░" * max(20 - int(util / 5), 0)
    return f"{bar} {util:.1f}%"


def print_tree(trie: AllocationTrie, console: Console):
    console.print(Panel(f"🌳 Allocations in {trie.space}", style="bold cyan"))

    lines = render_lines(trie)
    if not lines:
        console.print("   (no allocations)")
    for line in lines:
        console.print(Text(line), soft_wrap=True)

    used = trie.allocated_addresses()
    total = trie.space.num_addresses
    console.print(f"\n   Utilization: {used}/{total} IPs {utilization_bar(used, total)}")
