"""
CIDR Allocator - Best-Fit over an immutable binary trie
Seed with existing ranges, then grant new ranges that never overlap
"""

from operator import attrgetter
from typing import Iterable, Iterator, List, NamedTuple, Optional, Tuple, Union

from address import MAX_PREFIX, Address, InvalidAddressFormat, parse_address

BITMASK = tuple(1 << (MAX_PREFIX - 1 - depth) for depth in range(MAX_PREFIX))


def bit_at(depth: int) -> int:
    """Mask with the single bit at depth set, counted from the most significant bit"""
    return BITMASK[depth]


class AllocationError(Exception):
    """Base for allocation failures"""


class OverlapDetected(AllocationError):
    def __init__(self, address: Address, existing: Address):
        super().__init__(
            f"{address.label or '?'} ({address}) overlaps existing "
            f"{existing.label or '?'} ({existing})"
        )
        self.address = address
        self.existing = existing


class StructuralInvariantViolation(AllocationError):
    """An allocation nests inside or around another; allocations must be disjoint"""

    def __init__(self, address: Address, existing: Address):
        relation = "inside" if existing.contains(address) else "around"
        super().__init__(
            f"{address.label or '?'} ({address}) lies {relation} already allocated "
            f"{existing.label or '?'} ({existing})"
        )
        self.address = address
        self.existing = existing


class AddressOutsideSpace(AllocationError):
    def __init__(self, address: Address, space: Address):
        super().__init__(f"{address} is outside address space {space}")
        self.address = address
        self.space = space


class SpaceExhausted(AllocationError):
    def __init__(self, under: Address, prefix_length: int):
        super().__init__(f"no free /{prefix_length} left under {under}")
        self.under = under
        self.prefix_length = prefix_length


class InvalidRequest(AllocationError, ValueError):
    pass


class Node(NamedTuple):
    left: Optional["Node"] = None
    right: Optional["Node"] = None
    value: Optional[Address] = None


class Match(NamedTuple):
    path: int
    depth: int


def _first_leaf(node: Node) -> Address:
    while node.value is None:
        node = node.left if node.left is not None else node.right
    return node.value


def _insert(node: Optional[Node], address: Address, depth: int) -> Node:
    if depth == address.prefix_length:
        if node is None:
            return Node(value=address)
        if node.value is not None:
            raise OverlapDetected(address, node.value)
        # Smaller blocks already allocated under this one
        raise StructuralInvariantViolation(address, _first_leaf(node))

    if node is None:
        node = Node()
    elif node.value is not None:
        raise StructuralInvariantViolation(address, node.value)

    if address.host_bits & bit_at(depth):
        return Node(node.left, _insert(node.right, address, depth + 1), node.value)
    return Node(_insert(node.left, address, depth + 1), node.right, node.value)


def iter_free_blocks(
    node: Optional[Node], path: int, prefix_length: int, depth: int
) -> Iterator[Match]:
    """
    Yield every free subtree boundary at or above prefix_length, left to right.
    A match shallower than prefix_length is a larger free region.
    """
    if depth > prefix_length:
        return
    if node is None:
        yield Match(path, depth)
        return
    if node.value is not None:
        return

    yield from iter_free_blocks(node.left, path, prefix_length, depth + 1)
    yield from iter_free_blocks(
        node.right, path | bit_at(depth), prefix_length, depth + 1
    )


def _iter_leaves(node: Optional[Node]) -> Iterator[Address]:
    if node is None:
        return
    if node.value is not None:
        yield node.value
        return
    yield from _iter_leaves(node.left)
    yield from _iter_leaves(node.right)


class AllocationTrie:
    """Allocated blocks of one address space, keyed by address bits"""

    def __init__(self, space: Union[str, Address]):
        if isinstance(space, str):
            space = parse_address(space, "root")
        self.space = space
        self.root: Optional[Node] = None

    def __len__(self):
        return sum(1 for _ in self.leaves())

    def in_space(self, address: Address) -> bool:
        return self.space.contains(address)

    def snapshot(self) -> Optional[Node]:
        """Current root; nodes are immutable so it stays valid after inserts"""
        return self.root

    def leaves(self) -> Iterator[Address]:
        return _iter_leaves(self.root)

    def allocated_addresses(self) -> int:
        return sum(leaf.num_addresses for leaf in self.leaves())

    def insert(self, address: Address):
        """
        Register address as allocated.
        Raises OverlapDetected (trie unchanged) if the block or anything under it
        is already taken, StructuralInvariantViolation if an ancestor block is.
        """
        if not self.in_space(address):
            raise AddressOutsideSpace(address, self.space)
        self.root = _insert(self.root, address, self.space.prefix_length)

    def find_smallest(
        self, prefix_length: int, under: Optional[Address] = None
    ) -> Address:
        """
        Find the tightest free block of prefix_length within under (default: the
        whole space). The result is not inserted and carries no label.
        """
        if under is None:
            under = self.space
        if not self.in_space(under):
            raise InvalidRequest(f"{under} is outside address space {self.space}")
        if not under.prefix_length <= prefix_length <= MAX_PREFIX:
            raise InvalidRequest(
                f"prefix /{prefix_length} must be /{under.prefix_length}-/{MAX_PREFIX}"
                f" to fit under {under}"
            )

        node = self.root
        depth = self.space.prefix_length
        while node is not None and depth < under.prefix_length:
            if node.value is not None:
                raise SpaceExhausted(under, prefix_length)
            node = node.right if under.host_bits & bit_at(depth) else node.left
            depth += 1

        base = under.masked_base()
        if node is None:
            return Address(base, prefix_length)

        matches = list(iter_free_blocks(node, base, prefix_length, depth))
        if not matches:
            raise SpaceExhausted(under, prefix_length)

        # max keeps the first of equal depths: lowest address wins ties
        best = max(matches, key=attrgetter("depth"))
        return Address(best.path, prefix_length)


# ============ SEED / GRANT ============


class Skipped(NamedTuple):
    label: str
    cidr: str
    error: Exception


class Request(NamedTuple):
    under: Address
    prefix_lengths: Tuple[int, ...]


class Grant(NamedTuple):
    under: Address
    prefix_length: int
    address: Optional[Address]
    error: Optional[AllocationError] = None


def seed(trie: AllocationTrie, entries: Iterable[Tuple[str, str]]) -> List[Skipped]:
    """
    Insert existing (label, cidr) allocations, skipping bad entries one by one.
    StructuralInvariantViolation is not recoverable and propagates.
    """
    skipped = []
    for label, cidr in entries:
        try:
            trie.insert(parse_address(cidr, label, tolerant=True))
        except (InvalidAddressFormat, OverlapDetected, AddressOutsideSpace) as e:
            skipped.append(Skipped(label, cidr, e))
    return skipped


def parse_request(text: str) -> Request:
    """Parse CIDR:N[,N...] e.g. 10.0.0.0/8:20,24"""
    cidr, sep, sizes = text.rpartition(":")
    if not sep or not sizes:
        raise InvalidRequest(f"expected CIDR:SIZES, got {text!r}")
    try:
        under = parse_address(cidr, "root")
    except InvalidAddressFormat as e:
        raise InvalidRequest(str(e)) from e

    prefix_lengths = []
    for size in sizes.split(","):
        size = size.strip().lstrip("/")
        if not size.isdigit() or not size.isascii() or int(size) > MAX_PREFIX:
            raise InvalidRequest(f"invalid prefix length {size!r} in {text!r}")
        prefix_lengths.append(int(size))
    return Request(under, tuple(prefix_lengths))


def allocate(trie: AllocationTrie, requests: Iterable[Request]) -> List[Grant]:
    """Grant each requested prefix length in order, each seeing earlier grants"""
    grants = []
    for request in requests:
        label = f"< new {request.under} >"
        for prefix_length in request.prefix_lengths:
            try:
                found = trie.find_smallest(prefix_length, under=request.under)
            except (SpaceExhausted, InvalidRequest) as e:
                grants.append(Grant(request.under, prefix_length, None, e))
                continue
            address = found.with_prefix(prefix_length, label)
            trie.insert(address)
            grants.append(Grant(request.under, prefix_length, address))
    return grants
