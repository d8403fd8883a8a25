import heapq
from typing import Dict, List, Sequence, Tuple

from bitops import BitReader, BitWriter

BITS_PER_WORD = 8
BITS_PER_INT = 32
ALPH_SIZE = 1 << BITS_PER_WORD
PSEUDO_EOF = ALPH_SIZE  #: End-marker symbol, one past the last byte value
HUFF_NUMBER = 0xFACE8200
HUFF_TREE = HUFF_NUMBER | 1  #: Marker for the preorder tree header


class HuffError(ValueError):
    """Base class for errors raised while compressing or decompressing."""


class FormatError(HuffError):
    """Input does not start with a valid marker and tree header."""


class DecodeError(HuffError):
    """Compressed body ended before the end-marker was decoded."""


class HuffmanNode:
    """Node of a Huffman tree.

    A leaf carries a ``symbol`` and no children; an internal node has both
    children and ``symbol`` set to ``None``.

    :ivar symbol: Byte value or :data:`PSEUDO_EOF` for leaves; ``None`` for internal nodes.
    :type symbol: int | None
    :ivar weight: Frequency of the subtree rooted at this node.
    :type weight: int
    :ivar left: Left child node (bit ``0``).
    :type left: HuffmanNode | None
    :ivar right: Right child node (bit ``1``).
    :type right: HuffmanNode | None
    """

    __slots__ = ("symbol", "weight", "left", "right")

    def __init__(self, symbol=None, weight=0, left=None, right=None):
        self.symbol = symbol
        self.weight = weight
        self.left = left
        self.right = right

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    def __repr__(self):
        if self.is_leaf:
            return f"HuffmanNode(symbol={self.symbol}, weight={self.weight})"
        return f"HuffmanNode(weight={self.weight})"


def count_frequencies(reader: BitReader) -> List[int]:
    """Count every 8-bit word in ``reader`` until end of stream.

    The end-marker slot starts at 1 so it always gets a code.

    :param reader: Source positioned at the first input byte; drained on return.
    :type reader: BitReader
    :returns: Weights indexed by symbol, ``ALPH_SIZE + 1`` entries.
    :rtype: List[int]
    """
    freqs = [0] * (ALPH_SIZE + 1)
    freqs[PSEUDO_EOF] = 1
    while True:
        try:
            value = reader.read_bits(BITS_PER_WORD)
        except EOFError:
            break
        freqs[value] += 1
    return freqs


def build_tree(freqs: Sequence[int]) -> HuffmanNode:
    """Build a Huffman tree by repeatedly merging the two lightest nodes.

    Every entry becomes a leaf, zero weights included. Ties on weight are
    broken by an order key: a leaf's symbol, or ``len(freqs) + n`` for the
    n-th merged node. The first node popped becomes the left child.

    :param freqs: Weight per symbol; index is the symbol value.
    :type freqs: Sequence[int]
    :returns: Root of the tree; a leaf when ``freqs`` has a single entry.
    :rtype: HuffmanNode
    :raises ValueError: If ``freqs`` is empty.
    """
    if not freqs:
        raise ValueError("Cannot build a Huffman tree with no symbols")

    heap = [(weight, symbol, HuffmanNode(symbol=symbol, weight=weight))
            for symbol, weight in enumerate(freqs)]
    heapq.heapify(heap)

    order = len(freqs)
    while len(heap) > 1:
        left_weight, _, left = heapq.heappop(heap)
        right_weight, _, right = heapq.heappop(heap)
        weight = left_weight + right_weight
        merged = HuffmanNode(weight=weight, left=left, right=right)
        heapq.heappush(heap, (weight, order, merged))
        order += 1

    return heap[0][2]


def make_codes(root: HuffmanNode) -> Dict[int, Tuple[int, int]]:
    """Derive the code of every leaf by walking the tree.

    :param root: Root of a Huffman tree.
    :type root: HuffmanNode
    :returns: Mapping from symbol to ``(code, length)``. A leaf root maps to ``(0, 0)``.
    :rtype: Dict[int, Tuple[int, int]]
    """
    codes: Dict[int, Tuple[int, int]] = {}
    _collect_codes(root, 0, 0, codes)
    return codes


def _collect_codes(node: HuffmanNode, code: int, length: int,
                   codes: Dict[int, Tuple[int, int]]):
    if node.is_leaf:
        codes[node.symbol] = (code, length)
        return
    _collect_codes(node.left, code << 1, length + 1, codes)
    _collect_codes(node.right, (code << 1) | 1, length + 1, codes)


def write_header(root: HuffmanNode, writer: BitWriter):
    """Serialize the tree in preorder.

    Internal nodes are a ``0`` bit followed by both subtrees; leaves are a
    ``1`` bit followed by the symbol in ``BITS_PER_WORD + 1`` bits.

    :param root: Tree to serialize.
    :type root: HuffmanNode
    :param writer: Destination bit stream.
    :type writer: BitWriter
    :returns: None
    :rtype: None
    """
    if root.is_leaf:
        writer.write_bits(1, 1)
        writer.write_bits(root.symbol, BITS_PER_WORD + 1)
    else:
        writer.write_bits(0, 1)
        write_header(root.left, writer)
        write_header(root.right, writer)


def read_header(reader: BitReader) -> HuffmanNode:
    """Parse a tree written by :func:`write_header`.

    :param reader: Bit stream positioned right after the format marker.
    :type reader: BitReader
    :returns: Root of the reconstructed tree (weights are zero).
    :rtype: HuffmanNode
    :raises FormatError: If the header is truncated, too deep, or holds a
        symbol outside ``0..PSEUDO_EOF``.
    """
    try:
        return _read_node(reader, 0)
    except EOFError:
        raise FormatError(
            f"header truncated after {reader.bits_read} bits"
        ) from None


def _read_node(reader: BitReader, depth: int) -> HuffmanNode:
    # 257 leaves can never nest deeper than ALPH_SIZE levels
    if depth > ALPH_SIZE:
        raise FormatError(f"header tree deeper than {ALPH_SIZE} levels")
    if reader.read_bits(1) == 0:
        left = _read_node(reader, depth + 1)
        right = _read_node(reader, depth + 1)
        return HuffmanNode(left=left, right=right)
    symbol = reader.read_bits(BITS_PER_WORD + 1)
    if symbol > PSEUDO_EOF:
        raise FormatError(f"header leaf has invalid symbol {symbol}")
    return HuffmanNode(symbol=symbol)
