import sys
from typing import Callable, Optional

from bitops import BitReader, BitWriter
from huffman import (
    BITS_PER_INT,
    BITS_PER_WORD,
    HUFF_TREE,
    PSEUDO_EOF,
    DecodeError,
    FormatError,
    build_tree,
    count_frequencies,
    make_codes,
    read_header,
    write_header,
)

DEBUG_LOW = 1  #: Coarse progress messages
DEBUG_HIGH = 4  #: Detailed structural messages


class HuffProcessor:
    """Huffman compressor/decompressor with a self-describing tree header.

    Compressed layout: 32-bit :data:`huffman.HUFF_TREE` marker, preorder
    tree header, the code of every input byte, then the end-marker code.

    :ivar debug_level: Diagnostic verbosity; never affects output bytes.
    :type debug_level: int
    """

    def __init__(self, debug: int = 0):
        """Create a processor.

        :param debug: Diagnostic verbosity (0, :data:`DEBUG_LOW` or :data:`DEBUG_HIGH`).
        :type debug: int
        :returns: None
        :rtype: None
        """
        self.debug_level = debug

    def compress(
        self,
        reader: BitReader,
        writer: BitWriter,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> int:
        """Compress everything readable from ``reader`` into ``writer``.

        The input is read twice: once to count symbols and once, after
        ``reader.reset()``, to encode them. ``writer`` is closed on return,
        whether or not compression succeeded.

        :param reader: Input bit stream; must support ``reset``.
        :type reader: BitReader
        :param writer: Output bit stream.
        :type writer: BitWriter
        :param on_progress: Optional callback ``on_progress(done, total)``
                            reporting input bytes encoded.
        :type on_progress: Optional[Callable[[int, int], None]]
        :returns: Number of bits written, excluding final padding.
        :rtype: int
        """
        try:
            freqs = count_frequencies(reader)
            total = sum(freqs) - freqs[PSEUDO_EOF]
            self._debug(DEBUG_LOW, f"counted {total} input bytes")

            root = build_tree(freqs)
            self._debug(DEBUG_HIGH, f"tree built from {len(freqs)} leaves")
            codes = make_codes(root)
            self._debug(DEBUG_HIGH, f"encodings complete ({len(codes)} codes)")

            writer.write_bits(HUFF_TREE, BITS_PER_INT)
            write_header(root, writer)
            self._debug(
                DEBUG_HIGH,
                f"header written ({writer.bits_written - BITS_PER_INT} bits)",
            )

            reader.reset()
            done = 0
            while True:
                try:
                    value = reader.read_bits(BITS_PER_WORD)
                except EOFError:
                    break
                code, length = codes[value]
                writer.write_bits(code, length)
                done += 1
                if on_progress is not None:
                    on_progress(done, total)
            code, length = codes[PSEUDO_EOF]
            writer.write_bits(code, length)
            self._debug(DEBUG_HIGH, "compressed bits written")
        finally:
            writer.close()

        if on_progress is not None:
            on_progress(total, total)
        self._debug(DEBUG_LOW, f"wrote {writer.bits_written} bits")
        return writer.bits_written

    def decompress(
        self,
        reader: BitReader,
        writer: BitWriter,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> int:
        """Decompress a stream produced by :meth:`compress`.

        ``writer`` is closed on return, whether or not decompression
        succeeded. After a failure its contents must not be trusted.

        :param reader: Compressed bit stream.
        :type reader: BitReader
        :param writer: Destination for the decoded bytes.
        :type writer: BitWriter
        :param on_progress: Optional callback ``on_progress(done, total)``
                            reporting compressed bytes consumed.
        :type on_progress: Optional[Callable[[int, int], None]]
        :returns: Number of bytes decoded.
        :rtype: int
        :raises FormatError: If the marker or tree header is invalid.
        :raises DecodeError: If the data ends before the end-marker.
        """
        try:
            try:
                marker = reader.read_bits(BITS_PER_INT)
            except EOFError:
                raise FormatError(
                    "input too short for header marker"
                ) from None
            if marker != HUFF_TREE:
                raise FormatError(f"illegal header starts with {marker:#010x}")

            root = read_header(reader)
            self._debug(DEBUG_HIGH, f"header read ({reader.bits_read} bits)")
            if root.is_leaf and root.symbol != PSEUDO_EOF:
                raise FormatError(
                    f"single-leaf tree holds {root.symbol}, not PSEUDO_EOF"
                )

            count = self._decode_body(root, reader, writer, on_progress)
        finally:
            writer.close()

        self._debug(DEBUG_LOW, f"decoded {count} bytes")
        return count

    def _decode_body(
        self,
        root,
        reader: BitReader,
        writer: BitWriter,
        on_progress: Optional[Callable[[int, int], None]],
    ) -> int:
        """Walk the tree one bit at a time until the end-marker leaf.

        The cursor is checked before each read so that a leaf root (a
        zero-length code) never consumes a bit.

        :returns: Number of bytes written to ``writer``.
        :rtype: int
        :raises DecodeError: If ``reader`` runs out before the end-marker.
        """
        total = len(reader.data)
        count = 0
        current = root
        while True:
            if current.is_leaf:
                if current.symbol == PSEUDO_EOF:
                    break
                writer.write_bits(current.symbol, BITS_PER_WORD)
                count += 1
                if on_progress is not None:
                    on_progress(reader.pos, total)
                current = root
                continue
            try:
                bit = reader.read_bits(1)
            except EOFError:
                raise DecodeError(
                    f"bad input, no PSEUDO_EOF after {reader.bits_read} bits "
                    f"({count} bytes decoded)"
                ) from None
            current = current.right if bit else current.left

        if on_progress is not None:
            on_progress(total, total)
        return count

    def _debug(self, level: int, message: str) -> None:
        """Print a diagnostic to stderr if ``debug_level`` reaches ``level``.

        :param level: Minimum verbosity at which the message is shown.
        :type level: int
        :param message: Text to print.
        :type message: str
        :returns: None
        :rtype: None
        """
        if self.debug_level >= level:
            print(f"[huff] {message}", file=sys.stderr)


def compress_bytes(data: bytes, debug: int = 0) -> bytes:
    """Compress ``data`` in memory.

    :param data: Input bytes.
    :type data: bytes
    :param debug: Diagnostic verbosity.
    :type debug: int
    :returns: Compressed bytes.
    :rtype: bytes
    """
    writer = BitWriter()
    HuffProcessor(debug).compress(BitReader(data), writer)
    return writer.close()


def decompress_bytes(data: bytes, debug: int = 0) -> bytes:
    """Decompress bytes produced by :func:`compress_bytes`.

    :param data: Compressed bytes.
    :type data: bytes
    :param debug: Diagnostic verbosity.
    :type debug: int
    :returns: Original bytes.
    :rtype: bytes
    :raises FormatError: If the marker or tree header is invalid.
    :raises DecodeError: If the data ends before the end-marker.
    """
    writer = BitWriter()
    HuffProcessor(debug).decompress(BitReader(data), writer)
    return writer.close()
