import io
import random

import pytest

from bitops import BitReader, BitWriter
from huffman import (
    BITS_PER_INT,
    HUFF_TREE,
    PSEUDO_EOF,
    DecodeError,
    FormatError,
    HuffmanNode,
    build_tree,
    count_frequencies,
    make_codes,
    write_header,
)
from huffproc import (
    DEBUG_HIGH,
    DEBUG_LOW,
    HuffProcessor,
    compress_bytes,
    decompress_bytes,
)


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"a",
        b"\x00",
        b"abracadabra",
        bytes(range(256)),
        b"The quick brown fox jumps over the lazy dog. " * 20,
    ],
)
def test_roundtrip(data):
    assert decompress_bytes(compress_bytes(data)) == data


def test_roundtrip_random_bytes():
    rng = random.Random(1234)
    data = bytes(rng.getrandbits(8) for _ in range(4096))
    assert decompress_bytes(compress_bytes(data)) == data


def test_compress_starts_with_marker():
    out = compress_bytes(b"hello")
    assert int.from_bytes(out[:4], "big") == HUFF_TREE == 0xFACE8201


def test_compress_is_reproducible():
    data = b"mississippi river"
    assert compress_bytes(data) == compress_bytes(data)


def test_empty_input_layout():
    freqs = count_frequencies(BitReader(b""))
    root = build_tree(freqs)
    expected = BitWriter()
    expected.write_bits(HUFF_TREE, BITS_PER_INT)
    write_header(root, expected)
    code, length = make_codes(root)[PSEUDO_EOF]
    expected.write_bits(code, length)
    assert compress_bytes(b"") == expected.close()
    assert decompress_bytes(compress_bytes(b"")) == b""


def test_skewed_input_compresses_well():
    data = b"A" * 1000
    out = compress_bytes(data)
    assert len(out) * 8 < 1000 * 8 // 2
    assert decompress_bytes(out) == data


def test_compress_returns_bits_and_closes_writer(progress_recorder):
    on_prog, calls = progress_recorder
    writer = BitWriter()
    bits = HuffProcessor().compress(BitReader(b"abcab"), writer, on_progress=on_prog)
    assert writer.closed
    assert bits == writer.bits_written
    assert len(writer.close()) == (bits + 7) // 8
    assert calls[-1] == (5, 5)
    assert [d for d, _ in calls[:5]] == [1, 2, 3, 4, 5]


def test_decompress_reports_progress(progress_recorder):
    on_prog, calls = progress_recorder
    comp = compress_bytes(b"progress " * 10)
    writer = BitWriter()
    count = HuffProcessor().decompress(BitReader(comp), writer, on_progress=on_prog)
    assert count == 90
    assert calls[-1] == (len(comp), len(comp))


def test_decompress_bad_marker_raises_without_output():
    bad = (0xCAFEBABE).to_bytes(4, "big") + compress_bytes(b"data")[4:]
    sink = io.BytesIO()
    writer = BitWriter(sink)
    with pytest.raises(FormatError, match="0xcafebabe"):
        HuffProcessor().decompress(BitReader(bad), writer)
    assert writer.closed
    assert sink.getvalue() == b""


def test_decompress_too_short_for_marker():
    with pytest.raises(FormatError):
        decompress_bytes(b"\xfa\xce")


def test_decompress_truncated_header():
    with pytest.raises(FormatError):
        decompress_bytes(compress_bytes(b"hello world")[:10])


def test_decompress_truncated_body_raises_decode_error():
    data = b"truncate me please " * 50
    comp = compress_bytes(data)
    with pytest.raises(DecodeError):
        decompress_bytes(comp[:-30])


def test_codec_errors_are_value_errors():
    with pytest.raises(ValueError):
        decompress_bytes(b"")


def _stream_with_tree(root, *codes):
    bw = BitWriter()
    bw.write_bits(HUFF_TREE, BITS_PER_INT)
    write_header(root, bw)
    for code, length in codes:
        bw.write_bits(code, length)
    return bw.close()


def test_leaf_root_end_marker_decodes_empty_without_reading_body():
    stream = _stream_with_tree(HuffmanNode(symbol=PSEUDO_EOF))
    reader = BitReader(stream)
    writer = BitWriter()
    assert HuffProcessor().decompress(reader, writer) == 0
    assert writer.close() == b""
    assert reader.bits_read == BITS_PER_INT + 10


def test_leaf_root_byte_symbol_is_rejected():
    stream = _stream_with_tree(HuffmanNode(symbol=ord("x")))
    with pytest.raises(FormatError, match="120"):
        decompress_bytes(stream)


def test_hand_built_tree_decodes():
    root = HuffmanNode(
        left=HuffmanNode(
            left=HuffmanNode(symbol=ord("h")), right=HuffmanNode(symbol=ord("i"))
        ),
        right=HuffmanNode(symbol=PSEUDO_EOF),
    )
    stream = _stream_with_tree(root, (0b00, 2), (0b01, 2), (0b1, 1))
    assert decompress_bytes(stream) == b"hi"


def test_debug_levels_print_to_stderr(capsys):
    compress_bytes(b"quiet")
    assert capsys.readouterr().err == ""

    compress_bytes(b"low", debug=DEBUG_LOW)
    low = capsys.readouterr().err
    assert "counted 3 input bytes" in low
    assert "header written" not in low

    comp = compress_bytes(b"high", debug=DEBUG_HIGH)
    high = capsys.readouterr()
    assert "header written" in high.err
    assert high.out == ""
    assert comp == compress_bytes(b"high")
