import argparse
import os
import sys

from bitops import BitReader, BitWriter
from huffman import HuffError
from huffproc import DEBUG_HIGH, DEBUG_LOW, HuffProcessor

SUFFIX = ".hf"  #: Extension added to compressed files
UNCOMPRESSED_SUFFIX = ".uhf"  #: Extension used when SUFFIX cannot be stripped


def get_parser():
    """Create and configure the CLI argument parser.

    :returns: Configured argument parser.
    :rtype: argparse.ArgumentParser
    """
    parser = argparse.ArgumentParser(
        description="Huffman compressor with a self-describing tree header"
    )
    subparsers = parser.add_subparsers(
        title="subcommands", dest="cmd", required=True
    )

    compress = subparsers.add_parser(
        "compress", aliases=["c"], help="Compress a file"
    )
    compress.add_argument("source", help="File to compress")
    compress.add_argument(
        "-o", "--output", help=f"Output file (default: SOURCE{SUFFIX})"
    )

    decompress = subparsers.add_parser(
        "decompress", aliases=["d"], help="Decompress a file"
    )
    decompress.add_argument("source", help="Compressed file")
    decompress.add_argument(
        "-o",
        "--output",
        help=f"Output file (default: SOURCE without {SUFFIX}, "
             f"or SOURCE{UNCOMPRESSED_SUFFIX})",
    )

    for sub in (compress, decompress):
        sub.add_argument(
            "-v",
            "--verbose",
            action="count",
            default=0,
            help="Print diagnostics to stderr (-vv for details)",
        )
        sub.add_argument(
            "-P",
            "--no-progress",
            action="store_true",
            help="Hide the progress line",
        )

    return parser


def _debug_level(verbose: int) -> int:
    """Map a ``-v`` count to a :class:`HuffProcessor` debug level.

    :param verbose: Number of ``-v`` flags given.
    :type verbose: int
    :returns: 0, ``DEBUG_LOW`` or ``DEBUG_HIGH``.
    :rtype: int
    """
    if verbose <= 0:
        return 0
    if verbose == 1:
        return DEBUG_LOW
    return DEBUG_HIGH


def _default_output(source: str, compressing: bool) -> str:
    """Pick an output path when ``-o`` is not given.

    :param source: Input file path.
    :type source: str
    :param compressing: ``True`` for compression, ``False`` for decompression.
    :type compressing: bool
    :returns: Output file path.
    :rtype: str
    """
    if compressing:
        return source + SUFFIX
    if source.endswith(SUFFIX) and len(source) > len(SUFFIX):
        return source[:-len(SUFFIX)]
    return source + UNCOMPRESSED_SUFFIX


def _print_progress(line: str) -> None:
    """Render and flush a single progress line in-place (carriage return).

    :param line: The textual progress line to display.
    :type line: str
    :returns: None
    :rtype: None
    """
    sys.stdout.write("\r" + line)
    sys.stdout.flush()


def _fmt_pct(done: int, total: int) -> str:
    """Format a completion percentage string like ``12.34%``.

    :param done: Units completed.
    :type done: int
    :param total: Total units to complete.
    :type total: int
    :returns: Percentage.
    :rtype: str
    """
    if total <= 0:
        return "0%"
    pct = 100.0 * (done / float(total))
    return f"{pct:6.2f}%"


def _fmt_bytes(n: int) -> str:
    """Format a byte count into a human-readable string.

    :param n: Number of bytes.
    :type n: int
    :returns: Human-readable string.
    :rtype: str
    """
    for unit in ['', 'Ki', 'Mi', 'Gi', 'Ti']:
        if abs(n) < 1024:
            return f"{n:.2f} {unit}B"
        n /= 1024
    return f"{n:.2f} PiB"


class Progress:
    """Callable progress reporter for one file.

    Redraws the progress line only when the whole-percent value changes.

    :ivar label: Action label (e.g., "Compressing" or "Decompressing").
    :type label: str
    :ivar path: File name displayed next to the percentage.
    :type path: str
    """

    def __init__(self, label: str, path: str) -> None:
        self.label = label
        self.path = path
        self._last_reported = -1

    def __call__(self, done: int, total: int) -> None:
        """Update the progress display.

        :param done: Units processed so far.
        :type done: int
        :param total: Total units.
        :type total: int
        :returns: None
        :rtype: None
        """
        if total <= 0:
            return
        percent_bucket = int((done * 100) / total)
        if percent_bucket == self._last_reported:
            return
        self._last_reported = percent_bucket
        _print_progress(f"{self.label} {self.path}  {_fmt_pct(done, total)}")


def _discard(path: str) -> None:
    """Remove a partially written output file, if present."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def compress_file(
    source: str, output_path: str, hide_progress: bool, debug: int = 0
) -> None:
    """Compress ``source`` into ``output_path`` and print size statistics.

    :param source: File to compress.
    :type source: str
    :param output_path: Destination file path.
    :type output_path: str
    :param hide_progress: Whether to hide the progress line.
    :type hide_progress: bool
    :param debug: Diagnostic verbosity passed to :class:`HuffProcessor`.
    :type debug: int
    :returns: None
    :rtype: None
    """
    try:
        with open(source, "rb") as f:
            data = f.read()
    except FileNotFoundError:
        print(f"[!] File not found: {source}")
        return

    on_prog = None if hide_progress else Progress("Compressing", source)
    reader = BitReader(data)
    try:
        with open(output_path, "wb") as out:
            writer = BitWriter(out)
            HuffProcessor(debug).compress(reader, writer, on_progress=on_prog)
    finally:
        reader.close()
    if not hide_progress:
        sys.stdout.write("\n")
        sys.stdout.flush()

    compressed_size = len(writer.close())
    print("Size before compression: ", _fmt_bytes(len(data)))
    print("Size after compression: ", _fmt_bytes(compressed_size))
    print(f"Compression ratio: {len(data) / compressed_size:.2f}")


def decompress_file(
    source: str, output_path: str, hide_progress: bool, debug: int = 0
) -> None:
    """Decompress ``source`` into ``output_path``.

    On a format or decode error the partial output file is removed.

    :param source: Compressed file.
    :type source: str
    :param output_path: Destination file path.
    :type output_path: str
    :param hide_progress: Whether to hide the progress line.
    :type hide_progress: bool
    :param debug: Diagnostic verbosity passed to :class:`HuffProcessor`.
    :type debug: int
    :returns: None
    :rtype: None
    """
    try:
        with open(source, "rb") as f:
            data = f.read()
    except FileNotFoundError:
        print(f"[!] File not found: {source}")
        return

    on_prog = None if hide_progress else Progress("Decompressing", source)
    reader = BitReader(data)
    try:
        with open(output_path, "wb") as out:
            HuffProcessor(debug).decompress(
                reader, BitWriter(out), on_progress=on_prog
            )
    except HuffError as e:
        _discard(output_path)
        if not hide_progress:
            sys.stdout.write("\n")
        print(f"[!] Cannot decompress {source}: {e}")
        return
    finally:
        reader.close()
    if not hide_progress:
        sys.stdout.write("\n")
        sys.stdout.flush()


def main():
    """Entry point for the CLI tool.

    :returns: None
    :rtype: None
    """
    parser = get_parser()
    args = parser.parse_args()
    debug = _debug_level(args.verbose)

    if args.cmd in ["compress", "c"]:
        output = args.output or _default_output(args.source, True)
        compress_file(args.source, output, args.no_progress, debug)
    elif args.cmd in ["decompress", "d"]:
        output = args.output or _default_output(args.source, False)
        decompress_file(args.source, output, args.no_progress, debug)


if __name__ == "__main__":
    main()
