from typing import BinaryIO, Optional


class BitWriter:
    """Bit-packing writer.

    Accumulates individual bits into bytes and buffers them until
    closed. If an output file object is given, the buffered bytes are
    written to it on :meth:`close`.

    :ivar buffer: Internal byte buffer holding fully written bytes.
    :type buffer: bytearray
    :ivar bit_buffer: 8-bit scratch register for accumulating pending bits.
    :type bit_buffer: int
    :ivar bit_count: Number of valid bits currently stored in ``bit_buffer`` (0-7).
    :type bit_count: int
    :ivar bits_written: Total number of bits accepted by :meth:`write_bits`.
    :type bits_written: int
    """

    def __init__(self, out: Optional[BinaryIO] = None):
        """Initialize an empty bit writer.

        :param out: Optional binary file object receiving the bytes on close.
        :type out: BinaryIO | None
        :returns: None
        :rtype: None
        """
        self.out = out
        self.buffer = bytearray()
        self.bit_buffer = 0
        self.bit_count = 0
        self.bits_written = 0
        self._result: Optional[bytes] = None

    def write_bits(self, value: int, nbits: int):
        """Write the lowest ``nbits`` of ``value`` to the buffer, MSB first.

        :param value: Integer whose bits will be written.
        :type value: int
        :param nbits: Number of bits from ``value`` to write. Zero writes nothing.
        :type nbits: int
        :returns: None
        :rtype: None
        :raises ValueError: If the writer is already closed.
        """
        if self._result is not None:
            raise ValueError("write to closed BitWriter")
        for i in range(nbits - 1, -1, -1):
            self.bit_buffer = (self.bit_buffer << 1) | ((value >> i) & 1)
            self.bit_count += 1
            if self.bit_count == 8:
                self.buffer.append(self.bit_buffer)
                self.bit_buffer = 0
                self.bit_count = 0
        self.bits_written += max(nbits, 0)

    def close(self) -> bytes:
        """Flush remaining bits and return the full byte buffer.

        Any partial byte in ``bit_buffer`` is padded with zeros to complete the
        byte before being appended. Calling ``close`` again returns the same
        bytes without writing anything more.

        :returns: The accumulated bytes.
        :rtype: bytes
        """
        if self._result is not None:
            return self._result
        if self.bit_count > 0:
            self.bit_buffer <<= (8 - self.bit_count)
            self.buffer.append(self.bit_buffer)
            self.bit_buffer = 0
            self.bit_count = 0
        self._result = bytes(self.buffer)
        if self.out is not None:
            self.out.write(self._result)
            self.out.flush()
        return self._result

    @property
    def closed(self) -> bool:
        return self._result is not None


class BitReader:
    """Bit reader over a bytes-like object.

    Reads arbitrary bit lengths, MSB first. Running out of data raises
    ``EOFError``, which is how callers detect end of stream.

    :ivar data: Input data to read bits from.
    :type data: bytes
    :ivar pos: Current position in ``data`` (byte index).
    :type pos: int
    :ivar bit_buffer: Scratch register holding the current source byte.
    :type bit_buffer: int
    :ivar bit_count: Number of unread bits remaining in ``bit_buffer`` (0-8).
    :type bit_count: int
    :ivar bits_read: Total number of bits returned since the last reset.
    :type bits_read: int
    """

    def __init__(self, data: bytes):
        """Create a bit reader for the given input ``data``.

        :param data: Source data to read from.
        :type data: bytes
        :returns: None
        :rtype: None
        """
        self.data = data
        self.closed = False
        self.reset()

    def reset(self):
        """Rewind the reader to the first bit of ``data``.

        :returns: None
        :rtype: None
        :raises ValueError: If the reader is closed.
        """
        if self.closed:
            raise ValueError("reset of closed BitReader")
        self.pos = 0
        self.bit_buffer = 0
        self.bit_count = 0
        self.bits_read = 0

    def read_bits(self, nbits: int) -> int:
        """Read ``nbits`` bits from the stream and return them as an integer.

        Bits are returned MSB-first in the integer.

        :param nbits: Number of bits to read.
        :type nbits: int
        :returns: The integer value composed of the next ``nbits`` bits.
        :rtype: int
        :raises EOFError: If the end of data is reached before reading ``nbits``.
        :raises ValueError: If the reader is closed.
        """
        if self.closed:
            raise ValueError("read from closed BitReader")
        result = 0
        for _ in range(nbits):
            if self.bit_count == 0:
                if self.pos >= len(self.data):
                    raise EOFError("Unexpected end of data")
                self.bit_buffer = self.data[self.pos]
                self.pos += 1
                self.bit_count = 8
            result = (result << 1) | ((self.bit_buffer >> (self.bit_count - 1)) & 1)
            self.bit_count -= 1
            self.bits_read += 1
        return result

    def close(self):
        """Release the reader; further reads raise ``ValueError``.

        :returns: None
        :rtype: None
        """
        self.closed = True
