"""Fixed width little-endian field readers and writers

Records are walked field by field in declaration order, so the order of
calls in each codec is the layout. Writers start from a zeroed buffer and
leave skipped bytes zero.
"""
import logging

from ..constants import PROGRAM_VERSION, PUBKEY_BYTES, U8_MAX, U16_MAX, U64_MAX
from ..errors import DecodeError, MathOverflowError, VersionMismatchError
from ..math.decimal import Decimal

log = logging.getLogger(__name__)

DECIMAL_BYTES = 16


class RecordReader:
    """Sequential reader over a fixed length buffer"""

    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._offset = 0

    @property
    def offset(self) -> int:
        return self._offset

    def remaining(self) -> int:
        return len(self._data) - self._offset

    def take(self, width: int) -> bytes:
        if self.remaining() < width:
            raise DecodeError(f"Need {width} bytes at offset {self._offset}, {self.remaining()} left")
        chunk = self._data[self._offset:self._offset + width]
        self._offset += width
        return chunk

    def rest(self) -> bytes:
        return self.take(self.remaining())

    def skip(self, width: int) -> None:
        self.take(width)

    def _uint(self, width: int) -> int:
        return int.from_bytes(self.take(width), "little")

    def u8(self) -> int:
        return self._uint(1)

    def u16(self) -> int:
        return self._uint(2)

    def u64(self) -> int:
        return self._uint(8)

    def bool(self) -> bool:
        value = self.u8()
        if value not in (0, 1):
            raise DecodeError(f"Boolean cannot be unpacked from byte {value}")
        return value == 1

    def decimal(self) -> Decimal:
        return Decimal.from_scaled_val(self._uint(DECIMAL_BYTES))

    def pubkey(self) -> bytes:
        return self.take(PUBKEY_BYTES)


class RecordWriter:
    """Sequential writer into a zeroed buffer of fixed length"""

    def __init__(self, length: int):
        self._buffer = bytearray(length)
        self._offset = 0

    @property
    def offset(self) -> int:
        return self._offset

    def put(self, chunk: bytes) -> None:
        end = self._offset + len(chunk)
        if end > len(self._buffer):
            raise MathOverflowError(f"Record overflow writing {len(chunk)} bytes at offset {self._offset}")
        self._buffer[self._offset:end] = chunk
        self._offset = end

    def skip(self, width: int) -> None:
        self.put(bytes(width))

    def _uint(self, value: int, width: int, limit: int) -> None:
        if not 0 <= value <= limit:
            raise MathOverflowError(f"{value} does not fit in {width} bytes")
        self.put(value.to_bytes(width, "little"))

    def u8(self, value: int) -> None:
        self._uint(value, 1, U8_MAX)

    def u16(self, value: int) -> None:
        self._uint(value, 2, U16_MAX)

    def u64(self, value: int) -> None:
        self._uint(value, 8, U64_MAX)

    def bool(self, value: bool) -> None:
        self.u8(1 if value else 0)

    def decimal(self, value: Decimal) -> None:
        self.put(value.to_scaled_val().to_bytes(DECIMAL_BYTES, "little"))

    def pubkey(self, value: bytes) -> None:
        if len(value) != PUBKEY_BYTES:
            raise ValueError(f"Pubkey must be {PUBKEY_BYTES} bytes, got {len(value)}")
        self.put(value)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)


def check_record_length(data: bytes, expected: int, record: str) -> None:
    if len(data) != expected:
        raise DecodeError(f"{record} must be {expected} bytes, got {len(data)}")


def read_version(reader: RecordReader, record: str) -> int:
    """Read the leading version byte, rejecting records from a newer program"""
    version = reader.u8()
    if version > PROGRAM_VERSION:
        log.warning("%s version %d is newer than supported version %d", record, version, PROGRAM_VERSION)
        raise VersionMismatchError(f"{record} version does not match lending program version")
    return version
