import codecs
import logging
from typing import IO, Iterator, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from x12_errors import FormatError

logger = logging.getLogger(__name__)

# Positions are fixed in the X12 standard: the ISA segment is always 106 characters
# including its terminator, and every one of its elements is padded to a fixed width.
ISA_LENGTH = 106
ISA_ELEMENT_COUNT = 16
ELEMENT_SEPARATOR_OFFSET = 3
SUB_ELEMENT_SEPARATOR_OFFSET = 104
SEGMENT_TERMINATOR_OFFSET = 105

DEFAULT_CHUNK_SIZE = 64 * 1024
_LINE_BREAKS = "\r\n"
_LEADING_NOISE = " \t\r\n\ufeff"
_SEPARATOR_NOISE = " \r\n"
_BLANK = " \t"

Source = Union[str, bytes, bytearray, IO[str], IO[bytes]]


class Delimiters(BaseModel):
    model_config = ConfigDict(frozen=True)

    element_separator: str
    sub_element_separator: str
    segment_terminator: str  # may carry a trailing CR/LF, e.g. "~\r\n"


class RawSegment(BaseModel):
    """One tokenized segment. elements[0] is the segment tag."""
    elements: List[str]
    line_number: int
    sub_element_separator: Optional[str] = None

    @property
    def segment_id(self) -> str:
        return self.elements[0]

    def element(self, index: int) -> Optional[str]:
        """Element at a 0-based index, or None when the segment is shorter."""
        if 0 <= index < len(self.elements):
            return self.elements[index]
        return None

    def sub_elements(self, index: int) -> List[str]:
        value = self.element(index)
        if value is None:
            return []
        if not self.sub_element_separator:
            return [value]
        return value.split(self.sub_element_separator)


def resolve_delimiters(header: str) -> Delimiters:
    """
    Reads the delimiter set from the fixed offsets of an ISA header.

    `header` must start with the ISA segment. The terminator is the character at
    offset 105 plus any CR/LF characters that immediately follow it.
    """
    clean = header.lstrip(_LEADING_NOISE)
    if not clean:
        raise FormatError("Input is empty; expected an ISA interchange header.")
    if not clean.startswith("ISA"):
        raise FormatError(f"Input does not start with an ISA header (found '{clean[:3]}').")
    if len(clean) < ISA_LENGTH:
        raise FormatError(f"ISA header is too short: {len(clean)} characters, expected at least {ISA_LENGTH}.")

    element_separator = clean[ELEMENT_SEPARATOR_OFFSET]
    sub_element_separator = clean[SUB_ELEMENT_SEPARATOR_OFFSET]
    terminator_char = clean[SEGMENT_TERMINATOR_OFFSET]

    if element_separator.isalnum() or element_separator in _SEPARATOR_NOISE:
        raise FormatError(f"Invalid element separator '{element_separator}' at offset {ELEMENT_SEPARATOR_OFFSET}.")
    if terminator_char.isalnum() or terminator_char == " ":
        raise FormatError(f"Segment terminator missing at offset {SEGMENT_TERMINATOR_OFFSET} (found '{terminator_char}').")
    if sub_element_separator in (element_separator, terminator_char):
        raise FormatError("Sub-element separator collides with another delimiter.")

    header_fields = clean[:SEGMENT_TERMINATOR_OFFSET].split(element_separator)
    if len(header_fields) != ISA_ELEMENT_COUNT + 1:
        raise FormatError(
            f"ISA header has {len(header_fields) - 1} elements, expected {ISA_ELEMENT_COUNT}. "
            "The header may be truncated or padded incorrectly."
        )

    terminator = terminator_char
    cursor = SEGMENT_TERMINATOR_OFFSET + 1
    if terminator_char not in _LINE_BREAKS:
        while cursor < len(clean) and clean[cursor] in _LINE_BREAKS:
            terminator += clean[cursor]
            cursor += 1

    delimiters = Delimiters(
        element_separator=element_separator,
        sub_element_separator=sub_element_separator,
        segment_terminator=terminator,
    )
    logger.debug(
        f"Delimiters detected: Element='{element_separator}', Component='{sub_element_separator}', "
        f"Segment={terminator!r}"
    )
    return delimiters


def _iter_chunks(source: Source, encoding: str, chunk_size: int) -> Iterator[str]:
    if isinstance(source, str):
        yield source
        return
    if isinstance(source, (bytes, bytearray)):
        yield bytes(source).decode(encoding)
        return
    read = getattr(source, "read", None)
    if read is None:
        raise TypeError(f"Unsupported X12 source type: {type(source).__name__}")

    decoder = None
    while True:
        chunk = read(chunk_size)
        if not chunk:
            break
        if isinstance(chunk, (bytes, bytearray)):
            if decoder is None:
                decoder = codecs.getincrementaldecoder(encoding)()
            chunk = decoder.decode(chunk)
        if chunk:
            yield chunk
    if decoder is not None:
        tail = decoder.decode(b"", final=True)
        if tail:
            yield tail


class SegmentTokenizer:
    """
    Lazy, one-pass iterator of RawSegment over a single interchange.

    The header is read and the delimiters are resolved when the tokenizer is
    created, so a malformed header fails fast with FormatError. The ISA segment
    is yielded first, followed by every other segment in source order.
    """

    def __init__(self, source: Source, encoding: str = "utf-8", chunk_size: int = DEFAULT_CHUNK_SIZE):
        self._chunks = _iter_chunks(source, encoding, chunk_size)
        self._buffer = self._read_header()
        self.delimiters = resolve_delimiters(self._buffer)
        self._segments = self._generate()

    def __iter__(self) -> "SegmentTokenizer":
        return self

    def __next__(self) -> RawSegment:
        return next(self._segments)

    def _read_header(self) -> str:
        buffer = ""
        # One extra character tells us whether the terminator is followed by a line break.
        for chunk in self._chunks:
            buffer += chunk
            stripped = buffer.lstrip(_LEADING_NOISE)
            if len(stripped) > ISA_LENGTH + 1:
                return stripped
        return buffer.lstrip(_LEADING_NOISE)

    def _split(self, fragment: str, line_number: int) -> Optional[RawSegment]:
        # Only the line breaks around the terminator go; element values stay byte-for-byte.
        clean = fragment.strip(_LINE_BREAKS)
        if not clean.strip(_BLANK):
            return None
        return RawSegment(
            elements=clean.split(self.delimiters.element_separator),
            line_number=line_number,
            sub_element_separator=self.delimiters.sub_element_separator,
        )

    def _generate(self) -> Iterator[RawSegment]:
        terminator = self.delimiters.segment_terminator[0]
        header_end = SEGMENT_TERMINATOR_OFFSET
        header = RawSegment(
            elements=self._buffer[:header_end].split(self.delimiters.element_separator),
            line_number=1,
            sub_element_separator=self.delimiters.sub_element_separator,
        )
        yield header

        line_number = 1
        pending = self._buffer[header_end + 1:]
        self._buffer = ""
        while True:
            *complete, pending = pending.split(terminator)
            for fragment in complete:
                segment = self._split(fragment, line_number + 1)
                if segment is not None:
                    line_number += 1
                    yield segment
            chunk = next(self._chunks, None)
            if chunk is None:
                break
            pending += chunk

        # Some senders omit the terminator after the final segment.
        segment = self._split(pending, line_number + 1)
        if segment is not None:
            line_number += 1
            yield segment
        logger.debug(f"Tokenizer finished after {line_number} segments.")


def tokenize(source: Source, encoding: str = "utf-8", chunk_size: int = DEFAULT_CHUNK_SIZE) -> SegmentTokenizer:
    return SegmentTokenizer(source, encoding=encoding, chunk_size=chunk_size)
