from typing import Literal, Optional

from pydantic import BaseModel

# Exceptions raised by the parser, and the non-fatal diagnostics attached to a parsed Document.


class X12Error(Exception):
    """Base class for every error raised while configuring, parsing or querying."""


class FormatError(X12Error):
    """The interchange header is missing, too short, or its delimiters cannot be resolved."""


class ConfigurationError(X12Error, ValueError):
    """A configuration tree violates its structural rules (duplicate siblings, bad bounds)."""


class UnmatchedSegmentError(X12Error):
    """Raised only under the 'fail' policy when a segment matches no reachable config node."""

    def __init__(self, segment_id: str, line_number: int):
        self.segment_id = segment_id
        self.line_number = line_number
        super().__init__(f"Segment '{segment_id}' (line {line_number}) does not match any reachable loop.")


class ElementIndexError(X12Error, IndexError):
    """An element was requested beyond the end of a segment."""

    def __init__(self, segment_id: str, index: int, length: int):
        self.segment_id = segment_id
        self.index = index
        self.length = length
        super().__init__(f"Segment '{segment_id}' has {length} elements; index {index} is out of range.")


class ParseWarning(BaseModel):
    """A non-fatal finding recorded on the Document."""
    kind: str
    message: str
    segment_id: Optional[str] = None
    line_number: Optional[int] = None


class UnmatchedSegmentWarning(ParseWarning):
    kind: Literal["unmatched_segment"] = "unmatched_segment"


class MinOccursWarning(ParseWarning):
    kind: Literal["min_occurs"] = "min_occurs"
    loop_id: str
    identifier: str
    min_occurs: int
    actual: int
