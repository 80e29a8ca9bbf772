from typing import Annotated, Iterator, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from x12_config import ConfigNode
from x12_errors import ElementIndexError, MinOccursWarning, UnmatchedSegmentWarning
from x12_tokenizer import Delimiters

# Canonical Data Model (CDM) for a parsed interchange.
# A Loop owns its children outright; children only point back at the ConfigNode
# they realize, never at their runtime parent.


class Segment(BaseModel):
    """A single matched segment. Element 0 is the segment tag; values are always raw strings."""
    type: Literal['segment'] = 'segment'
    segment_id: str
    elements: List[str]
    line_number: int
    sub_element_separator: Optional[str] = None
    config: Optional[ConfigNode] = Field(default=None, exclude=True, repr=False)

    def get_element(self, index: int) -> str:
        """
        Retrieves an element by its 0-based index (index 0 is the tag).

        Raises ElementIndexError when the segment has no element at that index,
        so a short segment is never confused with an element that is present but empty.
        """
        if 0 <= index < len(self.elements):
            return self.elements[index]
        raise ElementIndexError(self.segment_id, index, len(self.elements))

    def get_sub_elements(self, index: int) -> List[str]:
        value = self.get_element(index)
        if not self.sub_element_separator:
            return [value]
        return value.split(self.sub_element_separator)

    def __len__(self) -> int:
        return len(self.elements)


class Loop(BaseModel):
    """
    One realized occurrence of a configured loop, e.g. a single claim (2100).
    Children are Segments and nested Loops in document order.
    """
    type: Literal['loop'] = 'loop'
    loop_id: str
    occurrence: int = 0
    children: List['LoopChild'] = Field(default_factory=list)
    config: Optional[ConfigNode] = Field(default=None, exclude=True, repr=False)

    def __iter__(self) -> Iterator[Union['Loop', Segment]]:
        return iter(self.children)

    def __len__(self) -> int:
        return len(self.children)

    @property
    def segments(self) -> List[Segment]:
        return [child for child in self.children if isinstance(child, Segment)]

    @property
    def loops(self) -> List['Loop']:
        return [child for child in self.children if isinstance(child, Loop)]

    def get_segment(self, segment_id: str) -> Optional[Segment]:
        return next((segment for segment in self.segments if segment.segment_id == segment_id), None)

    def get_segments(self, segment_id: str) -> List[Segment]:
        return [segment for segment in self.segments if segment.segment_id == segment_id]

    def get_loop(self, loop_id: str) -> Optional['Loop']:
        return next((loop for loop in self.loops if loop.loop_id == loop_id), None)

    def get_loops(self, loop_id: str) -> List['Loop']:
        return [loop for loop in self.loops if loop.loop_id == loop_id]

    def walk(self) -> Iterator[Union['Loop', Segment]]:
        """Depth-first, pre-order traversal of this loop and everything below it."""
        stack: List[Union[Loop, Segment]] = [self]
        while stack:
            node = stack.pop()
            yield node
            if isinstance(node, Loop):
                stack.extend(reversed(node.children))

    def find_loop(self, loop_id: str) -> List['Loop']:
        """Every loop in this subtree (itself included) with the given identifier, in document order."""
        return [node for node in self.walk() if isinstance(node, Loop) and node.loop_id == loop_id]

    def find_segment(self, segment_id: str) -> List[Segment]:
        """Every segment in this subtree with the given tag, in document order."""
        return [node for node in self.walk() if isinstance(node, Segment) and node.segment_id == segment_id]


LoopChild = Annotated[Union[Loop, Segment], Field(discriminator='type')]

DocumentWarning = Annotated[Union[UnmatchedSegmentWarning, MinOccursWarning], Field(discriminator='kind')]


class Document(BaseModel):
    root: Loop
    delimiters: Delimiters
    warnings: List[DocumentWarning] = Field(default_factory=list)
    segment_count: int = 0

    def find_loop(self, loop_id: str) -> List[Loop]:
        return self.root.find_loop(loop_id)

    def find_segment(self, segment_id: str) -> List[Segment]:
        return self.root.find_segment(segment_id)

    @property
    def unmatched(self) -> List[UnmatchedSegmentWarning]:
        return [w for w in self.warnings if isinstance(w, UnmatchedSegmentWarning)]


Loop.model_rebuild()
