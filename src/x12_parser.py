import logging
from enum import Enum
from typing import Dict, List, Optional, Tuple

from cdm import Document, Loop, Segment
from x12_config import ConfigNode
from x12_errors import FormatError, MinOccursWarning, ParseWarning, UnmatchedSegmentError, UnmatchedSegmentWarning
from x12_tokenizer import DEFAULT_CHUNK_SIZE, RawSegment, Source, tokenize

logger = logging.getLogger(__name__)


class UnmatchedSegmentPolicy(str, Enum):
    """What to do with a segment that no open loop, at any depth, can accept."""
    SKIP = "skip"
    ATTACH = "attach"
    FAIL = "fail"


class _Frame:
    """An open loop: its config node, the runtime loop being filled, and the matching cursor."""
    __slots__ = ("config", "loop", "cursor", "usage_counts")

    def __init__(self, config: ConfigNode, loop: Loop):
        self.config = config
        self.loop = loop
        self.cursor = 0
        self.usage_counts: Dict[int, int] = {}

    def find_child(self, segment: RawSegment) -> Optional[int]:
        """
        Index of the child config node that accepts `segment`, or None.

        The scan starts at the most recently matched child so a repeating child is
        tried before the siblings that follow it, then wraps around to the
        siblings configured before it.
        """
        children = self.config.children
        for offset in range(len(children)):
            i = (self.cursor + offset) % len(children)
            child = children[i]
            if not child.matches(segment):
                continue
            if not child.allows_another(self.usage_counts.get(i, 0)):
                logger.debug(f"             - Skipping '{child.identifier}': Max usage ({child.max_occurs}) reached.")
                continue
            return i
        return None


class X12Parser:
    """
    Builds a Document from one interchange by matching each segment against a
    configuration tree.

    The parser holds only the immutable configuration and its options, so one
    instance can serve any number of parse calls, including concurrent ones.
    """

    def __init__(
        self,
        config: ConfigNode,
        unmatched_policy: UnmatchedSegmentPolicy = UnmatchedSegmentPolicy.SKIP,
        check_min_occurs: bool = False,
        encoding: str = "utf-8",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.config = config
        self.unmatched_policy = UnmatchedSegmentPolicy(unmatched_policy)
        self.check_min_occurs = check_min_occurs
        self.encoding = encoding
        self.chunk_size = chunk_size

    def parse(self, source: Source) -> Document:
        tokenizer = tokenize(source, encoding=self.encoding, chunk_size=self.chunk_size)
        root = Loop(loop_id=self.config.identifier, config=self.config)
        stack: List[_Frame] = [_Frame(self.config, root)]
        warnings: List[ParseWarning] = []
        segment_count = 0

        logger.info(f"=== PARSING INTERCHANGE WITH CONFIG '{self.config.identifier}' ===")

        for raw in tokenizer:
            segment_count += 1
            if segment_count == 1 and self.config.segment_id:
                if not self.config.matches(raw):
                    raise FormatError(
                        f"First segment '{raw.segment_id}' does not match root '{self.config.identifier}' "
                        f"(expected '{self.config.segment_id}')."
                    )
                root.children.append(self._to_segment(raw, self.config))
                continue
            self._consume(raw, stack, warnings)

        while stack:
            self._close(stack.pop(), warnings)

        document = Document(
            root=root,
            delimiters=tokenizer.delimiters,
            warnings=warnings,
            segment_count=segment_count,
        )
        self._log_summary(document)
        return document

    def _consume(self, raw: RawSegment, stack: List[_Frame], warnings: List[ParseWarning]):
        logger.debug(f"[SEGMENT {raw.line_number}] Processing '{raw.segment_id}'")

        match = self._find_frame(raw, stack)
        if match is None:
            self._handle_unmatched(raw, stack, warnings)
            return

        depth, child_index = match
        # Every frame above the matching one is complete.
        while len(stack) > depth + 1:
            self._close(stack.pop(), warnings)

        frame = stack[depth]
        child = frame.config.children[child_index]
        occurrence = frame.usage_counts.get(child_index, 0)
        frame.usage_counts[child_index] = occurrence + 1
        frame.cursor = child_index

        if child.is_loop:
            loop = Loop(loop_id=child.identifier, occurrence=occurrence, config=child)
            loop.children.append(self._to_segment(raw, child))
            frame.loop.children.append(loop)
            stack.append(_Frame(child, loop))
            logger.debug(f"  -> [MATCH FOUND] Opened loop '{child.identifier}' (occurrence {occurrence}) at depth {len(stack) - 1}")
        else:
            frame.loop.children.append(self._to_segment(raw, child))
            logger.debug(f"  -> [MATCH FOUND] Segment '{child.identifier}' added to loop '{frame.config.identifier}'")

    def _find_frame(self, raw: RawSegment, stack: List[_Frame]) -> Optional[Tuple[int, int]]:
        """Innermost open frame that accepts the segment, searched outward without closing anything."""
        for depth in range(len(stack) - 1, -1, -1):
            child_index = stack[depth].find_child(raw)
            if child_index is not None:
                return depth, child_index
            logger.debug(f"  -> No match for '{raw.segment_id}' in loop '{stack[depth].config.identifier}'")
        return None

    def _handle_unmatched(self, raw: RawSegment, stack: List[_Frame], warnings: List[ParseWarning]):
        if self.unmatched_policy is UnmatchedSegmentPolicy.FAIL:
            raise UnmatchedSegmentError(raw.segment_id, raw.line_number)

        innermost = stack[-1]
        message = f"Segment '{raw.segment_id}' (line {raw.line_number}) does not match any reachable loop"
        if self.unmatched_policy is UnmatchedSegmentPolicy.ATTACH:
            innermost.loop.children.append(self._to_segment(raw, None))
            message += f"; attached to loop '{innermost.config.identifier}'."
        else:
            message += "; skipped."
        logger.warning(f"[NO MATCH] {message}")
        warnings.append(UnmatchedSegmentWarning(message=message, segment_id=raw.segment_id, line_number=raw.line_number))

    def _close(self, frame: _Frame, warnings: List[ParseWarning]):
        logger.debug(f"  -> Closing loop '{frame.config.identifier}' ({len(frame.loop.children)} children)")
        if not self.check_min_occurs:
            return
        for i, child in enumerate(frame.config.children):
            actual = frame.usage_counts.get(i, 0)
            if actual < child.min_occurs:
                message = (
                    f"Required segment or loop '{child.identifier}' occurs {actual} time(s) in loop "
                    f"'{frame.config.identifier}', expected at least {child.min_occurs}."
                )
                logger.warning(f"[STRUCTURAL WARNING] {message}")
                warnings.append(MinOccursWarning(
                    message=message,
                    segment_id=child.segment_id,
                    loop_id=frame.config.identifier,
                    identifier=child.identifier,
                    min_occurs=child.min_occurs,
                    actual=actual,
                ))

    @staticmethod
    def _to_segment(raw: RawSegment, config: Optional[ConfigNode]) -> Segment:
        return Segment(
            segment_id=raw.segment_id,
            elements=raw.elements,
            line_number=raw.line_number,
            sub_element_separator=raw.sub_element_separator,
            config=config,
        )

    def _log_summary(self, document: Document):
        if document.warnings:
            logger.warning("--- X12 PARSE SUMMARY: WARNINGS FOUND ---")
            logger.warning(f"Segments: {document.segment_count}, Warnings: {len(document.warnings)}")
            for warning in document.warnings:
                logger.warning(f"  - {warning.message}")
            logger.warning("--- END OF SUMMARY ---")
        else:
            logger.info("--- X12 PARSE SUMMARY: SUCCESS ---")
            logger.info(f"Matched all {document.segment_count} segments.")
            logger.info("--- END OF SUMMARY ---")


def parse(
    source: Source,
    config: ConfigNode,
    unmatched_policy: UnmatchedSegmentPolicy = UnmatchedSegmentPolicy.SKIP,
    check_min_occurs: bool = False,
) -> Document:
    """Parse a single interchange with a one-off parser."""
    parser = X12Parser(config, unmatched_policy=unmatched_policy, check_min_occurs=check_min_occurs)
    return parser.parse(source)
