from typing import Any, Iterator, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from x12_errors import ConfigurationError
from x12_tokenizer import RawSegment

# Declarative description of the loop hierarchy of a transaction set.
# A node with children describes a loop whose first segment is `segment_id`;
# a node without children describes a plain segment inside its parent loop.

_UNBOUNDED = (">1", "*", "unbounded", "")

MatchKey = Tuple[str, Optional[int], Optional[str]]


class Qualifier(BaseModel):
    """Element position (1-based, the tag is element 0) and the exact value it must hold."""
    model_config = ConfigDict(frozen=True)

    position: int = Field(1, ge=1)
    value: str


class ConfigNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    identifier: str
    segment_id: Optional[str] = None
    qualifier: Optional[Qualifier] = None
    min_occurs: int = Field(0, ge=0)
    max_occurs: Optional[int] = None
    children: Tuple["ConfigNode", ...] = ()

    @field_validator("max_occurs", mode="before")
    @classmethod
    def _parse_max_occurs(cls, value: Any) -> Any:
        # Accept the implementation-guide notation for repeating loops.
        if isinstance(value, str):
            if value.strip().lower() in _UNBOUNDED:
                return None
            return int(value)
        return value

    @model_validator(mode="after")
    def _check_structure(self) -> "ConfigNode":
        problem = _bounds_problem(self.min_occurs, self.max_occurs)
        if problem:
            raise ValueError(f"Config node '{self.identifier}': {problem}")
        seen: List["ConfigNode"] = []
        for child in self.children:
            if not child.segment_id:
                raise ValueError(f"Child '{child.identifier}' of '{self.identifier}' has no segment id.")
            problem = _sibling_conflict(seen, child.identifier, child.match_key)
            if problem:
                raise ValueError(f"Config node '{self.identifier}': {problem}")
            seen.append(child)
        return self

    @property
    def is_loop(self) -> bool:
        return bool(self.children)

    @property
    def match_key(self) -> MatchKey:
        if self.qualifier is None:
            return (self.segment_id or "", None, None)
        return (self.segment_id or "", self.qualifier.position, self.qualifier.value)

    def matches(self, segment: RawSegment) -> bool:
        """Tag equality plus, when a qualifier is configured, an exact match on the qualifier element."""
        if segment.segment_id != self.segment_id:
            return False
        if self.qualifier is None:
            return True
        return segment.element(self.qualifier.position) == self.qualifier.value

    def allows_another(self, count: int) -> bool:
        return self.max_occurs is None or count < self.max_occurs

    def walk(self) -> Iterator["ConfigNode"]:
        """Pre-order iteration over this node and all configured descendants."""
        stack: List[ConfigNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def find(self, identifier: str) -> Optional["ConfigNode"]:
        return next((node for node in self.walk() if node.identifier == identifier), None)

    def render(self) -> str:
        """ASCII outline of the hierarchy, one node per line."""
        lines: List[str] = []

        def visit(node: ConfigNode, depth: int):
            label = f"{'|  ' * depth}+--{node.identifier}"
            if node.segment_id:
                label += f" - {node.segment_id}"
            if node.qualifier:
                label += f" - {node.qualifier.value}@{node.qualifier.position}"
            if node.max_occurs is not None:
                label += f" - max {node.max_occurs}"
            lines.append(label)
            for child in node.children:
                visit(child, depth + 1)

        visit(self, 0)
        return "\n".join(lines)


ConfigNode.model_rebuild()


def _bounds_problem(min_occurs: int, max_occurs: Optional[int]) -> Optional[str]:
    if min_occurs < 0:
        return f"min_occurs must not be negative (got {min_occurs})."
    if max_occurs is not None:
        if max_occurs < 1:
            return f"max_occurs must be at least 1 (got {max_occurs})."
        if min_occurs > max_occurs:
            return f"min_occurs {min_occurs} exceeds max_occurs {max_occurs}."
    return None


def _sibling_conflict(siblings: Sequence[Any], identifier: str, match_key: MatchKey) -> Optional[str]:
    for sibling in siblings:
        if sibling.identifier == identifier:
            return f"duplicate child identifier '{identifier}'."
        if sibling.match_key == match_key:
            segment_id, position, value = match_key
            if value is None:
                return (
                    f"children '{sibling.identifier}' and '{identifier}' both match bare segment "
                    f"'{segment_id}'; add a qualifier to tell them apart."
                )
            return (
                f"children '{sibling.identifier}' and '{identifier}' both match "
                f"'{segment_id}' with {segment_id}{position:02d}='{value}'."
            )
    return None


class ConfigBuilder:
    """
    Append-only handle used to declare a configuration tree.

    Every `add_child` call returns the handle of the new child so a hierarchy can
    be written top-down:

        root = config_root("X12")
        isa = root.add_child("ISA", "ISA")
        gs = isa.add_child("GS", "GS")
        st = gs.add_child("ST", "ST", "835", max_occurs=1)
        ...
        config = root.build()

    `build()` returns an immutable ConfigNode snapshot that can be shared freely.
    """

    def __init__(
        self,
        identifier: str,
        segment_id: Optional[str] = None,
        qualifier: Optional[Qualifier] = None,
        min_occurs: int = 0,
        max_occurs: Optional[int] = None,
    ):
        if not identifier:
            raise ConfigurationError("A config node needs a non-empty identifier.")
        problem = _bounds_problem(min_occurs, max_occurs)
        if problem:
            raise ConfigurationError(f"Config node '{identifier}': {problem}")
        self._identifier = identifier
        self._segment_id = segment_id
        self._qualifier = qualifier
        self._min_occurs = min_occurs
        self._max_occurs = max_occurs
        self._children: List[ConfigBuilder] = []

    # A node's own fields are fixed once created; only children may be added.
    @property
    def identifier(self) -> str:
        return self._identifier

    @property
    def segment_id(self) -> Optional[str]:
        return self._segment_id

    @property
    def qualifier(self) -> Optional[Qualifier]:
        return self._qualifier

    @property
    def min_occurs(self) -> int:
        return self._min_occurs

    @property
    def max_occurs(self) -> Optional[int]:
        return self._max_occurs

    @property
    def match_key(self) -> MatchKey:
        if self.qualifier is None:
            return (self.segment_id or "", None, None)
        return (self.segment_id or "", self.qualifier.position, self.qualifier.value)

    @property
    def children(self) -> Tuple["ConfigBuilder", ...]:
        return tuple(self._children)

    def add_child(
        self,
        identifier: str,
        segment_id: str,
        qualifier_value: Optional[str] = None,
        qualifier_position: int = 1,
        min_occurs: int = 0,
        max_occurs: Optional[int] = None,
    ) -> "ConfigBuilder":
        if not segment_id:
            raise ConfigurationError(f"Child '{identifier}' of '{self.identifier}' needs a segment id.")
        qualifier = None
        if qualifier_value is not None:
            if qualifier_position < 1:
                raise ConfigurationError(
                    f"Qualifier position for '{identifier}' must be 1 or greater (got {qualifier_position})."
                )
            qualifier = Qualifier(position=qualifier_position, value=qualifier_value)

        child = ConfigBuilder(identifier, segment_id, qualifier, min_occurs, max_occurs)
        problem = _sibling_conflict(self._children, identifier, child.match_key)
        if problem:
            raise ConfigurationError(f"Config node '{self.identifier}': {problem}")
        self._children.append(child)
        return child

    def build(self) -> ConfigNode:
        return ConfigNode(
            identifier=self.identifier,
            segment_id=self.segment_id,
            qualifier=self.qualifier,
            min_occurs=self.min_occurs,
            max_occurs=self.max_occurs,
            children=tuple(child.build() for child in self._children),
        )


def config_root(identifier: str, segment_id: Optional[str] = None) -> ConfigBuilder:
    """Start a configuration tree. The root loop is instantiated exactly once per parse."""
    return ConfigBuilder(identifier, segment_id)
