import pytest

from cdm import Document, Loop, Segment
from x12_errors import ElementIndexError
from x12_tokenizer import Delimiters

pytestmark = pytest.mark.unit


def seg(text: str, line_number: int = 1) -> Segment:
    return Segment(segment_id=text.split("*")[0], elements=text.split("*"), line_number=line_number,
                   sub_element_separator=":")


@pytest.fixture
def claim_tree() -> Loop:
    """2000 -> two 2100 claims, the first with a nested 2110 service line."""
    service = Loop(loop_id="2110", children=[seg("SVC*HC:99213*100", 4), seg("DTM*472*20240101", 5)])
    first = Loop(loop_id="2100", children=[seg("CLP*A*1*100", 2), seg("CAS*CO*45*10", 3), service])
    second = Loop(loop_id="2100", occurrence=1, children=[seg("CLP*B*1*50", 6)])
    return Loop(loop_id="2000", children=[seg("LX*1", 1), first, second])


def test_get_element_is_zero_based_with_tag_at_zero():
    segment = seg("CLP*A*1*100")
    assert segment.get_element(0) == "CLP"
    assert segment.get_element(3) == "100"
    assert len(segment) == 4

def test_get_element_beyond_length_raises():
    segment = seg("CLP*A*1*100")
    with pytest.raises(ElementIndexError) as exc_info:
        segment.get_element(4)
    assert exc_info.value.index == 4
    assert exc_info.value.length == 4
    assert "CLP" in str(exc_info.value)

def test_element_index_error_is_an_index_error():
    with pytest.raises(IndexError):
        seg("LX*1").get_element(-1)

def test_present_but_empty_element_is_returned_as_empty_string():
    segment = seg("NM1*QC*1*DOE*JANE****MI*SUB001")
    assert segment.get_element(5) == ""
    assert segment.get_element(9) == "SUB001"

def test_get_sub_elements():
    segment = seg("SVC*HC:99213:25*100")
    assert segment.get_sub_elements(1) == ["HC", "99213", "25"]
    assert segment.get_sub_elements(2) == ["100"]
    with pytest.raises(ElementIndexError):
        segment.get_sub_elements(3)

def test_get_sub_elements_without_separator():
    segment = Segment(segment_id="SVC", elements=["SVC", "HC:1"], line_number=1)
    assert segment.get_sub_elements(1) == ["HC:1"]

def test_loop_iterates_direct_children_in_order(claim_tree: Loop):
    children = list(claim_tree)
    assert len(claim_tree) == 3
    assert isinstance(children[0], Segment) and children[0].segment_id == "LX"
    assert [c.occurrence for c in children[1:]] == [0, 1]

def test_direct_child_helpers(claim_tree: Loop):
    assert [s.segment_id for s in claim_tree.segments] == ["LX"]
    assert len(claim_tree.loops) == 2
    assert claim_tree.get_loop("2100").occurrence == 0
    assert len(claim_tree.get_loops("2100")) == 2
    # Direct helpers do not descend.
    assert claim_tree.get_loop("2110") is None
    assert claim_tree.get_segment("CLP") is None
    assert claim_tree.get_segments("CLP") == []
    assert claim_tree.get_loop("2100").get_segment("CAS").get_element(2) == "45"

def test_find_segment_searches_whole_subtree_in_document_order(claim_tree: Loop):
    assert [s.line_number for s in claim_tree.find_segment("CLP")] == [2, 6]
    assert [s.line_number for s in claim_tree.find_segment("DTM")] == [5]
    assert claim_tree.find_segment("NM1") == []

def test_find_loop_includes_self_and_nested_loops(claim_tree: Loop):
    assert claim_tree.find_loop("2000") == [claim_tree]
    assert [loop.occurrence for loop in claim_tree.find_loop("2100")] == [0, 1]
    assert [loop.children[0].segment_id for loop in claim_tree.find_loop("2110")] == ["SVC"]

def test_walk_is_pre_order(claim_tree: Loop):
    order = [n.loop_id if isinstance(n, Loop) else n.segment_id for n in claim_tree.walk()]
    assert order == ["2000", "LX", "2100", "CLP", "CAS", "2110", "SVC", "DTM", "2100", "CLP"]

def test_deeply_nested_tree_is_walked_without_recursion():
    loop = Loop(loop_id="L0", children=[seg("X*0")])
    root = loop
    for depth in range(1, 3000):
        child = Loop(loop_id=f"L{depth}", children=[seg(f"X*{depth}")])
        loop.children.append(child)
        loop = child
    assert len(root.find_segment("X")) == 3000
    assert root.find_loop("L2999")[0].children[0].get_element(1) == "2999"

def test_document_queries_delegate_to_root(claim_tree: Loop):
    document = Document(
        root=Loop(loop_id="X12", children=[claim_tree]),
        delimiters=Delimiters(element_separator="*", sub_element_separator=":", segment_terminator="~"),
        segment_count=6,
    )
    assert len(document.find_segment("CLP")) == 2
    assert len(document.find_loop("2100")) == 2
    assert document.unmatched == []

def test_document_json_reloads(claim_tree: Loop):
    document = Document(
        root=claim_tree,
        delimiters=Delimiters(element_separator="*", sub_element_separator=":", segment_terminator="~"),
    )
    reloaded = Document.model_validate_json(document.model_dump_json())
    assert [s.elements for s in reloaded.find_segment("CLP")] == [["CLP", "A", "1", "100"], ["CLP", "B", "1", "50"]]
    assert isinstance(reloaded.find_loop("2110")[0], Loop)
