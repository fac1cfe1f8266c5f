"""
PageKit Document — Factory and Traversal Tests

Every factory yields a node that passes validate_document, with fresh ids
and variant defaults. Traversal visits nested subsection content.
"""

from pagekit.kernel.document import (
    clamp_width,
    clone_widget,
    collect_ids,
    create_section,
    create_widget,
    empty_document,
    find_widget,
    iter_nodes,
    iter_widgets,
)
from pagekit.kernel.primitives import validate_document
from pagekit.kernel.types import WIDGET_TYPES


def _doc_with(*widgets):
    section = create_section([12])
    section["columns"][0]["widgets"].extend(widgets)
    return {"sections": [section]}


class TestFactories:
    def test_empty_document_is_valid(self):
        assert empty_document() == {"sections": []}
        assert validate_document(empty_document()) == []

    def test_section_columns_follow_widths(self):
        section = create_section([4, 4, 4])
        assert [c["settings"]["width"] for c in section["columns"]] == [4, 4, 4]
        assert section["type"] == "section"
        assert all(c["widgets"] == [] for c in section["columns"])

    def test_section_defaults_to_single_full_column(self):
        section = create_section()
        assert len(section["columns"]) == 1
        assert section["columns"][0]["settings"]["width"] == 12

    def test_section_with_no_widths_has_no_columns(self):
        assert create_section([])["columns"] == []

    def test_every_widget_type_produces_a_valid_document(self):
        for widget_type in sorted(WIDGET_TYPES):
            doc = _doc_with(create_widget(widget_type))
            assert validate_document(doc) == [], widget_type

    def test_widget_ids_are_unique(self):
        ids = {create_widget("text")["id"] for _ in range(50)}
        assert len(ids) == 50

    def test_kpi_defaults(self):
        kpi = create_widget("kpi")
        assert kpi["settings"]["value"] == "0"
        assert kpi["settings"]["format"] == "number"

    def test_subsection_gets_two_half_columns(self):
        sub = create_widget("subsection")
        inner = sub["settings"]["subsectionColumns"]
        assert [c["settings"]["width"] for c in inner] == [6, 6]
        assert inner[0]["id"] != inner[1]["id"]

    def test_clamp_width(self):
        assert clamp_width(0) == 1
        assert clamp_width(13) == 12
        assert clamp_width("7") == 7
        assert clamp_width(None) == 12


class TestCloning:
    def test_clone_regenerates_every_id(self):
        sub = create_widget("subsection")
        sub["settings"]["subsectionColumns"][0]["widgets"].append(create_widget("text"))
        clone = clone_widget(sub)
        assert set(collect_ids(sub)).isdisjoint(collect_ids(clone))
        assert len(collect_ids(clone)) == len(collect_ids(sub))

    def test_clone_is_independent(self):
        heading = create_widget("heading")
        clone = clone_widget(heading)
        clone["settings"]["text"] = "Outro"
        assert heading["settings"]["text"] == "Título"


class TestTraversal:
    def test_iter_widgets_includes_nested(self):
        inner = create_widget("kpi")
        sub = create_widget("subsection")
        sub["settings"]["subsectionColumns"][1]["widgets"].append(inner)
        doc = _doc_with(create_widget("text"), sub)
        types = [w["widgetType"] for w in iter_widgets(doc)]
        assert types == ["text", "subsection", "kpi"]
        assert find_widget(doc, inner["id"]) is inner

    def test_iter_nodes_visits_every_node_once(self):
        sub = create_widget("subsection")
        doc = _doc_with(sub)
        ids = [n["id"] for n in iter_nodes(doc)]
        # section, column, subsection, 2 inner columns
        assert len(ids) == 5
        assert len(set(ids)) == 5

    def test_find_widget_missing(self):
        assert find_widget(empty_document(), "nope") is None
