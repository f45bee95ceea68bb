"""
溯源表回归用例（Provenance Table）

验证场景：
1. 只前进的搜索游标：重复文本映射到各自、不重叠的区间
2. 点查询：区间内返回对应来源，区间外返回 None
3. 序列化往返后所有查询结果不变
4. 可视化按相同来源合并连续行
"""

import asyncio
import json

import pytest

from promptier.core.fragment import Fragment
from promptier.core.prompt import build_provenance, prompt
from promptier.core.resolver import resolve_sections
from promptier.core.source_map import ProvenanceMapping, ProvenanceTable
from promptier.core.types import Origin, SectionType


def _compiled(p):
    return p.render_sync()


class TestAssembler:
    def test_repeated_literal_gets_separate_mappings(self):
        compiled = _compiled(prompt("p").custom("a", "Be helpful.").custom("b", "Be helpful.").build())
        table = compiled.meta.provenance
        first, second = table.mappings
        assert compiled.text[first.start : first.end] == "Be helpful."
        assert compiled.text[second.start : second.end] == "Be helpful."
        assert first.end <= second.start
        assert first.origin.section_index == 0
        assert second.origin.section_index == 1

    def test_mapping_positions(self):
        compiled = _compiled(prompt("p").identity("You are helpful.").format("Respond in JSON.").build())
        identity, fmt = compiled.meta.provenance.mappings
        assert (identity.start, identity.end, identity.line, identity.column) == (10, 26, 1, 11)
        assert (fmt.start, fmt.end, fmt.line) == (47, 63, 3)
        assert identity.origin.kind == "literal"

    def test_unlocatable_section_is_skipped(self):
        sections = asyncio.run(resolve_sections(prompt("p").identity("Alpha.").format("Beta.").build().sections, {}))
        table = build_provenance("p", "Beta. only", sections)
        assert len(table) == 1
        assert table.mappings[0].origin.section_type is SectionType.FORMAT
        assert (table.mappings[0].start, table.mappings[0].end) == (0, 5)

    def test_fragment_and_dynamic_origins(self, tmp_path):
        path = tmp_path / "persona.md"
        path.write_text("---\nversion: 1.1.0\n---\nYou are Ada.\n")
        persona = Fragment.from_file(path)
        compiled = _compiled(
            prompt("p").identity(persona).custom("clock", lambda ctx: "It is noon.").build()
        )
        table = compiled.meta.provenance
        fragment_origin = table.origin_at_offset(compiled.text.index("Ada"))
        assert fragment_origin.kind == "fragment"
        assert fragment_origin.fragment_id == "persona"
        assert fragment_origin.fragment_version == "1.1.0"
        assert fragment_origin.file == str(path.resolve())
        assert fragment_origin.file_line == 1

        dynamic_origin = table.origin_at_offset(compiled.text.index("noon"))
        assert dynamic_origin.kind == "dynamic"
        assert dynamic_origin.dynamic_key == "clock"

    def test_positions_from_fragment(self):
        shared = Fragment.define("shared", "Stay on topic.")
        compiled = _compiled(prompt("p").identity("Agent.").constraints(shared).custom("again", shared).build())
        positions = compiled.meta.provenance.positions_from("shared")
        assert len(positions) == 2
        assert positions[0].start < positions[1].start
        assert compiled.meta.provenance.fragment_ids() == ["shared"]


class TestPointQueries:
    def test_every_offset_inside_maps_to_its_origin(self):
        compiled = _compiled(prompt("p").identity("You are helpful.").domain("Facts here.").format("JSON.").build())
        table = compiled.meta.provenance
        covered = set()
        for mapping in table.mappings:
            for offset in range(mapping.start, mapping.end):
                assert table.origin_at_offset(offset) == mapping.origin
                covered.add(offset)
        for offset in range(len(compiled.text) + 1):
            if offset not in covered:
                assert table.origin_at_offset(offset) is None

    def test_origin_at_line_column(self):
        compiled = _compiled(prompt("p").identity("Line one\nLine two").build())
        table = compiled.meta.provenance
        assert table.origin_at(1, 1) is None  # "<identity>" 标签本身
        assert table.origin_at(2, 1).section_type is SectionType.IDENTITY
        assert table.origin_at(3, 5).section_type is SectionType.IDENTITY

    def test_mappings_for_section(self):
        compiled = _compiled(prompt("p").identity("A.").format("B.").build())
        assert len(compiled.meta.provenance.mappings_for_section(SectionType.FORMAT)) == 1


class TestRoundTrip:
    def test_serialization_preserves_queries(self):
        compiled = _compiled(
            prompt("p")
            .identity(Fragment.define("persona", "You are Ada.\nYou help with billing."))
            .context(lambda ctx: "Account: 42")
            .format("JSON.")
            .build()
        )
        table = compiled.meta.provenance
        restored = ProvenanceTable.from_dict(json.loads(json.dumps(table.to_dict())))

        assert restored.mappings == table.mappings
        for offset in range(len(compiled.text) + 1):
            assert restored.origin_at_offset(offset) == table.origin_at_offset(offset)
        for line in range(1, compiled.text.count("\n") + 2):
            for column in range(1, 30):
                assert restored.origin_at(line, column) == table.origin_at(line, column)
        assert restored.visualize() == table.visualize()

    def test_unsupported_version_rejected(self):
        with pytest.raises(ValueError):
            ProvenanceTable.from_dict({"version": 99, "prompt": "p", "mappings": []})


class TestTableConstraints:
    def test_overlap_rejected(self):
        table = ProvenanceTable("p", "abcdefghij")
        table.add_literal_mapping(0, 5, section_type=SectionType.IDENTITY, section_index=0)
        with pytest.raises(ValueError):
            table.add_literal_mapping(4, 8, section_type=SectionType.FORMAT, section_index=1)

    def test_empty_range_rejected(self):
        table = ProvenanceTable("p", "abc")
        with pytest.raises(ValueError):
            table.add_mapping(ProvenanceMapping(start=2, end=2, line=1, column=3, origin=Origin(kind="literal")))

    def test_gaps_allowed(self):
        table = ProvenanceTable("p", "abcdefghij")
        table.add_literal_mapping(0, 3, section_type=SectionType.IDENTITY, section_index=0)
        table.add_generated_mapping(5, 7)
        assert table.origin_at_offset(4) is None
        assert table.origin_at_offset(6).kind == "generated"


class TestVisualize:
    def test_single_lines(self):
        persona = Fragment.define("persona", "You are Ada.")
        compiled = _compiled(prompt("p").identity(persona).format("Reply briefly.").build())
        assert compiled.meta.provenance.visualize() == (
            "Line 1:   [identity] persona@1.0.0\nLine 3:   [format] <literal>"
        )

    def test_line_range(self):
        compiled = _compiled(prompt("p").identity("Line one\nLine two").build())
        assert compiled.meta.provenance.visualize() == "Lines 2-3:   [identity] <literal>"

    def test_empty_table(self):
        assert ProvenanceTable("p").visualize() == "No mappings"
