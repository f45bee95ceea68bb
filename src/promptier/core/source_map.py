"""
溯源表（Provenance Table / Source Map）

把渲染输出中的字符区间映射回来源：片段 id + 版本、section 类型/下标、源文件行号、动态生成器。

约束：
- 映射只追加，不修改；任意两条映射的区间互不重叠（允许有空隙，例如分隔符）
- 行列号为 1 起始；offset <-> 行列换算是线性扫描（典型 prompt 只有几十 KB，足够）
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from .types import Origin, SectionType

SOURCE_MAP_VERSION = 1


@dataclass(frozen=True)
class ProvenanceMapping:
    """输出区间 [start, end) + 起始行列 + 来源"""

    start: int
    end: int
    line: int
    column: int
    origin: Origin

    def contains(self, offset: int) -> bool:
        return self.start <= offset < self.end

    def to_dict(self) -> dict[str, Any]:
        return {
            "output": {"start": self.start, "end": self.end, "line": self.line, "column": self.column},
            "source": self.origin.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProvenanceMapping":
        output = data["output"]
        return cls(
            start=int(output["start"]),
            end=int(output["end"]),
            line=int(output["line"]),
            column=int(output["column"]),
            origin=Origin.from_dict(data["source"]),
        )


class ProvenanceTable:
    """
    溯源表

    text 为渲染后的全文，用于行列计算；序列化时一并保存，保证反序列化后行列查询结果不变。
    """

    def __init__(self, prompt: str, text: str = "") -> None:
        self.prompt = prompt
        self.text = text
        self._mappings: list[ProvenanceMapping] = []

    @property
    def mappings(self) -> tuple[ProvenanceMapping, ...]:
        return tuple(self._mappings)

    def __len__(self) -> int:
        return len(self._mappings)

    # ========== 追加映射 ==========

    def add_mapping(self, mapping: ProvenanceMapping) -> None:
        """追加映射；空区间或与已有区间重叠会抛 ValueError"""
        if mapping.end <= mapping.start:
            raise ValueError(f"empty or inverted mapping range [{mapping.start}, {mapping.end})")
        for existing in self._mappings:
            if mapping.start < existing.end and existing.start < mapping.end:
                raise ValueError(
                    f"mapping [{mapping.start}, {mapping.end}) overlaps [{existing.start}, {existing.end})"
                )
        self._mappings.append(mapping)

    def _add(self, start: int, end: int, origin: Origin) -> ProvenanceMapping:
        line, column = self.line_column(start)
        mapping = ProvenanceMapping(start=start, end=end, line=line, column=column, origin=origin)
        self.add_mapping(mapping)
        return mapping

    def add_fragment_mapping(
        self,
        start: int,
        end: int,
        *,
        fragment_id: str,
        fragment_version: str,
        section_type: SectionType,
        section_index: int,
        source_file: str | None = None,
        source_line: int | None = None,
    ) -> ProvenanceMapping:
        return self._add(
            start,
            end,
            Origin(
                kind="fragment",
                fragment_id=fragment_id,
                fragment_version=fragment_version,
                section_type=section_type,
                section_index=section_index,
                file=source_file,
                file_line=source_line,
            ),
        )

    def add_dynamic_mapping(
        self, start: int, end: int, *, section_type: SectionType, section_index: int, dynamic_key: str | None = None
    ) -> ProvenanceMapping:
        return self._add(
            start,
            end,
            Origin(kind="dynamic", section_type=section_type, section_index=section_index, dynamic_key=dynamic_key),
        )

    def add_literal_mapping(self, start: int, end: int, *, section_type: SectionType, section_index: int) -> ProvenanceMapping:
        return self._add(start, end, Origin(kind="literal", section_type=section_type, section_index=section_index))

    def add_generated_mapping(
        self, start: int, end: int, *, section_type: SectionType | None = None, section_index: int | None = None
    ) -> ProvenanceMapping:
        """formatter 插入的装饰文本（标签、标题、分隔符）"""
        return self._add(start, end, Origin(kind="generated", section_type=section_type, section_index=section_index))

    # ========== 查询 ==========

    def origin_at_offset(self, offset: int) -> Origin | None:
        for mapping in self._mappings:
            if mapping.contains(offset):
                return mapping.origin
        return None

    def origin_at(self, line: int, column: int) -> Origin | None:
        """按 1 起始的行列查询来源"""
        return self.origin_at_offset(self.offset_of(line, column))

    def positions_from(self, fragment_id: str) -> list[ProvenanceMapping]:
        """引用指定片段的全部映射（按追加顺序）"""
        return [m for m in self._mappings if m.origin.fragment_id == fragment_id]

    def mappings_for_section(self, section_type: SectionType) -> list[ProvenanceMapping]:
        return [m for m in self._mappings if m.origin.section_type is section_type]

    def fragment_ids(self) -> list[str]:
        return list(dict.fromkeys(m.origin.fragment_id for m in self._mappings if m.origin.fragment_id))

    # ========== 行列换算（线性扫描） ==========

    def line_column(self, offset: int) -> tuple[int, int]:
        offset = max(0, min(offset, len(self.text)))
        line = self.text.count("\n", 0, offset) + 1
        last_newline = self.text.rfind("\n", 0, offset)
        return line, offset - last_newline

    def offset_of(self, line: int, column: int) -> int:
        offset = 0
        for _ in range(line - 1):
            newline = self.text.find("\n", offset)
            if newline == -1:
                offset = len(self.text)
                break
            offset = newline + 1
        return offset + column - 1

    def line_of(self, offset: int) -> int:
        return self.line_column(offset)[0]

    # ========== 序列化 ==========

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": SOURCE_MAP_VERSION,
            "prompt": self.prompt,
            "mappings": [m.to_dict() for m in self._mappings],
            "text": self.text,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProvenanceTable":
        version = data.get("version", SOURCE_MAP_VERSION)
        if version != SOURCE_MAP_VERSION:
            raise ValueError(f"Unsupported source map version: {version}")
        table = cls(data["prompt"], data.get("text") or "")
        for mapping in data.get("mappings", []):
            table.add_mapping(ProvenanceMapping.from_dict(mapping))
        return table

    # ========== 可视化 ==========

    def visualize(self) -> str:
        """
        逐行展示来源。

        相邻输出行且来源描述相同的映射合并为一个区间：
            Lines 1-3:   [identity] persona@1.0.0
            Line 5:   [context] <dynamic>
        """
        if not self._mappings:
            return "No mappings"

        ranges: list[list[Any]] = []
        for mapping in sorted(self._mappings, key=lambda m: m.start):
            start_line = mapping.line
            end_line = self.line_of(mapping.end - 1) if self.text else start_line
            description = mapping.origin.describe()
            if ranges and ranges[-1][2] == description and start_line <= ranges[-1][1] + 1:
                ranges[-1][1] = max(ranges[-1][1], end_line)
            else:
                ranges.append([start_line, end_line, description])

        lines = []
        for start_line, end_line, description in ranges:
            label = f"Line {start_line}" if start_line == end_line else f"Lines {start_line}-{end_line}"
            lines.append(f"{label}:   {description}")
        return "\n".join(lines)
