"""
Fragment 片段（Fragment）

可复用、带版本的 prompt 文本单元，是组合的最小粒度。

功能：
1. define(): 内联定义（字符串或带元数据的参数）
2. from_file(): 读取 .md 文件，解析 YAML front matter
3. load_dir(): 批量加载目录下的片段
4. compose(): 多个片段合成一个新片段
5. render()/variables(): 简单 `{{name}}` 变量替换
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

from .errors import FragmentLoadError
from .types import FragmentDefinition, FragmentMetadata

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "1.0.0"

_FRONT_MATTER_PATTERN = re.compile(r"^---\s*\n(.*?)\n---\s*\n", re.DOTALL)
_VAR_RE = re.compile(r"\{\{(\w+)\}\}")


class Fragment:
    """
    片段对象（构建后不可变）

    属性：
        id / version / content / metadata / source_file / source_line
    """

    __slots__ = ("_definition",)

    def __init__(self, definition: FragmentDefinition) -> None:
        self._definition = definition

    @property
    def id(self) -> str:
        return self._definition.id

    @property
    def version(self) -> str:
        return self._definition.version

    @property
    def content(self) -> str:
        return self._definition.content

    @property
    def metadata(self) -> FragmentMetadata | None:
        return self._definition.metadata

    @property
    def source_file(self) -> str | None:
        return self._definition.source_file

    @property
    def source_line(self) -> int | None:
        return self._definition.source_line

    def __repr__(self) -> str:
        return f"Fragment(id={self.id!r}, version={self.version!r})"

    # ========== 构造 ==========

    @classmethod
    def define(
        cls,
        fragment_id: str,
        content: str,
        *,
        version: str | None = None,
        description: str | None = None,
        author: str | None = None,
        tags: Iterable[str] | None = None,
        deprecated: bool = False,
        superseded_by: str | None = None,
    ) -> "Fragment":
        """
        内联定义片段。

        只给 content 时不附带元数据；内容首尾空白会被去掉。
        """
        has_metadata = any((description, author, tags, deprecated, superseded_by))
        metadata = None
        if has_metadata:
            metadata = FragmentMetadata(
                description=description,
                author=author,
                tags=tuple(tags or ()),
                deprecated=bool(deprecated),
                superseded_by=superseded_by,
            )
        return cls(
            FragmentDefinition(
                id=fragment_id,
                version=version or DEFAULT_VERSION,
                content=content.strip(),
                metadata=metadata,
            )
        )

    @classmethod
    def from_file(cls, file_path: str | Path) -> "Fragment":
        """
        从文件加载片段（仅支持 .md）。

        id 默认取文件名（去掉 `.fragment` 后缀），front matter 中的 id/version 优先。
        """
        path = Path(file_path).resolve()
        if path.suffix != ".md":
            raise FragmentLoadError(f"Unsupported file extension: {path.suffix}. Use .md files for fragments.")
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise FragmentLoadError(f"Cannot read fragment file {path}: {e}") from e

        body, front = parse_front_matter(text)
        default_id = re.sub(r"\.fragment$", "", path.stem)
        tags = front.get("tags") or ()
        if isinstance(tags, str):
            tags = [tags]
        return cls(
            FragmentDefinition(
                id=str(front.get("id") or default_id),
                version=str(front.get("version") or DEFAULT_VERSION),
                content=body.strip(),
                metadata=FragmentMetadata(
                    description=front.get("description"),
                    author=front.get("author"),
                    tags=tuple(str(t) for t in tags),
                    deprecated=bool(front.get("deprecated", False)),
                    superseded_by=front.get("supersededBy") or front.get("superseded_by"),
                ),
                source_file=str(path),
                source_line=1,
            )
        )

    @classmethod
    def load_dir(cls, dir_path: str | Path, pattern: str = "**/*.md") -> dict[str, "Fragment"]:
        """
        加载目录下所有片段。

        返回:
            {camelCase(id): Fragment}，无法解析的文件记录警告后跳过
        """
        root = Path(dir_path).resolve()
        fragments: dict[str, Fragment] = {}
        for file in sorted(root.glob(pattern)):
            if not file.is_file():
                continue
            try:
                fragment = cls.from_file(file)
            except FragmentLoadError as e:
                logger.warning(f"跳过片段文件 {file}: {e}")
                continue
            fragments[_to_camel_case(fragment.id)] = fragment
        return fragments

    @classmethod
    def compose(cls, fragment_id: str, fragments: Iterable["Fragment"], separator: str = "\n\n") -> "Fragment":
        """合成多个片段（标签取并集，保持首次出现顺序）"""
        parts = list(fragments)
        tags: list[str] = []
        for fragment in parts:
            for tag in fragment.metadata.tags if fragment.metadata else ():
                if tag not in tags:
                    tags.append(tag)
        return cls(
            FragmentDefinition(
                id=fragment_id,
                version=DEFAULT_VERSION,
                content=separator.join(f.content for f in parts),
                metadata=FragmentMetadata(
                    description=f"Composed from: {', '.join(f.id for f in parts)}",
                    tags=tuple(tags),
                ),
            )
        )

    # ========== 查询 ==========

    def to_definition(self) -> FragmentDefinition:
        return self._definition

    def render(self, variables: Mapping[str, Any] | None = None) -> str:
        """替换 `{{name}}` 变量；未提供的变量原样保留"""
        values = variables or {}

        def _repl(m: re.Match[str]) -> str:
            key = m.group(1)
            return str(values[key]) if key in values else m.group(0)

        return _VAR_RE.sub(_repl, self.content)

    def variables(self) -> list[str]:
        """模板变量名（去重，保持出现顺序）"""
        return list(dict.fromkeys(m.group(1) for m in _VAR_RE.finditer(self.content)))

    @property
    def is_deprecated(self) -> bool:
        return bool(self.metadata and self.metadata.deprecated)

    def token_count(self, counter) -> int:
        return counter(self.content)


def parse_front_matter(text: str) -> tuple[str, dict[str, Any]]:
    """
    解析 `---` 包裹的 YAML front matter。

    返回:
        (正文内容, 元数据字典)；无 front matter 或 YAML 非法时返回原文本和空字典
    """
    match = _FRONT_MATTER_PATTERN.match(text)
    if not match:
        return text, {}
    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError:
        return text, {}
    if not isinstance(data, dict):
        return text, {}
    return text[match.end():], data


def _to_camel_case(value: str) -> str:
    return re.sub(r"[-_](.)", lambda m: m.group(1).upper(), value)
