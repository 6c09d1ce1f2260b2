"""
Daxue Reader - Content Loader
Groups the flat passage dataset into the ordered chapters of 大学.

The dataset is a JSON list of {id, content, section} records. Sections are
mapped onto a fixed chapter table (one 经 chapter, ten 传 chapters and the
朱子补传 supplement). Chapters that receive no passages are dropped.
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from core.logger import log_info, log_warning


@dataclass(frozen=True)
class PassageRecord:
    """One addressable unit of source text."""
    id: int
    content: str
    section: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PassageRecord":
        return cls(
            id=int(data["id"]),
            content=str(data.get("content", "")),
            section=str(data.get("section", "")),
        )


@dataclass
class Chapter:
    """A named, ordered grouping of passages."""
    key: str
    name: str
    subtitle: str
    category: str              # 经 or 传
    is_sub_entry: bool = False
    parent_key: Optional[str] = None
    paragraphs: List[PassageRecord] = field(default_factory=list)

    def get_paragraph(self, paragraph_id: int) -> Optional[PassageRecord]:
        """Get a paragraph by its passage id."""
        for paragraph in self.paragraphs:
            if paragraph.id == paragraph_id:
                return paragraph
        return None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "key": self.key,
            "name": self.name,
            "subtitle": self.subtitle,
            "category": self.category,
            "isSubEntry": self.is_sub_entry,
            "paragraphs": [
                {"id": p.id, "content": p.content, "section": p.section}
                for p in self.paragraphs
            ],
        }
        if self.parent_key:
            data["parentKey"] = self.parent_key
        return data


# (key, subtitle, category, is_sub_entry, parent_key) in reading order
CHAPTER_TABLE = (
    ("经一章", "三纲领（明明德、亲民、止于至善）、八条目（格致诚正、修齐治平）", "经", False, None),
    ("传一章", "释明明德", "传", False, None),
    ("传二章", "释新民", "传", False, None),
    ("传三章", "释止于至善", "传", False, None),
    ("传四章", "释本末", "传", False, None),
    ("传五章", "释格物致知", "传", False, None),
    ("朱子补传", "补格物致知", "传", True, "传五章"),
    ("传六章", "释诚意", "传", False, None),
    ("传七章", "释正心修身", "传", False, None),
    ("传八章", "释修身齐家", "传", False, None),
    ("传九章", "释齐家治国", "传", False, None),
    ("传十章", "释治国平天下", "传", False, None),
)

_ORDINALS = ("一", "二", "三", "四", "五", "六", "七", "八", "九", "十")

# Dataset section label -> chapter key
SECTION_TO_CHAPTER: Dict[str, str] = {
    f"传十章 - 第{ordinal}章": f"传{ordinal}章" for ordinal in _ORDINALS
}

# Display cleaning: banner, bracketed headings, parenthesised notes, chapter headings
_CLEAN_PATTERNS = (
    re.compile(r"《大学章句》全文\n?"),
    re.compile(r"【[^】]+】\n?"),
    re.compile(r"（[^）]+）\n?"),
    re.compile(r"第[一二三四五六七八九十]+章\s*[^\n]*\n?"),
)


def map_section_to_chapter(section: str) -> str:
    """
    Map a dataset section label to a chapter key.

    Unknown sections map to themselves; they are dropped later
    unless they happen to name a chapter.
    """
    return SECTION_TO_CHAPTER.get(section, section)


def clean_content(content: str) -> str:
    """Strip editorial headings and notes from passage text for display."""
    for pattern in _CLEAN_PATTERNS:
        content = pattern.sub("", content)
    return content.strip()


def build_chapters(records: Iterable[PassageRecord]) -> List[Chapter]:
    """
    Group passages into chapters using the fixed chapter table.

    Args:
        records: Passages in dataset order

    Returns:
        Non-empty chapters in reading order
    """
    chapters: Dict[str, Chapter] = {}
    for key, subtitle, category, is_sub_entry, parent_key in CHAPTER_TABLE:
        chapters[key] = Chapter(
            key=key,
            name=key,
            subtitle=subtitle,
            category=category,
            is_sub_entry=is_sub_entry,
            parent_key=parent_key,
        )

    for record in records:
        chapter = chapters.get(map_section_to_chapter(record.section))
        if chapter is not None:
            chapter.paragraphs.append(record)

    return [chapter for chapter in chapters.values() if chapter.paragraphs]


def parse_records(data: Any) -> List[PassageRecord]:
    """Convert raw JSON data into passage records, skipping malformed entries."""
    if not isinstance(data, list):
        raise ValueError("Passage dataset must be a JSON list")

    records = []
    for item in data:
        try:
            records.append(PassageRecord.from_dict(item))
        except (KeyError, TypeError, ValueError) as e:
            log_warning(f"Skipping malformed passage record: {e}")
    return records


def load_chapters(path: Path) -> List[Chapter]:
    """
    Load the passage dataset from disk and build the chapter list.

    Args:
        path: Path to the JSON dataset (data.json)

    Returns:
        Non-empty chapters in reading order
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    chapters = build_chapters(parse_records(data))
    log_info(f"Loaded {len(chapters)} chapters from {path.name}", prefix="📚")
    return chapters


def find_chapter(chapters: List[Chapter], key: str) -> Optional[Chapter]:
    """Get a chapter by key."""
    for chapter in chapters:
        if chapter.key == key:
            return chapter
    return None
