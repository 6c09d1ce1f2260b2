"""
Daxue Reader - Response Parser
Splits a generated interpretation into its four labeled sections.

The model is asked for four headings in a fixed order:

    ## 一、白话文解释     -> explanation
    ## 二、家庭教育智慧   -> principle
    ## 三、普通家长案例   -> negative_case
    ## 四、智慧家长案例   -> positive_case

The third heading (the "common parent" case) fills negative_case and the
fourth (the "wise parent" case) fills positive_case. Parsing never raises;
a heading that never appears leaves its field empty.
"""

import re
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Pattern, Tuple


@dataclass
class InterpretationResult:
    """The four-part interpretation of one passage."""
    explanation: str = ""
    principle: str = ""
    positive_case: str = ""
    negative_case: str = ""

    def to_dict(self) -> Dict[str, str]:
        """Return the camelCase form used by the browser client."""
        return {
            "explanation": self.explanation,
            "principle": self.principle,
            "positiveCase": self.positive_case,
            "negativeCase": self.negative_case,
        }

    def missing_sections(self) -> List[str]:
        """Names of sections the model did not produce."""
        return [name for name, value in asdict(self).items() if not value]


def _label_pattern(number: str, ordinal: str, label: str) -> Pattern:
    # Optional markdown heading, optional numbering, label, optional colon/space run
    return re.compile(
        rf"(?:##?\s*)?(?:{ordinal}、|{number}[.、])?{label}[：:\s]*",
        re.IGNORECASE,
    )


# Checked in order; the first pattern that matches a line wins
SECTION_PATTERNS: Tuple[Tuple[str, Pattern], ...] = (
    ("explanation", _label_pattern("1", "一", "白话文解释")),
    ("principle", _label_pattern("2", "二", "家庭教育智慧")),
    ("negative_case", _label_pattern("3", "三", "普通家长案例")),
    ("positive_case", _label_pattern("4", "四", "智慧家长案例")),
)

_BOLD_ITALIC_RE = re.compile(r"\*")
_HEADING_MARKER_RE = re.compile(r"^#+\s*", re.MULTILINE)


def match_section_label(line: str) -> Optional[Tuple[str, str]]:
    """
    Check whether a line starts a section.

    Returns:
        (field name, remainder of the line after the label) or None
    """
    for key, pattern in SECTION_PATTERNS:
        if pattern.search(line):
            return key, pattern.sub("", line, count=1)
    return None


def clean_markdown(text: str) -> str:
    """Remove bold/italic markers and leading heading markers."""
    text = _BOLD_ITALIC_RE.sub("", text)
    text = _HEADING_MARKER_RE.sub("", text)
    return text.strip()


def parse_interpretation(text: Optional[str]) -> InterpretationResult:
    """
    Parse generated text into an InterpretationResult.

    Lines before the first recognised heading are discarded. A repeated
    heading replaces whatever the earlier occurrence collected.

    Args:
        text: Raw model output

    Returns:
        InterpretationResult, with empty strings for missing sections
    """
    sections: Dict[str, str] = {key: "" for key, _ in SECTION_PATTERNS}
    if not text:
        return InterpretationResult()

    current_key = ""
    current_content = ""

    for line in text.split("\n"):
        matched = match_section_label(line)
        if matched:
            if current_key:
                sections[current_key] = current_content.strip()
            current_key, remainder = matched
            current_content = remainder + "\n"
        elif current_key:
            current_content += line + "\n"

    if current_key:
        sections[current_key] = current_content.strip()

    return InterpretationResult(**{key: clean_markdown(value) for key, value in sections.items()})
