"""Parse the think/tool tag protocol embedded in model output.

Wire format:
- ``<<THINK>> ... <</THINK>>`` chain-of-thought, never shown to the user
- ``<<TOOL:NAME>>`` or ``<<TOOL:NAME:parameter>>``; the parameter may span
  lines and runs up to the closing ``>>``
"""

import re
from dataclasses import dataclass, field
from enum import Enum

from urchin.core.logging import get_logger
from urchin.core.types import ToolJob

logger = get_logger("tools.parser")

THINK_PATTERN = re.compile(r"<<THINK>>([\s\S]+?)<</THINK>>")
TOOL_PATTERN = re.compile(r"<<TOOL:(\w+)(?::([\s\S]*?))?>>")
_SEGMENT_PATTERN = re.compile(
    r"(?P<think><<THINK>>(?P<thought>[\s\S]+?)<</THINK>>)"
    r"|(?P<tool><<TOOL:(?P<name>\w+)(?::(?P<param>[\s\S]*?))?>>)"
)


class SegmentKind(Enum):
    THINK = "think"
    TOOL = "tool"
    TEXT = "text"


@dataclass
class Segment:
    """One piece of model output."""

    kind: SegmentKind
    payload: str
    name: str | None = None  # tool name for TOOL segments


@dataclass
class ParsedResponse:
    """Model output split into reasoning, visible text and tool requests."""

    thoughts: list[str] = field(default_factory=list)
    cleaned: str = ""
    tool_jobs: list[ToolJob] = field(default_factory=list)

    @property
    def has_tools(self) -> bool:
        return bool(self.tool_jobs)


class TagParser:
    """Tokenizes model text into think, tool and text segments."""

    @staticmethod
    def segments(text: str) -> list[Segment]:
        result = []
        pos = 0
        for match in _SEGMENT_PATTERN.finditer(text):
            if match.start() > pos:
                chunk = text[pos:match.start()]
                if chunk.strip():
                    result.append(Segment(SegmentKind.TEXT, chunk))
            if match.group("think") is not None:
                result.append(Segment(SegmentKind.THINK, match.group("thought").strip()))
            else:
                result.append(
                    Segment(
                        SegmentKind.TOOL,
                        (match.group("param") or "").strip(),
                        name=match.group("name"),
                    )
                )
            pos = match.end()
        if pos < len(text) and text[pos:].strip():
            result.append(Segment(SegmentKind.TEXT, text[pos:]))
        return result

    @staticmethod
    def parse(text: str) -> ParsedResponse:
        """Extract thoughts and tool jobs; ``cleaned`` is the text minus think blocks."""
        parsed = ParsedResponse(cleaned=THINK_PATTERN.sub("", text).strip())
        for segment in TagParser.segments(text):
            if segment.kind == SegmentKind.THINK:
                parsed.thoughts.append(segment.payload)
            elif segment.kind == SegmentKind.TOOL:
                parsed.tool_jobs.append(ToolJob(name=segment.name or "", parameter=segment.payload))

        if parsed.tool_jobs:
            logger.debug(f"Parsed {len(parsed.tool_jobs)} tool tag(s): {[j.name for j in parsed.tool_jobs]}")
        return parsed
