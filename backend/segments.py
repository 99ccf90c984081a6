"""
Mixed-content segmentation and rendering.

A text blob from the model can hold inline ($...$) and block ($$...$$) LaTeX
plus stray Markdown markers. parse_segments() splits it into typed segments in
a single left-to-right pass; render_segment() turns each one into a
RenderedUnit, falling back to the raw notation when typesetting fails.
"""

import html
import logging
import re
from dataclasses import dataclass
from typing import List, Literal, Optional, Protocol

import latex2mathml.converter

from errors import NotationError
from state import BlockMath, InlineMath, Segment, TextSegment

logger = logging.getLogger(__name__)

# Block delimiters are tried first so "$$x$$" never reads as two inline spans.
# The kind comes from the alternative that matched: "$$x$" is inline math "$x".
MATH_PATTERN = re.compile(r"(?P<block>\$\$.+?\$\$)|(?P<inline>\$.+?\$)", re.DOTALL)
FORMATTING_MARKERS = re.compile(r"[*#]")


def _clean_text(text: str) -> TextSegment:
    return TextSegment(FORMATTING_MARKERS.sub("", text))


def parse_segments(text: str) -> List[Segment]:
    """
    Split text into text / inline-math / block-math segments.

    Unterminated delimiters never match and stay in the surrounding text.
    """
    segments: List[Segment] = []
    last_index = 0

    for match in MATH_PATTERN.finditer(text):
        if match.start() > last_index:
            segments.append(_clean_text(text[last_index:match.start()]))

        part = match.group()
        if match.lastgroup == "block":
            segments.append(BlockMath(part[2:-2]))
        else:
            segments.append(InlineMath(part[1:-1]))
        last_index = match.end()

    if last_index < len(text):
        segments.append(_clean_text(text[last_index:]))

    return segments


# ============================================================================
# MATH RENDERER
# ============================================================================

class MathRenderer(Protocol):
    """Typesets one notation string or raises NotationError."""

    def render(self, notation: str, display_mode: bool) -> str:
        ...


class MathMLRenderer:
    """MathRenderer backed by latex2mathml."""

    def render(self, notation: str, display_mode: bool) -> str:
        if not notation.strip():
            raise NotationError("empty notation")
        try:
            return latex2mathml.converter.convert(
                notation, display="block" if display_mode else "inline"
            )
        except Exception as e:
            raise NotationError(f"cannot typeset {notation!r}: {e}") from e


default_renderer = MathMLRenderer()


# ============================================================================
# SEGMENT RENDERER
# ============================================================================

@dataclass(frozen=True)
class RenderedUnit:
    """
    One renderable piece of a document.

    kind is "text" for literal prose, "math" for typeset markup and "literal"
    for notation the renderer rejected.
    """
    kind: Literal["text", "math", "literal"]
    content: str
    display: bool = False

    def to_html(self) -> str:
        if self.kind == "math":
            return self.content
        if self.kind == "literal":
            return f"<code>{html.escape(self.content)}</code>"
        return f'<span class="whitespace-pre-wrap">{html.escape(self.content)}</span>'


def render_segment(segment: Segment, renderer: Optional[MathRenderer] = None) -> RenderedUnit:
    if isinstance(segment, TextSegment):
        return RenderedUnit("text", segment.content)

    renderer = renderer or default_renderer
    display = isinstance(segment, BlockMath)
    try:
        return RenderedUnit("math", renderer.render(segment.notation, display), display)
    except NotationError as e:
        logger.debug(f"[Render] Falling back to literal notation: {e}")
        return RenderedUnit("literal", segment.notation, display)


def render_text(text: str, renderer: Optional[MathRenderer] = None) -> List[RenderedUnit]:
    return [render_segment(segment, renderer) for segment in parse_segments(text)]


def render_html(text: str, renderer: Optional[MathRenderer] = None) -> str:
    body = "".join(unit.to_html() for unit in render_text(text, renderer))
    return f'<div class="math-container">{body}</div>'
