"""Structure-aware text chunking.

Rules, in order:

1. Markdown headers (``#`` to ``######`` followed by text) outside fenced
   code blocks split the text into sections.
2. Without markdown headers, heuristic headings are tried: short lines not
   ending in punctuation that are either numbered ("2.1 Setup") or ALL CAPS,
   and that are followed by a body. This structure is accepted only if it
   yields at least two sections.
3. A section whose body fits max_chunk_chars becomes one chunk carrying its
   header line as header_context. Oversized bodies and text before the first
   header are cut into overlapping windows without header_context.
4. Text with no detectable structure is cut into windows of
   unstructured_max_chunk_chars, again without header_context.
"""

import re

from shared.helper.HelperConfig import HelperConfig
from shared.models.config import ChunkingConfig
from shared.models.document import ChunkDraft

_MD_HEADER = re.compile(r"^#{1,6}\s+\S")
_FENCE = re.compile(r"^\s*(```|~~~)")
_NUMBERED_HEADING = re.compile(r"^\d+(\.\d+)*\.?\s+[^\W\d_]")
_SENTENCE_END = re.compile(r"[.!?]\s")
_MAX_HEADING_CHARS = 80
_HEADING_FORBIDDEN_ENDINGS = (".", "!", "?", ",", ";")


class Section:
    __slots__ = ("header", "lines")

    def __init__(self, header: str | None, lines: list[str]):
        self.header = header
        self.lines = lines

    def body(self) -> str:
        """Body text without leading and trailing blank lines."""
        lines = list(self.lines)
        while lines and not lines[0].strip():
            lines.pop(0)
        while lines and not lines[-1].strip():
            lines.pop()
        return "\n".join(lines)


class TextChunker:
    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self.config = ChunkingConfig(
            max_chunk_chars=helper_config.get_int_val("CHUNK_MAX_CHARS", default=1000, min_val=1),
            unstructured_max_chunk_chars=helper_config.get_int_val("CHUNK_UNSTRUCTURED_MAX_CHARS", default=3000, min_val=1),
            overlap_ratio=helper_config.get_float_val("CHUNK_OVERLAP_RATIO", default=0.1, min_val=0.0),
        )

    ##########################################
    ################# CHUNK ##################
    ##########################################

    def chunk(
        self,
        raw_text: str,
        max_chunk_chars: int | None = None,
        overlap_ratio: float | None = None,
        unstructured_max_chunk_chars: int | None = None,
    ) -> list[ChunkDraft]:
        """Split normalised document text into ordered chunk drafts.

        Args:
            raw_text (str): The document text.
            max_chunk_chars (int | None): Limit for structured section bodies.
            overlap_ratio (float | None): Share of a window repeated in the next one.
            unstructured_max_chunk_chars (int | None): Window size when no structure was found.

        Returns:
            list[ChunkDraft]: Chunks indexed 0..n-1 in document order; empty for blank input.

        Raises:
            ValueError: If a limit is not positive or overlap_ratio is outside [0, 0.5).
        """
        config = ChunkingConfig(
            max_chunk_chars=max_chunk_chars if max_chunk_chars is not None else self.config.max_chunk_chars,
            unstructured_max_chunk_chars=(
                unstructured_max_chunk_chars
                if unstructured_max_chunk_chars is not None
                else self.config.unstructured_max_chunk_chars
            ),
            overlap_ratio=overlap_ratio if overlap_ratio is not None else self.config.overlap_ratio,
        )
        return self.chunk_with_config(raw_text, config)

    def chunk_with_config(self, raw_text: str, config: ChunkingConfig) -> list[ChunkDraft]:
        text = raw_text.replace("\r\n", "\n").replace("\r", "\n")
        if not text.strip():
            return []

        lines = text.split("\n")
        mode = "markdown"
        sections = self._split_markdown(lines)
        if sections is None:
            mode = "heuristic"
            sections = self._split_heuristic(lines)

        pieces: list[tuple[str | None, str]] = []
        if sections is None:
            mode = "unstructured"
            pieces = [(None, w) for w in self._windows(text, config.unstructured_max_chunk_chars, config.overlap_ratio)]
        else:
            for section in sections:
                body = section.body()
                if not body.strip():
                    continue
                if section.header is not None and len(body) <= config.max_chunk_chars:
                    pieces.append((section.header.rstrip(), body))
                else:
                    pieces.extend((None, w) for w in self._windows(body, config.max_chunk_chars, config.overlap_ratio))

        drafts = [ChunkDraft(index=i, header_context=header, content=content) for i, (header, content) in enumerate(pieces)]
        self.logging.debug("Chunked %d chars into %d chunk(s) (%s)", len(text), len(drafts), mode)
        return drafts

    ##########################################
    ############### STRUCTURE ################
    ##########################################

    def _split_markdown(self, lines: list[str]) -> list[Section] | None:
        positions = []
        fence: str | None = None
        for i, line in enumerate(lines):
            match = _FENCE.match(line)
            if match:
                if fence is None:
                    fence = match.group(1)
                elif match.group(1) == fence:
                    fence = None
                continue
            if fence is None and _MD_HEADER.match(line):
                positions.append(i)
        if not positions:
            return None
        return self._sections_at(lines, positions)

    def _split_heuristic(self, lines: list[str]) -> list[Section] | None:
        positions = [i for i in range(len(lines)) if self._is_heading(lines, i)]
        if not positions:
            return None
        sections = [s for s in self._sections_at(lines, positions) if s.header is not None or s.body().strip()]
        if len(sections) < 2:
            return None
        return sections

    @staticmethod
    def _sections_at(lines: list[str], positions: list[int]) -> list[Section]:
        sections = [Section(None, lines[: positions[0]])]
        for n, start in enumerate(positions):
            end = positions[n + 1] if n + 1 < len(positions) else len(lines)
            sections.append(Section(lines[start], lines[start + 1 : end]))
        return sections

    @staticmethod
    def _looks_like_heading(line: str) -> bool:
        line = line.strip()
        if not line or len(line) > _MAX_HEADING_CHARS or line.endswith(_HEADING_FORBIDDEN_ENDINGS):
            return False
        if _NUMBERED_HEADING.match(line):
            return True
        letters = [c for c in line if c.isalpha()]
        return len(letters) >= 3 and all(c.isupper() for c in letters)

    def _is_heading(self, lines: list[str], i: int) -> bool:
        """A heading-shaped line counts only if a non-heading body line follows it."""
        if not self._looks_like_heading(lines[i]):
            return False
        for following in lines[i + 1 :]:
            if following.strip():
                return not self._looks_like_heading(following)
        return False

    ##########################################
    ################ WINDOWS #################
    ##########################################

    def _windows(self, text: str, limit: int, overlap_ratio: float) -> list[str]:
        """Cut text into windows of at most `limit` chars with overlap."""
        text = text.strip()
        if len(text) <= limit:
            return [text] if text else []

        overlap = int(limit * overlap_ratio)
        windows = []
        start = 0
        while start < len(text):
            end = min(start + limit, len(text))
            if end < len(text):
                end = self._find_cut(text, start, end)
            window = text[start:end].strip()
            if window:
                windows.append(window)
            if end >= len(text):
                break
            start = max(end - overlap, start + 1)
        return windows

    @staticmethod
    def _find_cut(text: str, start: int, end: int) -> int:
        """Best cut position in text[start:end], searched in the second half only."""
        window = text[start:end]
        floor = len(window) // 2

        pos = window.rfind("\n\n")
        if pos >= floor:
            return start + pos + 2
        pos = window.rfind("\n")
        if pos >= floor:
            return start + pos + 1
        sentence_ends = [m.start() for m in _SENTENCE_END.finditer(window) if m.start() >= floor]
        if sentence_ends:
            return start + sentence_ends[-1] + 1
        pos = window.rfind(" ")
        if pos >= floor:
            return start + pos + 1
        return end
