"""
PolicyQA Section-Aware Chunker

Splits extracted policy text into overlapping fixed-size chunks, tagging
each chunk with the heading it falls under. Headings are detected with
line-level heuristics (see ``classify_line``); they are a starting point,
not ground truth, and can be tuned without touching the window logic.
"""

import logging
import re

from pydantic import BaseModel, Field

from policyqa.config import DEFAULT_CHUNK_OVERLAP, DEFAULT_CHUNK_SIZE

logger = logging.getLogger(__name__)

# ============================================
# Heading Heuristics
# ============================================

MAX_TITLE_LENGTH = 120
MAX_TITLE_WORDS = 15
MIN_UPPERCASE_LETTERS = 3
UPPERCASE_RATIO = 0.5
TITLE_CASE_RATIO = 0.5
TITLE_CASE_WORDS = (2, 9)

TABLE_OF_CONTENTS = "TABLE OF CONTENTS"

# Runs of two or more blank lines separate major blocks
MAJOR_BLOCK_PATTERN = re.compile(r"\n(?:[ \t]*\n){2,}")

# "Leave Entitlement    12" -> break before the page-number-like token
PAGE_NUMBER_BREAK = re.compile(r"(\S{1,40})(?:[ ]{2,}|\t+)(?=\d{1,4}(?:\s|$))")

# "...end of sentence.   Next Heading" -> break before the capital
CAPITAL_BREAK = re.compile(r"([a-z.,;:!?)])(?:[ ]{2,}|\t+)(?=[A-Z])")

# 1. / 1.2 / 1.2.3 / a. / B. / IV.
NUMBERED_HEADING = re.compile(r"^(?:\d+(?:\.\d+)*\.?|[A-Za-z]\.|[IVXLC]+\.)\s+\S")

# PART 2 / Chapter IV / SECTION 3.1 / Appendix A
KEYWORD_HEADING = re.compile(
    r"^(?:PART|CHAPTER|SECTION|APPENDIX)\s+[A-Z0-9][\w.\-]*", re.IGNORECASE
)

SENTENCE_ENDINGS = (".", "!", "?")


def _is_mostly_uppercase(line: str) -> bool:
    letters = [c for c in line if c.isalpha()]
    if len(letters) < MIN_UPPERCASE_LETTERS:
        return False
    upper = sum(1 for c in letters if c.isupper())
    return upper / len(letters) > UPPERCASE_RATIO


def _is_numbered_heading(line: str) -> bool:
    return bool(NUMBERED_HEADING.match(line) or KEYWORD_HEADING.match(line))


def _is_probable_title_case(line: str, words: list[str]) -> bool:
    low, high = TITLE_CASE_WORDS
    if not low <= len(words) <= high:
        return False
    if line.endswith(SENTENCE_ENDINGS):
        return False
    capitalized = sum(1 for w in words if w[0].isupper())
    return capitalized / len(words) >= TITLE_CASE_RATIO


def classify_line(line: str) -> bool:
    """Return True if ``line`` looks like a section heading.

    A heading is short, is not the literal table-of-contents banner, has
    fewer than MAX_TITLE_WORDS words, and is mostly uppercase, starts with
    a numbering/keyword pattern, or reads as title case.
    """
    line = line.strip()
    if not line or len(line) >= MAX_TITLE_LENGTH:
        return False
    if line.upper() == TABLE_OF_CONTENTS:
        return False

    words = line.split()
    if len(words) >= MAX_TITLE_WORDS:
        return False

    return (
        _is_mostly_uppercase(line)
        or _is_numbered_heading(line)
        or _is_probable_title_case(line, words)
    )


# ============================================
# Data Models
# ============================================


class DocumentChunk(BaseModel):
    """A chunk of document text and the section it was found under.

    Attributes:
        text: The chunk text.
        chunk_index: Zero-based, contiguous position within the document.
        section_title: Heading in effect for this chunk (document title when
            no heading preceded it).
    """

    text: str = Field(..., description="The text content of the chunk")
    chunk_index: int = Field(..., ge=0, description="Zero-based chunk index")
    section_title: str | None = Field(default=None, description="Inferred section")


# ============================================
# Sliding Window
# ============================================


def _validate_window(chunk_size: int, chunk_overlap: int) -> None:
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if chunk_overlap < 0:
        raise ValueError(f"chunk_overlap must not be negative, got {chunk_overlap}")
    if chunk_overlap >= chunk_size:
        raise ValueError(
            f"chunk_overlap ({chunk_overlap}) must be smaller than "
            f"chunk_size ({chunk_size})"
        )


def split_with_overlap(text: str, chunk_size: int, chunk_overlap: int) -> list[str]:
    """Slide a ``chunk_size`` window over ``text`` in steps of size - overlap.

    When what would remain after the current window is shorter than
    ``chunk_size / 4`` it is folded into the current chunk, so the last
    chunk may be up to 1.25 * chunk_size long.
    """
    _validate_window(chunk_size, chunk_overlap)
    if not text:
        return []

    step = chunk_size - chunk_overlap
    length = len(text)
    chunks: list[str] = []
    start = 0

    while True:
        end = min(start + chunk_size, length)
        if length - end < chunk_size / 4:
            chunks.append(text[start:])
            return chunks
        chunks.append(text[start:end])
        start += step


# ============================================
# Section-Aware Chunker
# ============================================


class SectionAwareChunker:
    """Heading-aware chunker for policy documents.

    Text is split into lines, lines are grouped into sections at each
    detected heading, and every section is cut into overlapping windows
    tagged with the section's heading.

    Attributes:
        chunk_size: Window size in characters (default: 1000).
        chunk_overlap: Characters shared by neighbouring chunks (default: 200).
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    ) -> None:
        _validate_window(chunk_size, chunk_overlap)
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def chunk(self, text: str, document_title: str) -> list[DocumentChunk]:
        """Chunk a document's full text.

        Args:
            text: Extracted document text.
            document_title: Used as the section title until the first heading.

        Returns:
            Chunks in document order with indices 0..N-1.
        """
        if not text or not text.strip():
            return []

        sections: list[tuple[str, str]] = []
        active_title = document_title
        buffer: list[str] = []

        for line in self.split_lines(text):
            if classify_line(line):
                self._flush(buffer, active_title, sections)
                active_title = line
                buffer = [line]
            else:
                buffer.append(line)
        self._flush(buffer, active_title, sections)

        chunks = [
            DocumentChunk(text=chunk_text, chunk_index=idx, section_title=title)
            for idx, (chunk_text, title) in enumerate(sections)
        ]
        logger.debug(
            "Chunked '%s' into %d chunks", document_title, len(chunks)
        )
        return chunks

    @staticmethod
    def split_lines(text: str) -> list[str]:
        """Normalize text and return its trimmed, non-empty lines."""
        text = text.replace("\r\n", "\n").replace("\r", "\n")

        lines: list[str] = []
        for block in MAJOR_BLOCK_PATTERN.split(text):
            block = PAGE_NUMBER_BREAK.sub(r"\1\n", block)
            block = CAPITAL_BREAK.sub(r"\1\n", block)
            lines.extend(line.strip() for line in block.split("\n"))
        return [line for line in lines if line]

    def _flush(
        self,
        buffer: list[str],
        title: str,
        sections: list[tuple[str, str]],
    ) -> None:
        if not buffer:
            return
        section_text = "\n".join(buffer)
        for piece in split_with_overlap(
            section_text, self.chunk_size, self.chunk_overlap
        ):
            sections.append((piece, title))
