import pytest

from services.ingestion.TextChunker import TextChunker
from shared.models.config import ChunkingConfig


def test_empty_input_yields_no_chunks(chunker):
    assert chunker.chunk("") == []
    assert chunker.chunk("  \n\n\t ") == []


def test_markdown_sections_carry_header(chunker):
    text = "# Intro\nWelcome.\n\n## Requisiti di Sistema\n\nWindows 10 o superiore.\n8 GB RAM.\n"
    chunks = chunker.chunk(text)
    assert [(c.index, c.header_context, c.content) for c in chunks] == [
        (0, "# Intro", "Welcome."),
        (1, "## Requisiti di Sistema", "Windows 10 o superiore.\n8 GB RAM."),
    ]


def test_preamble_has_no_header(chunker):
    chunks = chunker.chunk("Some preface text.\n\n# Title\nBody")
    assert chunks[0].header_context is None
    assert chunks[0].content == "Some preface text."
    assert chunks[1].header_context == "# Title"


def test_section_without_body_produces_no_chunk(chunker):
    chunks = chunker.chunk("# Empty\n\n# Full\ncontent here")
    assert [c.header_context for c in chunks] == ["# Full"]
    assert chunks[0].index == 0


def test_headers_inside_code_fences_are_ignored(chunker):
    text = "# Usage\n```bash\n# not a header\nrun --fast\n```\nDone."
    chunks = chunker.chunk(text)
    assert len(chunks) == 1
    assert chunks[0].header_context == "# Usage"
    assert "# not a header" in chunks[0].content


def test_body_formatting_is_preserved(chunker):
    chunks = chunker.chunk("# List\n\n- one\n  - nested\n\n- two\n")
    assert chunks[0].content == "- one\n  - nested\n\n- two"


def test_oversized_section_is_windowed_without_header(chunker):
    body = " ".join(f"word{i}" for i in range(60))
    chunks = chunker.chunk(f"# Big\n{body}\n\n# Small\nshort", max_chunk_chars=100, overlap_ratio=0.1)
    big = [c for c in chunks if c.header_context is None]
    assert len(big) > 1
    assert all(len(c.content) <= 100 for c in big)
    assert chunks[-1].header_context == "# Small"
    assert [c.index for c in chunks] == list(range(len(chunks)))


def test_windows_overlap(chunker):
    words = " ".join(f"w{i:03d}" for i in range(100))
    chunks = chunker.chunk(words, unstructured_max_chunk_chars=100, overlap_ratio=0.2)
    assert len(chunks) > 2
    for previous, current in zip(chunks, chunks[1:]):
        # the next window starts inside the previous one
        assert current.content.split()[0] in previous.content.split()


def test_unstructured_text_has_no_header(chunker):
    text = "Plain paragraph one.\n\nPlain paragraph two, still no structure."
    chunks = chunker.chunk(text)
    assert len(chunks) == 1
    assert chunks[0].header_context is None
    assert chunks[0].content == text


def test_heuristic_headings(chunker):
    text = (
        "1. INTRODUZIONE\n"
        "Questo manuale descrive il prodotto.\n\n"
        "2. Requisiti di Sistema\n"
        "Sono necessari 8 GB di RAM.\n"
    )
    chunks = chunker.chunk(text)
    assert [c.header_context for c in chunks] == ["1. INTRODUZIONE", "2. Requisiti di Sistema"]
    assert chunks[1].content == "Sono necessari 8 GB di RAM."


def test_all_caps_headings(chunker):
    text = "OVERVIEW\nThe tool indexes text.\n\nINSTALLATION\nRun the installer."
    chunks = chunker.chunk(text)
    assert [c.header_context for c in chunks] == ["OVERVIEW", "INSTALLATION"]


def test_single_heuristic_heading_is_not_structure(chunker):
    text = "SUMMARY\nOnly one section here."
    chunks = chunker.chunk(text)
    assert len(chunks) == 1
    assert chunks[0].header_context is None


def test_sentences_are_not_headings(chunker):
    text = "NOTE THIS.\nThe line above ends with a period.\n\nALSO THIS;\nAnd this one with a semicolon."
    assert all(c.header_context is None for c in chunker.chunk(text))


def test_line_endings_are_normalised(chunker):
    chunks = chunker.chunk("# A\r\nbody a\r\n# B\rbody b")
    assert [(c.header_context, c.content) for c in chunks] == [("# A", "body a"), ("# B", "body b")]


def test_windowing_always_advances(chunker):
    text = "x" * 1050
    chunks = chunker.chunk(text, unstructured_max_chunk_chars=100, overlap_ratio=0.4)
    assert all(len(c.content) <= 100 for c in chunks)
    assert chunks[-1].content.endswith("x")
    assert len(chunks) < 50


def test_invalid_parameters_are_rejected(chunker):
    with pytest.raises(ValueError):
        chunker.chunk("text", max_chunk_chars=0)
    with pytest.raises(ValueError):
        chunker.chunk("text", overlap_ratio=0.5)


def test_config_from_environment(clean_env, helper_config):
    clean_env.setenv("CHUNK_MAX_CHARS", "200")
    clean_env.setenv("CHUNK_OVERLAP_RATIO", "0.2")
    chunker = TextChunker(helper_config=helper_config)
    assert chunker.config == ChunkingConfig(max_chunk_chars=200, unstructured_max_chunk_chars=3000, overlap_ratio=0.2)
