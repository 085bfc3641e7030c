from marginalia.editor.segmenter import join_paragraphs, segment


def test_splits_on_blank_lines_and_numbers_paragraphs() -> None:
    doc = "First one.\n\nSecond one.\n\nThird."
    paragraphs = segment(doc)

    assert [p.index for p in paragraphs] == [0, 1, 2]
    assert [p.text for p in paragraphs] == ["First one.", "Second one.", "Third."]


def test_blank_spans_are_dropped_without_consuming_an_index() -> None:
    doc = "\n\n  \n\nAlpha\n\n\n\n\n\nBeta  \n\n"
    paragraphs = segment(doc)

    assert [(p.index, p.text) for p in paragraphs] == [(0, "Alpha"), (1, "Beta")]


def test_single_newline_stays_inside_paragraph() -> None:
    paragraphs = segment("line one\nline two\n\nnext")

    assert paragraphs[0].text == "line one\nline two"
    assert len(paragraphs) == 2


def test_offsets_point_at_trimmed_text() -> None:
    doc = "  hello there \n\n\n world  "
    for p in segment(doc):
        assert doc[p.start_offset : p.end_offset] == p.text


def test_empty_document() -> None:
    assert segment("") == []
    assert segment("\n\n\n") == []


def test_segmentation_is_stable_and_idempotent() -> None:
    doc = "I feel stuck today.\n\n\n  Maybe I should try a walk.\n\n\nOr call a friend."
    first = segment(doc)

    assert segment(doc) == first
    again = segment(join_paragraphs(first))
    assert [(p.index, p.text) for p in again] == [(p.index, p.text) for p in first]


def test_fingerprint_ignores_spacing_but_not_words() -> None:
    a, b, c = segment("a  quiet\nmorning\n\na quiet morning\n\na loud morning")

    assert a.fingerprint == b.fingerprint
    assert a.fingerprint != c.fingerprint
