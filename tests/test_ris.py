from citation_engine.errors import ParseError
from citation_engine.models import Author, Reference
from citation_engine.services.ris import parse_ris, serialize_ris

SAMPLE = """TY  - JOUR
ID  - r1
TI  - Deep learning for
  graphs
AU  - Smith, John A.
AU  - Doe, Jane
A2  - Roe, Richard
PY  - 2020///
JO  - Journal of AI
VL  - 12
IS  - 3
SP  - 45
EP  - 67
DO  - 10.1000/xyz
KW  - graphs
KW  - caching
ER  -
"""


def test_parse_maps_tags_and_folds_continuations():
    result = parse_ris(SAMPLE)
    assert result.ok
    reference = result.references[0]
    assert reference.id == "r1"
    assert reference.type == "journal"
    assert reference.title == "Deep learning for graphs"
    assert reference.year == "2020"
    assert reference.journal_name == "Journal of AI"
    assert reference.pages == "45-67"
    assert reference.issue == "3"
    assert reference.doi == "10.1000/xyz"
    assert [(author.last_name, author.role) for author in reference.authors] == [
        ("Smith", "author"),
        ("Doe", "author"),
        ("Roe", "editor"),
    ]
    assert reference.extras == {"KW": "graphs; caching"}


def test_missing_terminator_is_isolated():
    text = "TY  - BOOK\nTI  - Unfinished\nTY  - BOOK\nTI  - Finished\nER  - \nTY  - GEN\nTI  - Trailing\n"
    result = parse_ris(text)
    assert [reference.title for reference in result.references] == ["Finished"]
    assert result.errors == [
        ParseError(0, "TY before ER: missing ER terminator"),
        ParseError(2, "missing ER terminator"),
    ]


def test_round_trip_preserves_title_year_and_type(journal_reference, book_reference):
    website = Reference(id="w", type="website", title="A page", url="https://example.org", year="2023")
    originals = [journal_reference, book_reference, website]
    output = serialize_ris(originals)
    assert output.errors == []

    parsed = parse_ris(output.text)
    assert parsed.ok
    for original, restored in zip(originals, parsed.references):
        assert restored.id == original.id
        assert restored.title == original.title
        assert restored.year == original.year
        assert restored.type == original.type
        assert restored.authors == original.authors
    assert parsed.references[0].pages == "45-67"
    assert parsed.references[2].url == "https://example.org"


def test_serialized_record_layout(journal_reference):
    lines = serialize_ris([journal_reference]).text.splitlines()
    assert lines[0] == "TY  - JOUR"
    assert lines[-1] == "ER  - "
    assert "AU  - Smith, John A." in lines
    assert "SP  - 45" in lines
    assert "EP  - 67" in lines


def test_roles_and_extras_on_export():
    reference = Reference(
        id="r",
        title="Roles",
        authors=[
            "Smith, John",
            Author(last_name="Roe", first_name="Rita", role="translator"),
            Author(last_name="Poe", first_name="Paul", role="contributor"),
        ],
        extras={"KW": "one; two", "keywords": "dropped", "TI": "clash"},
    )
    output = serialize_ris([reference])
    lines = output.text.splitlines()
    assert "A4  - Roe, Rita" in lines
    assert "A3  - Poe, Paul" in lines
    assert "KW  - one" in lines and "KW  - two" in lines
    assert {error.field for error in output.errors} == {"keywords", "TI"}


def test_uninverted_names_keep_their_form():
    reference = Reference(
        id="who",
        title="Global report",
        authors=[
            Author(full_name="World Health Organization"),
            "สมชาย ใจดี",
            Author(full_name="Acme Labs", role="editor"),
        ],
        year="2021",
    )
    output = serialize_ris([reference])
    assert "AU  - World Health Organization," in output.text.splitlines()

    restored = parse_ris(output.text).references[0]
    assert restored.authors == reference.authors
    assert restored.authors[0].full_name == "World Health Organization"
    assert not restored.authors[0].is_invertible
