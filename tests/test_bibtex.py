from citation_engine.errors import ParseError
from citation_engine.models import Author, Reference
from citation_engine.services.bibtex import escape, parse_bibtex, serialize_bibtex

VALID_AND_BROKEN = """
@article{broken2021,
  author = {Doe, Jane},
  title = {Broken {Entry},
  year = {2021}

@article{good2020,
  author = {Smith, John},
  title = {Good Entry},
  year = {2020}
}
"""


def test_malformed_entry_does_not_affect_its_sibling():
    result = parse_bibtex(VALID_AND_BROKEN)
    assert [reference.id for reference in result.references] == ["good2020"]
    assert result.errors == [ParseError(0, "unbalanced braces")]
    assert not result.ok


def test_unbalanced_entry_at_end_of_file():
    text = "@book{fine, title = {Fine}, year = 2001}\n@book{open, title = {Never closed}"
    result = parse_bibtex(text)
    assert [reference.id for reference in result.references] == ["fine"]
    assert result.errors == [ParseError(1, "unbalanced braces")]


def test_structural_errors_are_reported_per_entry():
    text = """
@article{, title = {No key}}
@article{dup1, title = {One}, title = {Two}}
@article{nofield, title {Missing equals}}
@article{twice, title = {First}}
@article{twice, title = {Second}}
@article{after, title = {Trailing}}}
"""
    result = parse_bibtex(text)
    reasons = {error.index: error.reason for error in result.errors}
    assert reasons[0] == "missing citation key"
    assert reasons[1] == "duplicate field 'title'"
    assert reasons[2].startswith("field without '='")
    assert reasons[4] == "duplicate citation key 'twice'"
    assert reasons[5] == "stray closing brace after entry"
    assert [reference.id for reference in result.references] == ["twice"]
    assert result.references[0].title == "First"


def test_fields_are_mapped_and_cleaned():
    text = r"""
@string{jai = "Journal of AI"}
@comment{ignored @misc{not, an = {entry}} }
@inproceedings{key1,
  author = {M{\"u}ller, Hans and {World Health Organization} and others},
  editor = {Roe, Richard},
  title = {{Caf{\'e}} culture \& {DNA} in 1 &amp; 2},
  booktitle = jai,
  pages = {45--67},
  number = {3},
  note = {A note},
  keywords = {graphs, caching},
  url = {https://example.org/a_b~c}
}
"""
    result = parse_bibtex(text)
    assert result.ok
    reference = result.references[0]
    assert reference.id == "key1"
    assert reference.type == "conference"
    assert reference.title == "Café culture & DNA in 1 & 2"
    assert reference.journal_name == "Journal of AI"
    assert reference.pages == "45-67"
    assert reference.issue == "3"
    assert reference.notes == "A note"
    assert reference.url == "https://example.org/a_b~c"
    assert reference.extras == {"keywords": "graphs, caching"}

    authors = [author for author in reference.authors if author.role == "author"]
    (roe,) = [author for author in reference.authors if author.role == "editor"]
    muller, who = authors
    assert (muller.last_name, muller.first_name) == ("Müller", "Hans")
    assert who.full_name == "World Health Organization"
    assert not who.is_invertible
    assert roe.last_name == "Roe"


def test_unknown_entry_type_maps_to_other():
    result = parse_bibtex("@patent{p1, title = {Widget}, year = {1999}}")
    assert result.references[0].type == "other"


def test_round_trip_preserves_representable_fields(journal_reference, book_reference):
    thesis = Reference(
        id="t",
        type="thesis",
        title="On 100% of cases_and_more",
        authors=["Lee, Kim"],
        year="2015",
        publisher="Example University",
    )
    originals = [journal_reference, book_reference, thesis]
    output = serialize_bibtex(originals)
    assert output.errors == []

    parsed = parse_bibtex(output.text)
    assert parsed.ok
    for original, restored in zip(originals, parsed.references):
        assert restored.title == original.title
        assert restored.authors == original.authors
        assert restored.year == original.year
        assert restored.type == original.type
        assert restored.publisher == original.publisher
        assert restored.journal_name == original.journal_name
        assert restored.pages == original.pages
        assert restored.doi == original.doi
    assert [reference.id for reference in parsed.references] == ["Smith2020", "Brown2019", "Lee2015"]


def test_serialized_entry_layout(book_reference):
    text = serialize_bibtex([book_reference]).text
    assert text.startswith("@book{Brown2019,\n  author = {Brown, Alice},\n  title = {{the great book}},")
    assert "  edition = {2}" in text
    assert text.endswith("}\n")


def test_colliding_keys_get_letters():
    references = [
        Reference(title="One", authors=["Smith, John"], year="2020"),
        Reference(title="Two", authors=["Smith, Jane"], year="2020"),
        Reference(title="Three", authors=["Smith, Joe"], year="2020", year_suffix="a"),
    ]
    text = serialize_bibtex(references).text
    assert "@misc{Smith2020b," in text
    assert "@misc{Smith2020c," in text
    assert "@misc{Smith2020a," in text


def test_unrepresentable_fields_are_reported():
    reference = Reference(
        id="r1",
        title="Translated",
        authors=["Smith, John", Author(last_name="Roe", first_name="Rita", role="translator")],
        extras={"keywords": "kept", "bad key": "dropped", "title": "clash"},
    )
    output = serialize_bibtex([reference])
    assert {(error.reference_id, error.field) for error in output.errors} == {
        ("r1", "translator"),
        ("r1", "bad key"),
        ("r1", "title"),
    }
    assert "keywords = {kept}" in output.text
    assert "Roe" not in output.text


def test_escape():
    assert escape("50% & $5 #1 a_b {x}") == r"50\% \& \$5 \#1 a\_b \{x\}"


def test_tilde_caret_and_backslash_survive_a_round_trip():
    reference = Reference(
        id="r",
        title=r"Approx ~5 cases of x^2 in C:\temp",
        authors=["Smith, John"],
        year="2020",
        url="https://example.org/~user",
    )
    output = serialize_bibtex([reference])
    assert output.errors == []
    assert r"\textasciitilde{}5" in output.text

    restored = parse_bibtex(output.text).references[0]
    assert restored.title == reference.title
    assert restored.url == reference.url


def test_text_commands_are_decoded_on_import():
    result = parse_bibtex(r"@misc{k, title = {a\textasciitilde{}b \textasciicircum{} c\textbackslash{}d}}")
    assert result.references[0].title == r"a~b ^ c\d"
