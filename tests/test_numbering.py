import itertools

from citation_engine.disambiguation import assign_year_suffixes
from citation_engine.models import Reference
from citation_engine.numbering import alphabetical_key, assign_numbers, sort_references


def make_references() -> list[Reference]:
    return [
        Reference(id="zed", title="Zeta", authors=["Zed, Zoe"], year="2019"),
        Reference(id="adams21", title="Later work", authors=["Adams, Amy"], year="2021"),
        Reference(id="adams20", title="Earlier work", authors=["Adams, Amy"], year="2020", sort_order=99),
        Reference(id="untitled", title="Anonymous pamphlet", year="2018"),
    ]


def test_author_year_order_is_non_decreasing_for_every_permutation():
    expected = ["adams20", "adams21", "untitled", "zed"]
    for permutation in itertools.permutations(make_references()):
        ordered = sort_references(list(permutation), "apa7")
        assert [reference.id for reference in ordered] == expected
        keys = [alphabetical_key(reference) for reference in ordered]
        assert keys == sorted(keys)


def test_sort_order_never_affects_ordering():
    references = make_references()
    shuffled = [reference.model_copy(update={"sort_order": -index}) for index, reference in enumerate(references)]
    assert [r.id for r in sort_references(shuffled, "harvard")] == [r.id for r in sort_references(references, "harvard")]


def test_citation_order_numbers_are_a_permutation():
    references = make_references()
    ordered = sort_references(references, "ieee", citation_order=["zed", "adams20", "zed", "missing"])
    numbers = assign_numbers(ordered, "ieee")
    assert [reference.id for reference in ordered][:2] == ["zed", "adams20"]
    assert numbers["zed"] == 1
    assert numbers["adams20"] == 2
    assert sorted(numbers.values()) == list(range(1, len(references) + 1))


def test_uncited_references_follow_alphabetically():
    ordered = sort_references(make_references(), "vancouver", citation_order=["untitled"])
    assert [reference.id for reference in ordered] == ["untitled", "adams20", "adams21", "zed"]


def test_unnumbered_styles_assign_no_numbers():
    ordered = sort_references(make_references(), "mla9")
    assert assign_numbers(ordered, "mla9") == {}


def test_suffixes_past_z_keep_title_order():
    references = [
        Reference(id=f"t{index:02d}", title=f"T{index:02d}", authors=["Smith, John"], year="2020")
        for index in reversed(range(28))
    ]
    ordered = sort_references(assign_year_suffixes(references, "apa7"), "apa7")
    assert [reference.title for reference in ordered] == [f"T{index:02d}" for index in range(28)]
    assert [reference.year_suffix for reference in ordered][24:] == ["y", "z", "aa", "ab"]


def test_thai_references_come_before_english_ones():
    english = Reference(id="en", title="Alpha", authors=["Adams, Amy"], year="2020")
    tagged = Reference(id="th-tagged", title="Zeta", authors=["Zed, Zoe"], year="2020", language="th")
    untagged = Reference(id="th", title="การศึกษา", authors=["สมชาย ใจดี"], year="2563")
    ordered = sort_references([english, tagged, untagged], "apa7")
    assert [reference.id for reference in ordered] == ["th-tagged", "th", "en"]
