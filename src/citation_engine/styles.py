"""Declarative registry of citation styles.

Each style is frozen data: a bibliography template made of groups of field
segments, a name rule, an in-text rule and a numbering mode. The renderer only
interprets these tables, so adding a style means adding a definition here.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, model_validator

from citation_engine.errors import ConfigurationError

Wrapper = Literal["plain", "italic", "bold", "quoted"]
TitleCase = Literal["sentence", "title", "preserve"]
NameOrder = Literal["inverted", "first-inverted", "natural"]
SerialComma = Literal["always", "three-or-more", "never"]
InTextKind = Literal["author-year", "numeric", "footnote"]
NumberingMode = Literal["none", "alphabetical", "citation-order"]

CONTAINER = frozenset({"journal", "conference"})
STANDALONE = frozenset({"book", "thesis", "report", "website", "other"})
BOOK = frozenset({"book"})


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Segment(_Frozen):
    """One field of an entry.

    ``lead`` separates the segment from what precedes it inside the group and
    is dropped when the segment is the first one rendered. ``prefix`` and
    ``suffix`` always surround the value.
    """

    field: str
    lead: str = ""
    prefix: str = ""
    suffix: str = ""
    wrapper: Wrapper = "plain"
    types: Optional[frozenset[str]] = None


class Group(_Frozen):
    """A run of segments rendered together; omitted entirely when all are empty."""

    parts: tuple[Segment, ...]
    lead: str = ""
    prefix: str = ""
    suffix: str = ""
    types: Optional[frozenset[str]] = None


class NameRule(_Frozen):
    order: NameOrder = "inverted"
    initials: bool = True
    initial_punct: str = "."
    initial_sep: str = " "
    sort_separator: str = ", "
    delimiter: str = ", "
    and_token: Literal["&", "and", ""] = "and"
    delimiter_before_last: SerialComma = "three-or-more"
    max_authors: int
    et_al_use_first: Optional[int] = None
    et_al_delimiter: str = ", "

    @model_validator(mode="after")
    def _check_truncation(self) -> "NameRule":
        if self.et_al_use_first is not None and self.et_al_use_first > self.max_authors:
            raise ValueError("et_al_use_first must be <= max_authors")
        return self

    @property
    def shown_when_truncated(self) -> int:
        return self.et_al_use_first if self.et_al_use_first is not None else self.max_authors


class InTextRule(_Frozen):
    kind: InTextKind
    open: str = "("
    close: str = ")"
    multi_delimiter: str = "; "
    year_delimiter: str = ", "
    locator_delimiter: str = ", "
    include_year: bool = True
    max_authors: int = 2
    and_token: Literal["&", "and", ""] = "and"
    superscript: bool = False
    collapse_ranges: bool = False


class StyleDefinition(_Frozen):
    id: str
    title: str
    template: tuple[Group, ...]
    title_case: TitleCase = "preserve"
    names: NameRule
    in_text: InTextRule
    numbering: NumberingMode = "none"
    hanging_indent: bool = True
    label: Optional[str] = None
    quotes: tuple[str, str] = ("“", "”")
    punctuation_in_quote: bool = True
    page_range_delimiter: str = "–"
    show_no_date: bool = False
    # Off for styles that tell same-author works apart by title instead.
    show_year_suffix: bool = True
    required_fields: tuple[str, ...] = ("title",)

    @property
    def is_author_year(self) -> bool:
        return self.in_text.kind == "author-year"

    @property
    def is_numeric(self) -> bool:
        return self.in_text.kind == "numeric"


class LocaleTerms(_Frozen):
    tag: str
    and_word: str
    ampersand: str
    et_al: str
    no_date: str
    editor: str
    editors: str
    edition: str
    suffix_alphabet: str
    untitled: str


LOCALES: Mapping[str, LocaleTerms] = MappingProxyType(
    {
        "en": LocaleTerms(
            tag="en",
            and_word="and",
            ampersand="&",
            et_al="et al.",
            no_date="n.d.",
            editor="(Ed.)",
            editors="(Eds.)",
            edition="{ordinal} ed.",
            suffix_alphabet="abcdefghijklmnopqrstuvwxyz",
            untitled="[Untitled]",
        ),
        "th": LocaleTerms(
            tag="th",
            and_word="และ",
            ampersand="และ",
            et_al="และคณะ",
            no_date="ม.ป.ป.",
            editor="(บ.ก.)",
            editors="(บ.ก.)",
            edition="พิมพ์ครั้งที่ {number}",
            suffix_alphabet="กขคงจฉชซฌญฎฏฐฑฒณดตถทธนบปผฝพฟภมยรลวศษสหฬอฮ",
            untitled="[ไม่มีชื่อเรื่อง]",
        ),
    }
)


def get_locale(tag: Optional[str]) -> LocaleTerms:
    """Resolve a language tag to its terms; anything unknown falls back to English."""
    if tag and tag.strip().lower().startswith("th"):
        return LOCALES["th"]
    return LOCALES["en"]


def _authors(suffix: str = ".") -> Group:
    return Group(parts=(Segment(field="authors"),), suffix=suffix)


def _titles(container: str, standalone: str = "italic") -> tuple[Segment, ...]:
    return (
        Segment(field="title", wrapper=container, types=CONTAINER),
        Segment(field="title", wrapper=standalone, types=STANDALONE),
    )


def _link(prefix: str = "", suffix: str = "") -> Group:
    return Group(lead=" ", parts=(Segment(field="link", prefix=prefix),), suffix=suffix)


APA7 = StyleDefinition(
    id="apa7",
    title="APA 7th Edition",
    show_no_date=True,
    title_case="sentence",
    template=(
        _authors(),
        Group(lead=" ", parts=(Segment(field="year", prefix="(", suffix=")"),), suffix="."),
        Group(
            lead=" ",
            parts=_titles("plain") + (Segment(field="edition", lead=" ", prefix="(", suffix=")", types=BOOK),),
            suffix=".",
        ),
        Group(
            lead=" ",
            types=CONTAINER,
            parts=(
                Segment(field="container", wrapper="italic"),
                Segment(field="volume", lead=", ", wrapper="italic"),
                Segment(field="issue", prefix="(", suffix=")"),
                Segment(field="pages", lead=", "),
            ),
            suffix=".",
        ),
        Group(lead=" ", types=STANDALONE, parts=(Segment(field="publisher"),), suffix="."),
        _link(),
    ),
    names=NameRule(and_token="&", delimiter_before_last="always", max_authors=20),
    in_text=InTextRule(kind="author-year", and_token="&", max_authors=2),
)

MLA9 = StyleDefinition(
    id="mla9",
    title="MLA 9th Edition",
    title_case="title",
    template=(
        _authors(),
        Group(lead=" ", parts=_titles("quoted"), suffix="."),
        Group(
            lead=" ",
            parts=(
                Segment(field="container", wrapper="italic", types=CONTAINER),
                Segment(field="edition", lead=", ", types=BOOK),
                Segment(field="volume", lead=", ", prefix="vol. "),
                Segment(field="issue", lead=", ", prefix="no. "),
                Segment(field="publisher", lead=", ", types=STANDALONE),
                Segment(field="year", lead=", "),
                Segment(field="pages", lead=", ", prefix="pp. "),
            ),
            suffix=".",
        ),
        _link(suffix="."),
    ),
    names=NameRule(delimiter_before_last="always", max_authors=2, et_al_use_first=1),
    show_year_suffix=False,
    in_text=InTextRule(kind="author-year", include_year=False, locator_delimiter=" ", max_authors=2),
)

CHICAGO17 = StyleDefinition(
    id="chicago17",
    title="Chicago 17th Edition (author-date)",
    show_no_date=True,
    title_case="title",
    template=(
        _authors(),
        Group(lead=" ", parts=(Segment(field="year"),), suffix="."),
        Group(
            lead=" ",
            parts=_titles("quoted") + (Segment(field="edition", lead=". ", types=BOOK),),
            suffix=".",
        ),
        Group(
            lead=" ",
            types=CONTAINER,
            parts=(
                Segment(field="container", wrapper="italic"),
                Segment(field="volume", lead=" "),
                Segment(field="issue", lead=", ", prefix="no. "),
                Segment(field="pages", lead=": "),
            ),
            suffix=".",
        ),
        Group(lead=" ", types=STANDALONE, parts=(Segment(field="publisher"),), suffix="."),
        _link(suffix="."),
    ),
    names=NameRule(delimiter_before_last="always", max_authors=10, et_al_use_first=7),
    in_text=InTextRule(kind="author-year", year_delimiter=" ", max_authors=3),
)

HARVARD = StyleDefinition(
    id="harvard",
    title="Harvard",
    show_no_date=True,
    template=(
        _authors(suffix=""),
        Group(lead=" ", parts=(Segment(field="year", prefix="(", suffix=")"),)),
        Group(
            lead=" ",
            parts=_titles("plain") + (Segment(field="edition", lead=". ", types=BOOK),),
            suffix=".",
        ),
        Group(
            lead=" ",
            types=CONTAINER,
            parts=(
                Segment(field="container", wrapper="italic"),
                Segment(field="volume", lead=", "),
                Segment(field="issue", prefix="(", suffix=")"),
                Segment(field="pages", lead=", ", prefix="pp. "),
            ),
            suffix=".",
        ),
        Group(lead=" ", types=STANDALONE, parts=(Segment(field="publisher"),), suffix="."),
        _link(prefix="Available at: ", suffix="."),
    ),
    names=NameRule(initial_sep="", delimiter_before_last="never", max_authors=3, et_al_use_first=1, et_al_delimiter=" "),
    in_text=InTextRule(kind="author-year", max_authors=3),
)

VANCOUVER = StyleDefinition(
    id="vancouver",
    title="Vancouver",
    title_case="sentence",
    numbering="citation-order",
    hanging_indent=False,
    label="{n}.",
    template=(
        _authors(),
        Group(
            lead=" ",
            parts=(
                Segment(field="title"),
                Segment(field="edition", lead=". ", types=BOOK),
            ),
            suffix=".",
        ),
        Group(lead=" ", types=CONTAINER, parts=(Segment(field="container"),), suffix="."),
        Group(
            lead=" ",
            types=CONTAINER,
            parts=(
                Segment(field="year"),
                Segment(field="volume", lead=";"),
                Segment(field="issue", prefix="(", suffix=")"),
                Segment(field="pages", lead=":"),
            ),
            suffix=".",
        ),
        Group(
            lead=" ",
            types=STANDALONE,
            parts=(Segment(field="publisher"), Segment(field="year", lead="; ")),
            suffix=".",
        ),
        Group(lead=" ", parts=(Segment(field="doi", prefix="doi:"),), suffix="."),
    ),
    names=NameRule(
        initial_punct="",
        initial_sep="",
        sort_separator=" ",
        and_token="",
        max_authors=6,
    ),
    in_text=InTextRule(kind="numeric", open="[", close="]", multi_delimiter=",", collapse_ranges=True),
)

IEEE = StyleDefinition(
    id="ieee",
    title="IEEE",
    numbering="citation-order",
    hanging_indent=False,
    label="[{n}]",
    template=(
        _authors(suffix=","),
        Group(lead=" ", parts=_titles("quoted"), suffix=","),
        Group(
            lead=" ",
            parts=(
                Segment(field="container", wrapper="italic", types=CONTAINER),
                Segment(field="edition", lead=", ", types=BOOK),
                Segment(field="publisher", lead=", ", types=STANDALONE),
                Segment(field="volume", lead=", ", prefix="vol. "),
                Segment(field="issue", lead=", ", prefix="no. "),
                Segment(field="pages", lead=", ", prefix="pp. "),
                Segment(field="year", lead=", "),
            ),
            suffix=".",
        ),
        Group(lead=" ", parts=(Segment(field="doi", prefix="doi: "),), suffix="."),
    ),
    names=NameRule(max_authors=6, et_al_use_first=1, et_al_delimiter=" "),
    in_text=InTextRule(kind="numeric", open="[", close="]", multi_delimiter=", "),
)

NATURE = StyleDefinition(
    id="nature",
    title="Nature",
    numbering="citation-order",
    hanging_indent=False,
    label="{n}.",
    template=(
        _authors(),
        Group(lead=" ", parts=_titles("plain"), suffix="."),
        Group(
            lead=" ",
            parts=(
                Segment(field="container", wrapper="italic", types=CONTAINER),
                Segment(field="publisher", types=STANDALONE),
                Segment(field="volume", lead=" ", wrapper="bold"),
                Segment(field="pages", lead=", "),
                Segment(field="year", lead=" ", prefix="(", suffix=")"),
            ),
            suffix=".",
        ),
        _link(),
    ),
    names=NameRule(and_token="&", delimiter_before_last="never", max_authors=5, et_al_use_first=1, et_al_delimiter=" "),
    in_text=InTextRule(kind="numeric", open="", close="", multi_delimiter=",", superscript=True, collapse_ranges=True),
)

SCIENCE = StyleDefinition(
    id="science",
    title="Science",
    numbering="citation-order",
    hanging_indent=False,
    label="{n}.",
    template=(
        _authors(suffix=","),
        Group(lead=" ", parts=_titles("plain"), suffix="."),
        Group(
            lead=" ",
            parts=(
                Segment(field="container", wrapper="italic", types=CONTAINER),
                Segment(field="publisher", types=STANDALONE),
                Segment(field="volume", lead=" ", wrapper="bold"),
                Segment(field="pages", lead=", "),
                Segment(field="year", lead=" ", prefix="(", suffix=")"),
            ),
            suffix=".",
        ),
        _link(),
    ),
    names=NameRule(order="natural", and_token="", max_authors=5, et_al_use_first=1, et_al_delimiter=" "),
    in_text=InTextRule(kind="numeric", multi_delimiter=", ", collapse_ranges=True),
)

OXFORD = StyleDefinition(
    id="oxford",
    title="Oxford",
    title_case="title",
    quotes=("‘", "’"),
    punctuation_in_quote=False,
    template=(
        _authors(suffix=","),
        Group(lead=" ", parts=_titles("quoted")),
        Group(
            lead=", ",
            types=CONTAINER,
            parts=(
                Segment(field="container", wrapper="italic"),
                Segment(field="volume", lead=", "),
                Segment(field="issue", prefix="/"),
                Segment(field="year", lead=" ", prefix="(", suffix=")"),
                Segment(field="pages", lead=", "),
            ),
            suffix=".",
        ),
        Group(
            lead=" ",
            types=STANDALONE,
            prefix="(",
            suffix=").",
            parts=(
                Segment(field="edition", types=BOOK),
                Segment(field="publisher", lead=", "),
                Segment(field="year", lead=", "),
            ),
        ),
        _link(suffix="."),
    ),
    names=NameRule(
        order="first-inverted",
        initials=False,
        delimiter_before_last="always",
        max_authors=3,
        et_al_use_first=1,
    ),
    in_text=InTextRule(kind="footnote", open="", close=".", max_authors=3),
)

TURABIAN = StyleDefinition(
    id="turabian",
    title="Turabian 9th Edition",
    title_case="title",
    template=(
        _authors(),
        Group(
            lead=" ",
            parts=_titles("quoted") + (Segment(field="edition", lead=". ", types=BOOK),),
            suffix=".",
        ),
        Group(
            lead=" ",
            types=CONTAINER,
            parts=(
                Segment(field="container", wrapper="italic"),
                Segment(field="volume", lead=" "),
                Segment(field="issue", lead=", ", prefix="no. "),
                Segment(field="year", lead=" ", prefix="(", suffix=")"),
                Segment(field="pages", lead=": "),
            ),
            suffix=".",
        ),
        Group(
            lead=" ",
            types=STANDALONE,
            parts=(Segment(field="publisher"), Segment(field="year", lead=", ")),
            suffix=".",
        ),
        _link(suffix="."),
    ),
    names=NameRule(
        order="first-inverted",
        initials=False,
        delimiter_before_last="always",
        max_authors=10,
        et_al_use_first=7,
    ),
    in_text=InTextRule(kind="footnote", open="", close=".", max_authors=3),
)

STYLES: Mapping[str, StyleDefinition] = MappingProxyType(
    {
        style.id: style
        for style in (APA7, MLA9, CHICAGO17, HARVARD, VANCOUVER, IEEE, NATURE, SCIENCE, OXFORD, TURABIAN)
    }
)


def get_style(style_id: str) -> StyleDefinition:
    """Return the definition for ``style_id`` or raise ``ConfigurationError``."""
    try:
        return STYLES[style_id]
    except KeyError:
        raise ConfigurationError(
            f"Unknown citation style {style_id!r}; expected one of {', '.join(STYLES)}"
        ) from None


def resolve_style(style: StyleDefinition | str) -> StyleDefinition:
    if isinstance(style, StyleDefinition):
        return style
    return get_style(style)


def available_styles() -> dict[str, str]:
    return {style_id: style.title for style_id, style in STYLES.items()}
