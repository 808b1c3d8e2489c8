import re
import html
from typing import NamedTuple, Optional

from bs4 import BeautifulSoup

# Named entities IndianKanoon emits, and the plain characters they become.
ENTITY_REPLACEMENTS = {
    "&nbsp;": " ",
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
    "&rsquo;": "'",
    "&lsquo;": "'",
    "&rdquo;": '"',
    "&ldquo;": '"',
}
# BeautifulSoup decodes entities while parsing; map the decoded forms too.
_DECODED_REPLACEMENTS = {html.unescape(k): v for k, v in ENTITY_REPLACEMENTS.items()}

_PARA_ID = re.compile(r"^(?:p|para|paragraph)[_-]?(\d+)$", re.IGNORECASE)
_PARA_MARKERS = [
    re.compile(r"\bpara(?:graph)?\s*(?:no\.?)?[\s.]*(\d+)", re.IGNORECASE),
    re.compile(r"¶\s*(\d+)"),
    re.compile(r"\[(\d{1,3})\]"),
]
_LEADING_NUMBER = re.compile(r"^\s*(\d{1,3})\.\s+", re.MULTILINE)

_SENTENCE_END = re.compile(
    r"(?<!\bMr)(?<!\bMrs)(?<!\bMs)(?<!\bDr)(?<!\bNo)(?<!\bvs)(?<!\bSec)(?<!\bArt)(?<!\bLtd)(?<!\b[A-Z])"
    r"[.!?][\"'”’)\]]*(?=\s+[\"'“(]?[A-Z]|\s*$)"
)
_CLAUSE_END = re.compile(r"[;:](?=\s)|\n\n")


class TruncatedText(NamedTuple):
    text: str
    complete: bool


def strip_html(markup: Optional[str]) -> str:
    """HTML to plain text, keeping line and paragraph breaks."""
    if not markup:
        return ""
    text = re.sub(r"<br\s*/?>", "\n", markup, flags=re.IGNORECASE)
    text = re.sub(r"</p\s*>", "\n\n", text, flags=re.IGNORECASE)
    text = re.sub(r"</div\s*>", "\n", text, flags=re.IGNORECASE)

    text = BeautifulSoup(text, "html.parser").get_text()
    for entity, char in ENTITY_REPLACEMENTS.items():
        text = text.replace(entity, char)
    for decoded, char in _DECODED_REPLACEMENTS.items():
        text = text.replace(decoded, char)

    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def extract_paragraph_number(fragment: str, index: int) -> str:
    """Best paragraph reference for a fragment, falling back to its position."""
    if "<" in fragment:
        soup = BeautifulSoup(fragment, "html.parser")
        tagged = soup.find(id=_PARA_ID)
        if tagged is not None:
            return _PARA_ID.match(tagged["id"]).group(1)

    text = strip_html(fragment)
    for pattern in _PARA_MARKERS:
        m = pattern.search(text)
        if m:
            return m.group(1)

    m = _LEADING_NUMBER.search(text)
    if m:
        return m.group(1)

    if re.match(r"^JUDGMENT", text, re.IGNORECASE):
        return f"J-{index + 1}"
    if re.match(r"^ORDER", text, re.IGNORECASE):
        return f"O-{index + 1}"
    return str(index + 1)


def truncate_at_sentence(text: str, max_length: int = 1500, min_length: Optional[int] = None) -> TruncatedText:
    """Cut `text` to at most `max_length` characters without splitting a clause.

    Preference order inside the window [min_length, max_length]: the last
    sentence end, then the last `;`, `:` or paragraph break, then the last
    word boundary.
    """
    text = (text or "").strip()
    if len(text) <= max_length:
        return TruncatedText(text, True)

    floor = max_length // 2 if min_length is None else max(0, min(min_length, max_length))

    cut = None
    for m in _SENTENCE_END.finditer(text, floor):
        if m.end() > max_length:
            break
        cut = m.end()

    if cut is None:
        for m in _CLAUSE_END.finditer(text, floor):
            if m.end() > max_length:
                break
            cut = m.start() if m.group() == "\n\n" else m.end()

    if cut is None:
        space = text.rfind(" ", floor, max_length + 1)
        cut = space if space > 0 else max_length

    return TruncatedText(text[:cut].rstrip(), False)
