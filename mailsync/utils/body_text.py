"""Plain-text rendering of stored message bodies.

Usage:
    from mailsync.utils.body_text import body_to_text

    text = body_to_text(raw_html, content_type="html")
"""

import html
import re

from bs4 import BeautifulSoup


def html_to_text(text: str) -> str:
    """Convert HTML to plain text, keeping paragraph and line breaks."""
    if not text.strip():
        return ""

    soup = BeautifulSoup(text, "lxml")

    for el in soup(["script", "style", "head", "meta", "link"]):
        el.decompose()

    for br in soup.find_all("br"):
        br.replace_with("\n")
    for tag in soup.find_all(["p", "div", "tr", "li"]):
        tag.insert_before("\n")
        tag.insert_after("\n")

    return html.unescape(soup.get_text(separator=" "))


def normalize_whitespace(text: str) -> str:
    """Collapse runs of spaces, keep at most two blank lines in a row, strip."""
    text = text.replace("\r\n", "\n").replace("\r", "\n").replace(" ", " ")
    text = re.sub(r"[^\S\n]+", " ", text)
    lines = [line.strip() for line in text.split("\n")]

    result = []
    blanks = 0
    for line in lines:
        if not line:
            blanks += 1
            if blanks <= 2:
                result.append(line)
        else:
            blanks = 0
            result.append(line)

    return "\n".join(result).strip()


def body_to_text(text: str, content_type: str = "text") -> str:
    """Render a decoded MIME body as plain text ("html" bodies are stripped of markup)."""
    if not text:
        return ""
    if content_type.lower() == "html":
        text = html_to_text(text)
    return normalize_whitespace(text)
