from __future__ import annotations
import re
from bs4 import BeautifulSoup

TAG_HINT_RE = re.compile(r"<[a-zA-Z/][^>]*>")


def safe_text(s: str, limit: int = 400) -> str:
    s = re.sub(r"\s+", " ", s).strip()
    return s[:limit]


def looks_like_html(text: str) -> bool:
    return bool(text and TAG_HINT_RE.search(text))


def html_to_text(html: str | None) -> str:
    """Plain text of a product description that may carry markup"""
    if not html:
        return ""
    if not looks_like_html(html):
        return safe_text(html, len(html))
    soup = BeautifulSoup(html, "lxml")
    for node in soup(["script", "style"]):
        node.decompose()
    text = soup.get_text(" ")
    return safe_text(text, len(text))


def description_excerpt(html: str | None, limit: int = 160) -> str:
    text = html_to_text(html)
    if len(text) <= limit:
        return text
    cut = text[:limit].rsplit(" ", 1)[0]
    return cut + "..."

