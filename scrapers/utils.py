"""Shared fetch and text-normalization helpers for documentation scrapers."""

import logging
import re
from typing import Optional

import httpx
from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "llmdocs-scraper/0.1 (documentation indexer)",
    "Accept": "text/markdown,text/plain,text/html;q=0.9,*/*;q=0.8",
}
FETCH_TIMEOUT_SECONDS = 120.0

CONTENT_SELECTORS = ["main", "article", "[role='main']", ".content", "#content"]
HTML_SNIFF = re.compile(r"^\s*(<!doctype html|<html)", re.I)
HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
BLOCK_TAGS = HEADING_TAGS + ["p", "pre", "table", "li", "blockquote"]
CHROME_SELECTOR = (
    "nav, header, footer, aside, script, style, noscript, "
    "[class*=cookie], [class*=banner], [class*=sidebar], [class~=toc]"
)


class FetchError(Exception):
    """A documentation URL could not be fetched."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{url}: {message}")
        self.url = url


async def fetch_text(
    client: httpx.AsyncClient,
    url: str,
    timeout: float = FETCH_TIMEOUT_SECONDS,
    headers: Optional[dict] = None,
) -> str:
    """GET a URL and return its body as text, normalized to markdown if it is HTML.

    Raises FetchError on timeouts, transport failures and non-2xx statuses.
    """
    merged_headers = {**DEFAULT_HEADERS, **(headers or {})}
    try:
        response = await client.get(url, headers=merged_headers, timeout=timeout, follow_redirects=True)
    except httpx.TimeoutException as e:
        raise FetchError(url, f"timed out after {timeout:.0f}s") from e
    except httpx.TransportError as e:
        raise FetchError(url, f"transport error: {e}") from e

    if response.is_error:
        raise FetchError(url, f"HTTP {response.status_code} {response.reason_phrase}")

    text = response.text
    if is_html(text, response.headers.get("content-type", "")):
        return extract_content(text)
    return text


def is_html(text: str, content_type: str = "") -> bool:
    if "html" in content_type.lower():
        return True
    return bool(HTML_SNIFF.match(text[:200]))


def extract_content(html: str) -> str:
    """Reduce an HTML page to markdown: headings, paragraphs, list items,
    code fences and tables, in document order. Navigation chrome is dropped.
    """
    soup = BeautifulSoup(html, "lxml")
    root = next(filter(None, (soup.select_one(s) for s in CONTENT_SELECTORS)), None) or soup.body
    if root is None:
        return ""

    for tag in root.select(CHROME_SELECTOR):
        tag.decompose()

    blocks = [_render_block(el) for el in root.find_all(BLOCK_TAGS) if not el.find_parent(BLOCK_TAGS)]
    text = "\n\n".join(b for b in blocks if b)
    return text or _squash(root.get_text(" "))


def _squash(text: str) -> str:
    return " ".join(text.split())


def _render_block(el: Tag) -> str:
    if el.name == "pre":
        code = el.find("code")
        classes = (code.get("class") or []) if isinstance(code, Tag) else []
        lang = next((c.removeprefix("language-") for c in classes if c.startswith("language-")), "")
        return f"```{lang}\n{el.get_text().strip(chr(10))}\n```"
    if el.name == "table":
        return _render_table(el)

    text = _squash(el.get_text())
    if not text:
        return ""
    if el.name in HEADING_TAGS:
        return "#" * int(el.name[1]) + " " + text
    if el.name == "li":
        return f"- {text}"
    if el.name == "blockquote":
        return f"> {text}"
    return text


def _render_table(table: Tag) -> str:
    rows = [
        [_squash(cell.get_text()).replace("|", "\\|") for cell in tr.find_all(["th", "td"])]
        for tr in table.find_all("tr")
    ]
    rows = [r for r in rows if r]
    if not rows:
        return ""

    width = max(len(r) for r in rows)
    lines = ["| " + " | ".join(r + [""] * (width - len(r))) + " |" for r in rows]
    if len(lines) > 1:
        lines.insert(1, "| " + " | ".join(["---"] * width) + " |")
    return "\n".join(lines)
