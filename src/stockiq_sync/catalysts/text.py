"""Filing HTML to plain text for pattern extraction."""

from __future__ import annotations

import html
import logging
import re

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


class FilingTextCleaner:
    """Strips markup from an 8-K document and collapses all whitespace.

    Extraction patterns match across what used to be line and tag
    boundaries, so the output is a single whitespace-normalized line.
    """

    def clean(self, raw: str) -> str:
        """Convert raw filing content (HTML or plain text) to normalized text."""
        if not raw or not raw.strip():
            return ""

        if self._is_html(raw):
            soup = BeautifulSoup(raw, "lxml")

            # Remove script and style tags
            for tag in soup.find_all(["script", "style"]):
                tag.decompose()

            # Remove XBRL tags (preserve their text content)
            self._remove_xbrl(soup)

            text = soup.get_text(separator=" ")
        else:
            text = raw

        # Decode entities that survived (plain-text documents, double escaping)
        text = html.unescape(text)
        # Curly quotes and dashes -> ASCII so patterns stay simple
        text = text.translate(_PUNCTUATION)

        return re.sub(r"\s+", " ", text).strip()

    def _is_html(self, content: str) -> bool:
        """Heuristic: does this content appear to be HTML?

        Checks for presence of common HTML tags. A simple tag count
        threshold avoids false positives on text containing '<'.
        """
        html_tags = re.findall(
            r"<(?:html|body|div|p|table|span|br|head|font)\b", content[:5000], re.IGNORECASE
        )
        return len(html_tags) >= 2

    def _remove_xbrl(self, soup: BeautifulSoup) -> None:
        """Unwrap inline XBRL tags (<ix:nonNumeric> etc.), keeping their text."""
        for tag in soup.find_all(re.compile(r"^(?:ix|xbrli|xbrl):", re.IGNORECASE)):
            tag.unwrap()


_PUNCTUATION = str.maketrans(
    {
        "\u2018": "'",
        "\u2019": "'",
        "\u201c": '"',
        "\u201d": '"',
        "\u2013": "-",
        "\u2014": "-",
    }
)

_default_cleaner = FilingTextCleaner()


def filing_to_text(raw: str) -> str:
    """Module-level shortcut for ``FilingTextCleaner().clean(raw)``."""
    return _default_cleaner.clean(raw)
