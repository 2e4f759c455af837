from __future__ import annotations

from bs4 import BeautifulSoup, Tag


class DocumentSnapshot:
    """Read-only view of a page's DOM used for heuristic resolution.

    Queries run through BeautifulSoup's CSS engine and return elements in
    document order.
    """

    def __init__(self, soup: BeautifulSoup) -> None:
        self.soup = soup

    @classmethod
    def from_html(cls, html: str, parser: str = "html.parser") -> DocumentSnapshot:
        return cls(BeautifulSoup(html, parser))

    @classmethod
    def from_driver(cls, driver, parser: str = "html.parser") -> DocumentSnapshot:
        return cls.from_html(driver.page_source, parser=parser)

    def select(self, selector: str) -> list[Tag]:
        return list(self.soup.select(selector))

    def select_one(self, selector: str) -> Tag | None:
        return self.soup.select_one(selector)

    def count(self, selector: str) -> int:
        return len(self.soup.select(selector))

    def root_html(self, max_chars: int | None = None) -> str:
        root = self.soup.find("html")
        markup = str(root) if root is not None else str(self.soup)
        if max_chars is None:
            return markup
        return markup[:max_chars]
