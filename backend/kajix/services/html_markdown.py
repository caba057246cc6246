"""HTML to Markdown conversion for scraped pages.

Thin wrapper over markdownify. Conversion is CPU-bound and synchronous;
callers on the event loop should run it in a worker thread
(see ``convert_async``).
"""

import asyncio

from markdownify import ATX, markdownify


class HtmlMarkdownConverter:
    """Render page HTML as Markdown.

    Args:
        heading_style: markdownify heading style (ATX gives ``#`` headings).
    """

    def __init__(self, heading_style: str = ATX) -> None:
        self._heading_style = heading_style

    def convert(self, html: str) -> str:
        """Convert an HTML document to Markdown.

        Args:
            html: HTML source.

        Returns:
            Markdown text with surrounding whitespace trimmed.
        """
        markdown = markdownify(html, heading_style=self._heading_style)
        return markdown.strip()

    async def convert_async(self, html: str) -> str:
        """Run ``convert`` off the event loop."""
        return await asyncio.to_thread(self.convert, html)
