"""Markdown ファイルを HTML ページへ変換する"""

from __future__ import annotations

import html
import logging
from typing import Callable

import markdown


logger = logging.getLogger("ghttp.fileserver.markdown")

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
</head>
<body>
{body}
</body>
</html>
"""


class MarkdownRenderer:
    """Markdown 本文を完結した HTML ドキュメントとして描画する。"""

    def __init__(self, markdown_factory: Callable[[], markdown.Markdown] | None = None) -> None:
        self._markdown_factory = markdown_factory or self._default_markdown_factory

    @staticmethod
    def _default_markdown_factory() -> markdown.Markdown:
        # nl2br: 単一改行も <br> として扱う
        return markdown.Markdown(
            extensions=[
                'markdown.extensions.fenced_code',
                'markdown.extensions.tables',
                'markdown.extensions.sane_lists',
                'markdown.extensions.nl2br',
            ]
        )

    def render_fragment(self, source: str) -> str:
        text = (source or "").lstrip("\ufeff")
        if not text.strip():
            return ""
        return self._markdown_factory().convert(text)

    def render_page(self, source: str, title: str) -> str:
        logger.debug("Rendering markdown page: %s", title)
        return _PAGE_TEMPLATE.format(
            title=html.escape(title),
            body=self.render_fragment(source),
        )


__all__ = ["MarkdownRenderer"]
