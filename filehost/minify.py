"""
Naive CSS minification applied before CSS content is stored.

The transform is regex-level only: it does not understand strings or
url() literals. Stored bytes and quota accounting depend on this exact
output, so it must not be swapped for a smarter minifier.
"""

from __future__ import annotations

import re

_COMMENT = re.compile(r"/\*[\s\S]*?\*/")
_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"\s*([{}:;,])\s*")
_TRAILING_SEMICOLON = re.compile(r";+}")


def minify_css(css: str) -> str:
    css = _COMMENT.sub("", css)
    css = _WHITESPACE.sub(" ", css)
    css = _PUNCTUATION.sub(r"\1", css)
    css = _TRAILING_SEMICOLON.sub("}", css)
    return css.strip()
