"""Progressive Markdown-to-HTML rendering for streamed answers.

The renderer is a pure function of the accumulated text, so re-rendering
after every chunk is idempotent no matter where chunk boundaries fall.
"""
from __future__ import annotations

import re

_OPENING_FENCE = re.compile(r"^```\w*\n?")
_CLOSING_FENCE = re.compile(r"\n?```$")


def strip_code_fences(text: str) -> str:
    """Remove one fenced block wrapped around the whole answer."""
    content = (text or "").strip()
    if content.startswith("```"):
        content = _OPENING_FENCE.sub("", content, count=1)
        content = _CLOSING_FENCE.sub("", content, count=1)
    return content


def escape_html(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def render_markdown(text: str) -> str:
    if not text:
        return ""

    html = escape_html(strip_code_fences(text))

    # Code blocks, then inline code
    html = re.sub(r"```(\w*)\n?([\s\S]*?)```", r"<pre><code>\2</code></pre>", html)
    html = re.sub(r"`([^`]+)`", r"<code>\1</code>", html)

    # Headers
    html = re.sub(r"^### (.+)$", r"<h3>\1</h3>", html, flags=re.M)
    html = re.sub(r"^## (.+)$", r"<h2>\1</h2>", html, flags=re.M)
    html = re.sub(r"^# (.+)$", r"<h1>\1</h1>", html, flags=re.M)

    # Bold & italic
    html = re.sub(r"\*\*([^*]+)\*\*", r"<strong>\1</strong>", html)
    html = re.sub(r"\*([^*]+)\*", r"<em>\1</em>", html)

    # Blockquotes (">" is already escaped)
    html = re.sub(r"^&gt; (.+)$", r"<blockquote>\1</blockquote>", html, flags=re.M)

    # Lists
    html = re.sub(r"^- (.+)$", r"<li>\1</li>", html, flags=re.M)
    html = re.sub(r"^\d+\. (.+)$", r"<li>\1</li>", html, flags=re.M)
    html = re.sub(r"(<li>.*</li>\n?)+", lambda m: f"<ul>{m.group(0)}</ul>", html)

    # Paragraphs and line breaks
    html = re.sub(r"\n\n+", "</p><p>", html)
    html = re.sub(r"(?<!>)\n(?!<)", "<br>", html)

    if not re.match(r"^<(h[1-6]|p|ul|ol|pre|blockquote)", html):
        html = f"<p>{html}</p>"

    return html.replace("<p></p>", "")


def text_to_html(text: str) -> str:
    """Wrap plain text paragraphs in <p> tags for rich-text hosts."""
    if not text:
        return "<p><br></p>"

    paragraphs = []
    for para in re.split(r"\n\n+", text):
        content = para.strip().replace("\n", "<br>")
        if content:
            paragraphs.append(f"<p>{content}</p>")
    return "".join(paragraphs) or "<p><br></p>"
