import re

# Ordered: structural tags first, then any leftover tag, then entities.
# "&amp;" is decoded last so "&amp;lt;" stays a literal "&lt;".
_TAG_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"<h[1-6]>(.*?)</h[1-6]>"), r"**\1**"),
    (re.compile(r"<(b|strong)>(.*?)</(b|strong)>"), r"**\2**"),
    (re.compile(r"<(i|em)>(.*?)</(i|em)>"), r"*\2*"),
    (re.compile(r"<code>(.*?)</code>"), r"`\1`"),
    (re.compile(r"<pre>(.*?)</pre>"), "```\n\\1\n```"),
    (re.compile(r"<ul>(.*?)</ul>", re.DOTALL), r"\1"),
    (re.compile(r"<ol>(.*?)</ol>", re.DOTALL), r"\1"),
    (re.compile(r"<li>(.*?)</li>"), "• \\1\n"),
    (re.compile(r'<a href="(.*?)".*?>(.*?)</a>'), r"[\2](\1)"),
    (re.compile(r"<p>(.*?)</p>"), "\\1\n\n"),
    (re.compile(r"<br\s*/?>"), "\n"),
    (re.compile(r"</?[^>]+(>|$)"), ""),
]

_ENTITIES: list[tuple[str, str]] = [
    ("&quot;", '"'),
    ("&#x27;", "'"),
    ("&#39;", "'"),
    ("&apos;", "'"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&amp;", "&"),
    ("&nbsp;", " "),
    ("&ndash;", "\u2013"),
    ("&mdash;", "\u2014"),
    ("&#8211;", "\u2013"),
    ("&#8212;", "\u2014"),
    ("&#160;", " "),
]


def html_to_markdown(html: str) -> str:
    """Convert the HTML subset FastGPT emits into chat markdown.

    Headings and bold become ``**text**``, italics ``*text*``, inline code and
    ``<pre>`` blocks become backtick spans and fences, list items become
    bullets and links become ``[text](url)``. Remaining tags are stripped,
    common entities are decoded and runs of blank lines are collapsed.

    Args:
        html: HTML fragment.

    Returns:
        str: Markdown text.
    """
    text = html
    for pattern, replacement in _TAG_RULES:
        text = pattern.sub(replacement, text)
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return re.sub(r"\n{3,}", "\n\n", text)
