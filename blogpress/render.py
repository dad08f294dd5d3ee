from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import markdown
from markdown.extensions import Extension
from markdown.postprocessors import Postprocessor
from markdown.preprocessors import Preprocessor
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.util import ClassNotFound

from .errors import UnterminatedBlock

if TYPE_CHECKING:
    from .config import SiteConfig

FENCE_RE = re.compile(r"^(?P<indent>[ \t]*)(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
HIGHLIGHT_OPEN_RE = re.compile(
    r"^(?P<indent>[ \t]*)\{%-?\s*highlight\s+(?P<lang>[\w#.+-]+)(?P<opts>[^%]*)-?%\}\s*$"
)
HIGHLIGHT_CLOSE_RE = re.compile(r"^[ \t]*\{%-?\s*endhighlight\s*-?%\}\s*$")
LIST_MARKER_RE = re.compile(r"^(?P<indent>[ \t]*)(?:[-+*]|\d+[.)])\s+")
IMG_SRC_RE = re.compile(r'<img([^>]*?)src="([^"]+)"', re.IGNORECASE)
TAG_RE = re.compile(r"<[^>]+>")
PLACEHOLDER_RE = re.compile(r"\{\{\s*([\w.-]+)\s*\}\}")
EXCERPT_LENGTH = 200
HIGHLIGHT_CSS_CLASS = "highlight"
CODE_INDENT = 4


@dataclass(frozen=True)
class RenderedBody:
    html: str
    toc: str = ""


def render_code(code: str, lang: str, use_highlight: bool, linenos: bool = False) -> str:
    """HTML for one code region; the text itself is only escaped or highlighted."""
    lang = lang.strip()
    if not use_highlight:
        class_attr = f' class="language-{html.escape(lang)}"' if lang else ""
        return f"<pre><code{class_attr}>{html.escape(code, quote=False)}</code></pre>"
    try:
        lexer = get_lexer_by_name(lang, stripnl=False) if lang else TextLexer(stripnl=False)
    except ClassNotFound:
        lexer = TextLexer(stripnl=False)
    formatter = HtmlFormatter(cssclass=HIGHLIGHT_CSS_CLASS, linenos="table" if linenos else False)
    return highlight(code, lexer, formatter).strip()


def highlight_stylesheet(style: str) -> str:
    return HtmlFormatter(style=style, cssclass=HIGHLIGHT_CSS_CLASS).get_style_defs(f".{HIGHLIGHT_CSS_CLASS}")


def _columns(indent: str) -> int:
    return len(indent.expandtabs(4))


def _in_list(line: str, in_list: bool) -> bool:
    if LIST_MARKER_RE.match(line):
        return True
    if not line.strip() or line[:1] in (" ", "\t"):
        return in_list
    return False


def _dedent(line: str, indent: str) -> str:
    if indent and line.startswith(indent):
        return line[len(indent) :]
    return line.lstrip(" \t") if indent else line


class CodeBlockPreprocessor(Preprocessor):
    """Pulls fenced and `{% highlight %}` regions out before Markdown sees them.

    Each region becomes a placeholder line; `CodeBlockPostprocessor` swaps the
    rendered code back in. Runs ahead of whitespace normalisation so tabs and
    spacing inside code survive unchanged.
    """

    def __init__(self, md, extension: "CodeBlockExtension") -> None:
        super().__init__(md)
        self.extension = extension

    def run(self, lines: list[str]) -> list[str]:
        out: list[str] = []
        code: list[str] = []
        opener = None
        in_list = False
        for number, line in enumerate(lines, start=1):
            if opener is None:
                in_list = _in_list(line, in_list)
                fence = FENCE_RE.match(line)
                tag = HIGHLIGHT_OPEN_RE.match(line)
                if (fence or tag) and not in_list and _columns((fence or tag).group("indent")) >= CODE_INDENT:
                    # an indented code block, left to Markdown
                    fence = tag = None
                if fence and "`" not in fence.group("info"):
                    opener = {
                        "line": number,
                        "indent": fence.group("indent"),
                        "fence": fence.group("fence"),
                        "lang": fence.group("info").strip().split(" ")[0].lstrip("."),
                        "linenos": False,
                    }
                    code = []
                elif tag:
                    opener = {
                        "line": number,
                        "indent": tag.group("indent"),
                        "fence": None,
                        "lang": tag.group("lang"),
                        "linenos": "linenos" in tag.group("opts"),
                    }
                    code = []
                else:
                    self._append_text(out, line)
                continue

            if self._closes(opener, line):
                token = self.extension.stash(
                    render_code(
                        "".join(f"{item}\n" for item in code),
                        opener["lang"],
                        self.extension.use_highlight,
                        opener["linenos"],
                    )
                )
                out.extend(["", f"{opener['indent']}{token}", ""])
                opener = None
            else:
                code.append(_dedent(line, opener["indent"]))

        if opener is not None:
            kind = "fenced code block" if opener["fence"] else "highlight block"
            raise UnterminatedBlock(f"{kind} opened on line {opener['line']} is never closed", opener["line"])
        return out

    @staticmethod
    def _closes(opener: dict, line: str) -> bool:
        if opener["fence"] is None:
            return bool(HIGHLIGHT_CLOSE_RE.match(line))
        fence = FENCE_RE.match(line)
        if not fence or fence.group("info").strip():
            return False
        closing = fence.group("fence")
        return closing[0] == opener["fence"][0] and len(closing) >= len(opener["fence"])

    @staticmethod
    def _append_text(out: list[str], line: str) -> None:
        list_match = LIST_MARKER_RE.match(line)
        if list_match and not list_match.group("indent"):
            if out and out[-1].strip() and not LIST_MARKER_RE.match(out[-1]):
                out.append("")
        out.append(line)


class CodeBlockPostprocessor(Postprocessor):
    def __init__(self, md, extension: "CodeBlockExtension") -> None:
        super().__init__(md)
        self.extension = extension

    def run(self, text: str) -> str:
        for token, block in self.extension.blocks.items():
            text = text.replace(f"<p>{token}</p>", block).replace(token, block)
        return text


class CodeBlockExtension(Extension):
    def __init__(self, use_highlight: bool = True, **kwargs) -> None:
        super().__init__(**kwargs)
        self.use_highlight = use_highlight
        self.blocks: dict[str, str] = {}

    def stash(self, block: str) -> str:
        token = f"blogpresscodeblock{len(self.blocks)}end"
        self.blocks[token] = block
        return token

    def reset(self) -> None:
        self.blocks.clear()

    def extendMarkdown(self, md) -> None:
        md.registerExtension(self)
        md.preprocessors.register(CodeBlockPreprocessor(md, self), "blogpress_code", 40)
        md.postprocessors.register(CodeBlockPostprocessor(md, self), "blogpress_code", 5)


def render_body(body: str, config: "SiteConfig", root: str = ".") -> RenderedBody:
    """Convert a Markdown body to HTML with a fresh converter per call."""
    body = body.replace("\r\n", "\n").replace("\r", "\n")
    md = markdown.Markdown(
        extensions=["tables", "toc", CodeBlockExtension(use_highlight=config.highlight)],
        extension_configs={"toc": {"toc_depth": config.toc_depth}},
        output_format="html",
    )
    html_content = md.convert(body)
    toc_html = getattr(md, "toc", "")
    md.reset()
    return RenderedBody(fix_relative_img_src(html_content, root), toc_html)


def fix_relative_img_src(html_text: str, root: str) -> str:
    def repl(match: re.Match) -> str:
        attrs = match.group(1)
        src = match.group(2)
        if src.startswith(("http://", "https://", "data:", "#", "/", "./", "../")):
            return match.group(0)
        return f'<img{attrs}src="{root}/{src}"'

    return IMG_SRC_RE.sub(repl, html_text)


def strip_tags(html_text: str) -> str:
    return TAG_RE.sub("", html_text)


def make_excerpt(html_text: str, explicit: Optional[str] = None, length: int = EXCERPT_LENGTH) -> str:
    if explicit and explicit.strip():
        return explicit.strip()
    text = html.unescape(strip_tags(html_text))
    text = " ".join(text.split())
    if len(text) > length:
        return text[:length].rstrip() + "..."
    return text


def render_template(template: str, **context: str) -> str:
    """Fill `{{key}}` holes in one pass; substituted text is never rescanned."""

    def repl(match: re.Match) -> str:
        return context.get(match.group(1), match.group(0))

    return PLACEHOLDER_RE.sub(repl, template)
