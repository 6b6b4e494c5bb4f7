import re

import markdown
from bs4 import BeautifulSoup, Comment
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor

MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "sane_lists"]

ALLOWED_TAGS = {
    "a", "abbr", "b", "blockquote", "br", "caption", "code", "dd", "del",
    "details", "div", "dl", "dt", "em", "figcaption", "figure", "h1", "h2",
    "h3", "h4", "h5", "h6", "hr", "i", "img", "ins", "kbd", "li", "mark",
    "ol", "p", "pre", "q", "s", "small", "span", "strong", "sub", "summary",
    "sup", "table", "tbody", "td", "tfoot", "th", "thead", "tr", "u", "ul",
}

# removed together with everything inside them
DROPPED_TAGS = [
    "script", "style", "iframe", "frame", "frameset", "object", "embed",
    "applet", "template", "noscript", "form", "input", "textarea", "select",
    "button", "svg", "math", "link", "meta", "base", "title", "head",
]

GLOBAL_ATTRS = {"id", "class", "title", "lang", "dir"}
TAG_ATTRS = {
    "a": {"href", "name"},
    "img": {"src", "alt", "width", "height"},
    "ol": {"start"},
    "td": {"align", "colspan", "rowspan", "style"},
    "th": {"align", "colspan", "rowspan", "style"},
}
URL_ATTRS = {"href", "src"}
SAFE_SCHEMES = {"http", "https", "mailto", "tel"}

_SCHEME_RE = re.compile(r'^([a-zA-Z][a-zA-Z0-9+.\-]*):')
_DATA_IMAGE_RE = re.compile(r'^data:image/(png|gif|jpe?g|webp|bmp);', re.IGNORECASE)
_CELL_STYLE_RE = re.compile(r'^\s*text-align:\s*(left|right|center);?\s*$')
_CONTROL_RE = re.compile(r'[\x00-\x20\x7f]+')


def is_folder_relative(src: str) -> bool:
    return not src.startswith(("http", "/", "data:"))


class _FolderImageProcessor(Treeprocessor):

    def __init__(self, md, folder):
        super().__init__(md)
        self.folder = folder

    def run(self, root):
        for img in root.iter("img"):
            src = img.get("src")
            if src and is_folder_relative(src):
                img.set("src", f"{self.folder}/{src}")


class FolderImageExtension(Extension):
    """Prefix relative image sources with the folder the document lives in."""

    def __init__(self, **kwargs):
        self.config = {"folder": ["", "Folder prefixed to relative image paths"]}
        super().__init__(**kwargs)

    def extendMarkdown(self, md):
        # after the inline processor (20) has turned ![..](..) into <img>
        md.treeprocessors.register(
            _FolderImageProcessor(md, self.getConfig("folder")), "folder_images", 5)


def _safe_url(tag_name: str, value: str) -> bool:
    compact = _CONTROL_RE.sub("", value)
    m = _SCHEME_RE.match(compact)
    if not m:
        return True
    scheme = m.group(1).lower()
    if scheme == "data":
        return tag_name == "img" and bool(_DATA_IMAGE_RE.match(compact))
    return scheme in SAFE_SCHEMES


def _clean_attrs(tag) -> dict:
    allowed = GLOBAL_ATTRS | TAG_ATTRS.get(tag.name, set())
    kept = {}
    for name, value in tag.attrs.items():
        name = name.lower()
        if name not in allowed:
            continue
        if name in URL_ATTRS and not _safe_url(tag.name, str(value)):
            continue
        if name == "style" and not _CELL_STYLE_RE.match(str(value)):
            continue
        kept[name] = value
    return kept


def sanitize_html(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()

    dropped = soup.find(DROPPED_TAGS)
    while dropped is not None:
        dropped.decompose()
        dropped = soup.find(DROPPED_TAGS)

    for tag in soup.find_all(True):
        if tag.name not in ALLOWED_TAGS:
            tag.unwrap()
        else:
            tag.attrs = _clean_attrs(tag)
    return str(soup)


def render_markdown(content: str, folder: str | None = None) -> str:
    """Markdown to sanitized HTML; relative images resolve inside ``folder``."""
    if not content:
        return ""
    extensions = list(MARKDOWN_EXTENSIONS)
    if folder:
        extensions.append(FolderImageExtension(folder=folder))
    return sanitize_html(markdown.markdown(content, extensions=extensions))
