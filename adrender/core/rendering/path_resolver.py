"""
Path Resolver
=============

Rewrites asset references in a template document so that it renders
correctly outside of its template folder.
"""

from enum import Enum
import re

from adrender.config.logging import get_logger

logger = get_logger(__name__)


class PathContext(str, Enum):
    """Where a document will be loaded from."""
    STATIC_EXPORT = "static_export"  # shipped next to its assets, references untouched
    PREVIEW = "preview"  # loaded from memory, references resolved against the template URL
    RENDER = "render"


UNRESOLVED_PREFIXES = (
    "/",
    "http://",
    "https://",
    "data:",
    "blob:",
    "#",
    "javascript:",
)

HEAD_PATTERN = re.compile(r"<head([^>]*)>", re.IGNORECASE)

SRC_PATTERN = re.compile(
    r"(<(?:script|img|source|video|audio|embed|iframe)[^>]*\s+src\s*=\s*[\"'])([^\"']+)([\"'])",
    re.IGNORECASE,
)
HREF_PATTERN = re.compile(
    r"(<(?:link|a)[^>]*\s+href\s*=\s*[\"'])([^\"']+)([\"'])",
    re.IGNORECASE,
)
URL_PATTERN = re.compile(r"url\(\s*[\"']?([^\"')]+)[\"']?\s*\)", re.IGNORECASE)
SCRIPT_BLOCK_PATTERN = re.compile(r"(<script\b[^>]*>)(.*?)(</script\s*>)", re.IGNORECASE | re.DOTALL)


def is_resolved(reference: str) -> bool:
    """True for references that must never be rewritten (absolute, protocol-relative, inline)."""
    return reference.strip().lower().startswith(UNRESOLVED_PREFIXES)


def resolve_reference(reference: str, base: str) -> str:
    """Resolve one relative reference against the base URL."""
    if is_resolved(reference):
        return reference
    clean = reference[2:] if reference.startswith("./") else reference
    return f"{base.rstrip('/')}/{clean}"


def inject_base_tag(html: str, base: str) -> str:
    """Insert `<base href="{base}/">` right after the opening head tag."""
    tag = f'<base href="{base.rstrip("/")}/">'
    result, count = HEAD_PATTERN.subn(lambda m: f"<head{m.group(1)}>\n    {tag}", html, count=1)
    if count == 0:
        logger.debug("Document has no head element, base tag not injected")
    return result


def absolutize_references(html: str, base: str) -> str:
    """
    Rewrite relative src, href and url() references to URLs under base.

    Script bodies are left as they are; only the opening tag of a script
    element has its src rewritten.
    """

    def replace_attribute(match: "re.Match[str]") -> str:
        return f"{match.group(1)}{resolve_reference(match.group(2), base)}{match.group(3)}"

    def replace_url(match: "re.Match[str]") -> str:
        reference = match.group(1)
        if is_resolved(reference):
            return match.group(0)
        return f"url('{resolve_reference(reference, base)}')"

    def rewrite_markup(markup: str) -> str:
        markup = SRC_PATTERN.sub(replace_attribute, markup)
        markup = HREF_PATTERN.sub(replace_attribute, markup)
        return URL_PATTERN.sub(replace_url, markup)

    parts = []
    position = 0
    for block in SCRIPT_BLOCK_PATTERN.finditer(html):
        parts.append(rewrite_markup(html[position:block.start()]))
        parts.append(SRC_PATTERN.sub(replace_attribute, block.group(1)) + block.group(2) + block.group(3))
        position = block.end()
    parts.append(rewrite_markup(html[position:]))
    return "".join(parts)


def resolve_paths(html: str, base: str, context: PathContext, absolutize: bool = True) -> str:
    """
    Apply the path strategy for a loading context.

    Static exports are returned unchanged. Previews and renders get a base tag,
    and relative references are also rewritten unless absolutize is False.
    """
    if context == PathContext.STATIC_EXPORT:
        return html

    html = inject_base_tag(html, base)
    if absolutize:
        html = absolutize_references(html, base)
    return html
