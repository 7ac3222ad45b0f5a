"""
Markup cleanup before prompting: strip what the model never needs
(scripts, styles, comments, hidden elements) and cap the size.
"""

import re

_SCRIPT = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_STYLE = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.IGNORECASE)
_NOSCRIPT = re.compile(r"<noscript\b[^<]*(?:(?!</noscript>)<[^<]*)*</noscript>", re.IGNORECASE)
_COMMENT = re.compile(r"<!--[\s\S]*?-->")
_DISPLAY_NONE = re.compile(
    r"""<[^>]+\sstyle\s*=\s*["'][^"']*display\s*:\s*none[^"']*["'][^>]*>[\s\S]*?</[^>]+>""",
    re.IGNORECASE,
)
_VISIBILITY_HIDDEN = re.compile(
    r"""<[^>]+\sstyle\s*=\s*["'][^"']*visibility\s*:\s*hidden[^"']*["'][^>]*>[\s\S]*?</[^>]+>""",
    re.IGNORECASE,
)
_HIDDEN_INPUT = re.compile(r"""<input[^>]*type\s*=\s*["']hidden["'][^>]*>""", re.IGNORECASE)
_BODY = re.compile(r"<body[^>]*>([\s\S]*)</body>", re.IGNORECASE)


def preprocess_html(html: str, max_chars: int = 50_000) -> str:
    cleaned = html or ""
    for pattern in (_SCRIPT, _STYLE, _COMMENT, _NOSCRIPT, _DISPLAY_NONE, _VISIBILITY_HIDDEN, _HIDDEN_INPUT):
        cleaned = pattern.sub("", cleaned)

    cleaned = re.sub(r"[ \t]+", " ", cleaned)
    cleaned = re.sub(r"\n\s*\n", "\n", cleaned)
    cleaned = re.sub(r"^[ \t]+|[ \t]+$", "", cleaned, flags=re.MULTILINE)

    if len(cleaned) > max_chars:
        truncated = cleaned[:max_chars]
        # Cut at a tag boundary if one is close to the limit
        last_tag_end = truncated.rfind(">")
        if last_tag_end > max_chars * 0.9:
            truncated = truncated[:last_tag_end + 1]
        cleaned = truncated

    return cleaned.strip()


def extract_body_content(html: str) -> str:
    match = _BODY.search(html or "")
    if match and match.group(1):
        return match.group(1)
    return html


def preprocessing_stats(original: str, processed: str) -> dict:
    original_size = len(original)
    processed_size = len(processed)
    reduction = original_size - processed_size
    return {
        "original_size": original_size,
        "processed_size": processed_size,
        "reduction": reduction,
        "reduction_percent": round(reduction / original_size * 100, 1) if original_size else 0.0,
    }
