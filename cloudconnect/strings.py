"""Small text clean-up helpers used when handling configuration and requests."""

_QUOTE = '"'


def _is_blank(ch: str) -> bool:
    """Return True for whitespace and for characters that are not printable."""
    return ch.isspace() or not ch.isprintable()


def delete_quotes(text: str) -> str:
    """Remove one double quote from the end and one from the start of ``text``."""
    if not text:
        return text
    if text.endswith(_QUOTE):
        text = text[:-1]
    if text.startswith(_QUOTE):
        text = text[1:]
    return text


def delete_leading_spaces(text: str) -> str:
    """Remove leading whitespace and non-printable characters."""
    if not text:
        return text
    for index, ch in enumerate(text):
        if not _is_blank(ch):
            return text[index:]
    return ""


def delete_trailing_spaces(text: str) -> str:
    """Remove trailing whitespace (newlines and carriage returns included)
    and non-printable characters."""
    if not text:
        return text
    end = len(text)
    while end > 0 and _is_blank(text[end - 1]):
        end -= 1
    return text[:end]


def trim(text: str) -> str:
    """Remove leading and trailing whitespace and non-printable characters."""
    return delete_leading_spaces(delete_trailing_spaces(text))


def delete_newline_character(text: str) -> str:
    """Remove a single newline character from the end of ``text``."""
    if text and text.endswith("\n"):
        return text[:-1]
    return text