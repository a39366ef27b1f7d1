"""Text cleaning applied before chunking and mapping."""

import re

_REPLACEMENTS = {
    "ﬁ": "fi",
    "ﬂ": "fl",
    "ﬀ": "ff",
    "ﬃ": "ffi",
    "ﬄ": "ffl",
    "\u2013": "-",
    "\u2014": "--",
    "\u201c": '"',
    "\u201d": '"',
    "\u2018": "'",
    "\u2019": "'",
    "\u00a0": " ",
    "\u3000": " ",
    "\t": " ",
}

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f\u200b\ufeff]")
_MULTIPLE_SPACES = re.compile(r"[ ]{2,}")
_MULTIPLE_NEWLINES = re.compile(r"\n{3,}")


class TextCleaningService:
    """Normalizes extracted text without changing its meaning."""

    def __init__(self, replacements: dict[str, str] | None = None):
        self._replacements = replacements or _REPLACEMENTS
        self._pattern = re.compile("|".join(map(re.escape, self._replacements)))

    def normalize_characters(self, text: str) -> str:
        """Replace typographic characters and drop control characters.

        Whitespace runs are kept, tabs become two spaces, so column gaps in
        layout-extracted text survive.
        """
        if not text:
            return ""
        text = text.replace("\t", "  ")
        text = self._pattern.sub(lambda m: self._replacements[m.group(0)], text)
        return _CONTROL_CHARS.sub("", text)

    def clean(self, text: str) -> str:
        if not text:
            return ""

        text = text.replace("\r\n", "\n").replace("\r", "\n")
        text = self._pattern.sub(lambda m: self._replacements[m.group(0)], text)
        text = _CONTROL_CHARS.sub("", text)
        text = _MULTIPLE_SPACES.sub(" ", text)
        text = "\n".join(line.strip() for line in text.split("\n"))
        text = _MULTIPLE_NEWLINES.sub("\n\n", text)
        return text.strip()
