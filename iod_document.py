from __future__ import annotations

from dataclasses import dataclass, field

KNOWN_DIRECTIVES = frozenset({"noop"})
_UTF8_BOM = "\ufeff"


class ParseError(ValueError):
    """
    Raised for malformed IOD/INI structure. `lineno` is 1-based.
    """

    def __init__(self, message: str, lineno: int | None = None):
        self.message = message
        self.lineno = lineno
        super().__init__(f"line {lineno}: {message}" if lineno is not None else message)


@dataclass
class Entry:
    key: str
    value: str
    # Original line text; None once the entry was edited or inserted.
    raw: str | None = None

    def render(self) -> str:
        return self.raw if self.raw is not None else f"{self.key}={self.value}"


@dataclass
class Section:
    name: str
    # Raw header line; None for the global section and for headers we create.
    header: str | None = None
    lines: list[Entry | str] = field(default_factory=list)

    @property
    def entries(self) -> list[Entry]:
        return [line for line in self.lines if isinstance(line, Entry)]

    def render(self) -> list[str]:
        out: list[str] = []
        if self.name or self.header is not None:
            out.append(self.header if self.header is not None else f"[{self.name}]")
        out.extend(line.render() if isinstance(line, Entry) else line for line in self.lines)
        return out


@dataclass
class Document:
    """
    An IOD/INI document as an ordered list of section blocks.

    The first block is always the global section (name ""). The same section
    name may appear in several blocks; lookups treat them as one section and
    the last occurrence of a key wins.
    """

    sections: list[Section] = field(default_factory=lambda: [Section("")])
    newline: str = "\n"
    trailing_newline: bool = True
    bom: bool = False

    def _blocks(self, section: str) -> list[Section]:
        return [s for s in self.sections if s.name == section]

    def section_names(self) -> list[str]:
        names: list[str] = []
        for s in self.sections:
            if s.name and s.name not in names:
                names.append(s.name)
        return names

    def _last_entry(self, section: str, key: str) -> Entry | None:
        found = None
        for block in self._blocks(section):
            for entry in block.entries:
                if entry.key == key:
                    found = entry
        return found

    def key_exists(self, section: str, key: str) -> bool:
        return self._last_entry(section, key) is not None

    def get_value(self, section: str, key: str) -> str | None:
        entry = self._last_entry(section, key)
        return entry.value if entry is not None else None

    def section_items(self, section: str) -> dict[str, str]:
        items: dict[str, str] = {}
        for block in self._blocks(section):
            for entry in block.entries:
                items[entry.key] = entry.value
        return items

    def set_value(self, section: str, key: str, value: str) -> None:
        """
        Update the last occurrence of `key`, or insert it after the last entry
        of the section (creating the section at the end if needed).
        """
        entry = self._last_entry(section, key)
        if entry is not None:
            entry.value = value
            entry.raw = None
            return

        self.trailing_newline = True
        blocks = self._blocks(section)
        if not blocks:
            if any(s.render() for s in self.sections):
                last = self.sections[-1]
                if not (last.lines and isinstance(last.lines[-1], str) and not last.lines[-1].strip()):
                    last.lines.append("")
            blocks = [Section(section)]
            self.sections.append(blocks[0])

        block = blocks[-1]
        insert_at = len(block.lines)
        while insert_at and isinstance(block.lines[insert_at - 1], str) and not block.lines[insert_at - 1].strip():
            insert_at -= 1
        block.lines.insert(insert_at, Entry(key, value))


def _detect_newline(text: str) -> str:
    idx = text.find("\n")
    if idx > 0 and text[idx - 1] == "\r":
        return "\r\n"
    return "\n"


def _parse_header(line: str, lineno: int) -> str:
    stripped = line.strip()
    close = stripped.find("]")
    if close < 0:
        raise ParseError("unterminated section header", lineno)
    name = stripped[1:close].strip()
    if not name:
        raise ParseError("empty section name", lineno)
    if "[" in name:
        raise ParseError("invalid section name", lineno)
    rest = stripped[close + 1 :].strip()
    if rest and rest[0] not in ";#":
        raise ParseError("unexpected text after section header", lineno)
    return name


def parse(data: bytes | str, *, ignore_unknown_directives: bool = True) -> Document:
    """
    Parse IOD/INI text into a Document.

    Blank lines, comments and directives are kept as raw text so that
    `serialize` reproduces untouched lines exactly.
    """
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"file is not valid UTF-8: {e}") from e
    else:
        text = data

    doc = Document()
    if text.startswith(_UTF8_BOM):
        doc.bom = True
        text = text[1:]
    if not text:
        return doc

    doc.newline = _detect_newline(text)
    doc.trailing_newline = text.endswith("\n")
    lines = [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]
    if doc.trailing_newline:
        lines.pop()

    current = doc.sections[0]
    for lineno, line in enumerate(lines, start=1):
        stripped = line.strip()
        if not stripped:
            current.lines.append(line)
        elif stripped[0] in ";#":
            if stripped[1:2] == "!":
                directive = stripped[2:].split(None, 1)
                name = directive[0] if directive else ""
                if name not in KNOWN_DIRECTIVES and not ignore_unknown_directives:
                    raise ParseError(f"unknown directive {name!r}", lineno)
            current.lines.append(line)
        elif stripped[0] == "[":
            current = Section(_parse_header(line, lineno), header=line)
            doc.sections.append(current)
        elif "=" in line:
            key, value = line.split("=", 1)
            key = key.strip()
            if not key:
                raise ParseError("empty key", lineno)
            current.lines.append(Entry(key, value, raw=line))
        else:
            raise ParseError("invalid key line (expected key=value)", lineno)
    return doc


def serialize(doc: Document) -> bytes:
    lines: list[str] = []
    for section in doc.sections:
        lines.extend(section.render())
    text = doc.newline.join(lines)
    if lines and doc.trailing_newline:
        text += doc.newline
    if doc.bom:
        text = _UTF8_BOM + text
    return text.encode("utf-8")


class IodParser:
    """
    Parser with fixed options, so a store can build it once and reuse it.
    """

    def __init__(self, *, ignore_unknown_directives: bool = True):
        self.ignore_unknown_directives = ignore_unknown_directives

    def parse(self, data: bytes | str) -> Document:
        return parse(data, ignore_unknown_directives=self.ignore_unknown_directives)

    def serialize(self, doc: Document) -> bytes:
        return serialize(doc)

    def read_file(self, path) -> Document:
        with open(path, "rb") as f:
            return self.parse(f.read())
