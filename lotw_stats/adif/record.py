from dataclasses import dataclass, field
from typing import Iterator, Optional

from lotw_stats.constants import EOF_TAG
from lotw_stats.errors import AdifParseError

EOH = "eoh"
EOR = "eor"
EOF = EOF_TAG.lower()

# Tags which carry no data and only mark structure
MARKERS = {EOH, EOR, EOF}


@dataclass
class AdifSpecifier:
    """
    Specifier for a ADIF field, like <name:4>jawn

    <field_name:length>
    <field_name:length:type>
    """

    field_name: str
    length: int = 0
    type_: str = ""

    @classmethod
    def parse(cls, spec: str) -> "AdifSpecifier":
        """
        Parse a specifier from a string
        """
        spec = spec.lower().strip("<>")
        parts = spec.split(":")
        if not parts[0]:
            raise AdifParseError(f"Invalid specifier: <{spec}>")

        if len(parts) == 1:
            # Something like <eoh> or <eor>
            return AdifSpecifier(parts[0])
        if len(parts) > 3:
            raise AdifParseError(f"Invalid specifier: <{spec}>")

        try:
            length = int(parts[1])
        except ValueError:
            raise AdifParseError(f"Invalid length in specifier: <{spec}>")
        if length < 0:
            raise AdifParseError(f"Negative length in specifier: <{spec}>")

        type_ = parts[2] if len(parts) == 3 else ""
        return AdifSpecifier(parts[0], length, type_)


@dataclass
class AdifToken:
    """
    A specifier found in some text, along with its value. start is the offset of the
    opening "<" and end is the offset just past the value.
    """

    spec: AdifSpecifier
    start: int
    end: int
    value: str = ""

    @property
    def name(self) -> str:
        return self.spec.field_name


def read_tokens(text: str) -> Iterator[AdifToken]:
    """
    Yield every specifier in the text along with its value. The value is always exactly
    the number of characters the specifier says it is, even if it contains a "<" or
    runs over a line break.
    """
    pos = 0
    while True:
        start = text.find("<", pos)
        if start == -1:
            return

        close = text.find(">", start)
        if close == -1:
            raise AdifParseError(f"Dangling specifier at offset {start}")

        spec = AdifSpecifier.parse(text[start : close + 1])
        value_end = close + 1 + spec.length
        if value_end > len(text):
            raise AdifParseError(
                f"Value of <{spec.field_name}:{spec.length}> runs past the end of the "
                "text"
            )

        yield AdifToken(spec, start, value_end, text[close + 1 : value_end])
        pos = value_end


@dataclass
class AdifRecord:
    # Raw fields, as a dict. Names are lowercase, values are stripped.
    fields: dict[str, str] = field(default_factory=dict)

    # Text of the record from the start of its first field to the end of its last
    # value. Written back as-is so records come out byte for byte the way LoTW sent
    # them.
    raw: str = field(default="", compare=False, repr=False)

    @classmethod
    def from_block(cls, block: str) -> "AdifRecord":
        """
        Parse a record from the text between two <eor>s. If a field shows up twice, the
        last one wins.
        """
        fields = {}
        start = end = 0
        for token in read_tokens(block):
            if token.name in MARKERS:
                continue
            if not fields:
                start = token.start
            end = token.end
            fields[token.name] = token.value.strip()
        # Values are length counted, so whitespace at the end of the last one is part
        # of it and has to stay
        return cls(fields=fields, raw=block[start:end])

    def __str__(self) -> str:
        return self.raw + "\n<eor>"

    def __getitem__(self, key: str) -> str:
        return self.fields[key]

    @property
    def dxcc(self) -> str:
        """
        DXCC entity code, "" if the record has none
        """
        return self.fields.get("dxcc", "").strip()

    @property
    def confirmed(self) -> bool:
        """
        Whether the QSO is confirmed. LoTW reports this in either of two fields.
        """
        return (
            self.fields.get("qsl_rcvd") == "Y"
            or self.fields.get("app_lotw_qsl_rcvd") == "Y"
        )

    @property
    def qso_timestamp(self) -> Optional[str]:
        """
        When LoTW received the QSO. Unique per record, so it's what QSL updates are
        matched on.
        """
        return self.fields.get("app_lotw_qso_timestamp") or None

