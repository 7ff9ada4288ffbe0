"""ProgramState: the loaded program and the last decoded instruction.

Labels are declared on their own line:

    .loop          # label "loop" -> its 1-based line number

A label name is 1-16 alphabetic characters and is matched case
insensitively. The first declaration of a name wins; later duplicates are
logged and ignored. Jumping to a label sets the program counter to the
label's line number, so the next fetch resumes on the line after it.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .decode import COMMENT_MARKER, LABEL_MARKER, MAX_OPERANDS, Opcode, Operand


logger = logging.getLogger(__name__)

MAX_LABEL_LENGTH = 16


def parse_label(line: str) -> Optional[str]:
    """Return the label declared on a line, or None if it declares none."""
    stripped = line.strip()
    if not stripped.startswith(LABEL_MARKER):
        return None
    name = stripped[len(LABEL_MARKER):].split(COMMENT_MARKER, 1)[0].strip()
    if not name.isalpha() or len(name) > MAX_LABEL_LENGTH:
        return None
    return name.lower()


def build_label_table(source: str) -> Dict[str, int]:
    """Scan a whole program top to bottom for label declarations.

    Args:
        source: Program text

    Returns:
        Mapping of label name to 1-based line number
    """
    labels: Dict[str, int] = {}
    for number, line in enumerate(source.splitlines(), start=1):
        if not line.strip().startswith(LABEL_MARKER):
            continue
        name = parse_label(line)
        if name is None:
            logger.warning("Ignoring malformed label on line %d: %r", number, line.strip())
            continue
        if name in labels:
            logger.warning(
                "Duplicate label '.%s' on line %d (first declared on line %d)",
                name, number, labels[name]
            )
            continue
        labels[name] = number
    return labels


def _empty_operands() -> List[Operand]:
    return [Operand() for _ in range(MAX_OPERANDS)]


@dataclass
class ProgramState:
    """Program text plus the decoded form of the last fetched instruction.

    Attributes:
        source: Full program text
        name: Identifier supplied by whoever loaded the program
        labels: Label name -> 1-based line number
        line: Last fetched instruction line
        line_number: 1-based line number of `line` (0 before any fetch)
        keyword: Raw opcode token of the last decoded line
        opcode: Decoded opcode
        operands: Three operand slots
    """
    source: str = ""
    name: str = "<none>"
    labels: Dict[str, int] = field(default_factory=dict)
    line: str = ""
    line_number: int = 0
    keyword: str = ""
    opcode: Opcode = Opcode.NONE
    operands: List[Operand] = field(default_factory=_empty_operands)

    def __post_init__(self):
        self._lines: List[str] = self.source.splitlines()
        self._labels_source: Optional[str] = None
        self.refresh_labels()

    @classmethod
    def load(cls, source: str, name: str = "<inline>") -> "ProgramState":
        """Create a fresh program state for new source text."""
        logger.info("Loading program %s (%d lines)", name, len(source.splitlines()))
        return cls(source=source, name=name)

    @property
    def lines(self) -> List[str]:
        self.refresh_labels()
        return self._lines

    def refresh_labels(self) -> Dict[str, int]:
        """Rebuild the label table if the text changed since the last build."""
        if self._labels_source is not self.source:
            self._lines = self.source.splitlines()
            self.labels = build_label_table(self.source)
            self._labels_source = self.source
        return self.labels

    def resolve_label(self, name: str) -> Optional[int]:
        return self.labels.get(name.lower())

    def clear_instruction(self) -> None:
        """Forget the last decoded instruction."""
        self.line = ""
        self.keyword = ""
        self.opcode = Opcode.NONE
        self.operands = _empty_operands()

    def operand_tokens(self) -> List[str]:
        return [op.token for op in self.operands if op.token]
