# templates.py: fixed-format column layouts (FORTRAN, COBOL, JCL, assembler)
from typing import Dict, Optional, Sequence, Tuple

from ..core.card import SEQUENCE_SPAN, ColumnSpan, PunchCard
from ..core.encoding import EncodingTable
from ..core.errors import TextOverflow, UnknownTemplate


class TemplateField:
    def __init__(self, name: str, start: int, end: int, description: str):
        self.name = name
        self.span = ColumnSpan(start, end)
        self.description = description

    def __repr__(self):
        return f"TemplateField({self.name!r}, {self.span})"


class Template:
    """A language's card layout: named fields plus the spans a new card protects."""

    def __init__(self, name: str, description: str, fields: Sequence[TemplateField],
                 protected: Sequence[ColumnSpan] = (SEQUENCE_SPAN,)):
        self.name = name
        self.description = description
        self.fields: Tuple[TemplateField, ...] = tuple(fields)
        self.protected: Tuple[ColumnSpan, ...] = tuple(protected)

    def field_span(self, name: str) -> ColumnSpan:
        for f in self.fields:
            if f.name == name:
                return f.span
        raise KeyError(f"template '{self.name}' has no field '{name}'")

    def protected_columns(self):
        return sorted({col for span in self.protected for col in span})

    def new_card(self, text: str = "", table: Optional[EncodingTable] = None,
                 label: Optional[str] = None) -> PunchCard:
        """
        Blank card with the template's protection already set, then `text`
        (trailing blanks dropped) punched from column 1. Text that reaches a
        protected column is refused.
        """
        card = PunchCard.blank(table=table, protected=self.protected_columns(), label=label)
        card.set_text(1, text.rstrip(" "))
        return card

    def field(self, card: PunchCard, name: str) -> str:
        return card.get_text(columns=self.field_span(name)).text

    def set_field(self, card: PunchCard, name: str, text: str, override: bool = False):
        """Replace the whole field, left-justified and blank-filled."""
        span = self.field_span(name)
        if len(text) > span.width:
            raise TextOverflow(span.start, len(text), span.end)
        card.set_text(span.start, text.ljust(span.width), override=override)


FORTRAN = Template("fortran", "FORTRAN IV fixed-format source", [
    TemplateField("label", 1, 5, "Statement label (C in column 1 marks a comment)"),
    TemplateField("continuation", 6, 6, "Non-blank for a continuation line"),
    TemplateField("statement", 7, 72, "Source statement"),
    TemplateField("sequence", 73, 80, "Sequence number"),
])

COBOL = Template("cobol", "COBOL reference format", [
    TemplateField("sequence", 1, 6, "Sequence number area"),
    TemplateField("indicator", 7, 7, "Indicator (* comment, - continuation)"),
    TemplateField("area_a", 8, 11, "Area A: divisions, sections, paragraphs"),
    TemplateField("area_b", 12, 72, "Area B: statements"),
    TemplateField("identification", 73, 80, "Program identification / sequence"),
])

JCL = Template("jcl", "IBM OS/360 job control statements", [
    TemplateField("identifier", 1, 2, "// (or /* for delimiters)"),
    TemplateField("name", 3, 10, "Job, step or DD name"),
    TemplateField("operation", 11, 15, "JOB, EXEC or DD"),
    TemplateField("parameters", 16, 71, "Operands and comments"),
    TemplateField("continuation", 72, 72, "Non-blank to continue"),
    TemplateField("sequence", 73, 80, "Sequence number"),
])

ASSEMBLER = Template("assembler", "System/360 assembler (H) source", [
    TemplateField("name", 1, 8, "Name field"),
    TemplateField("operation", 10, 15, "Operation code"),
    TemplateField("operands", 16, 71, "Operands and remarks"),
    TemplateField("continuation", 72, 72, "Non-blank to continue"),
    TemplateField("sequence", 73, 80, "Identification-sequence field"),
])

TEMPLATES: Dict[str, Template] = {t.name: t for t in (FORTRAN, COBOL, JCL, ASSEMBLER)}


def get_template(name: str) -> Template:
    try:
        return TEMPLATES[name.strip().lower()]
    except KeyError:
        raise UnknownTemplate(name, TEMPLATES) from None
