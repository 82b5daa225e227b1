from __future__ import annotations

import io
from pathlib import Path

import pandas as pd
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from ..config.entity_types import get_entity_spec
from ..models.entity_spec import EntityTypeSpec

"""Import template generation.

A template is an xlsx workbook whose first sheet carries the display labels
of an entity type (required ones marked with '*', which the column mapper
ignores when matching) followed by the example rows, and a second
"Istruzioni" sheet with notes for the operator. It depends only on the
EntityTypeSpec.
"""

__all__ = [
    "REQUIRED_MARK",
    "INSTRUCTIONS_SHEET",
    "template_headers",
    "build_template",
    "write_template",
]

REQUIRED_MARK = "*"
INSTRUCTIONS_SHEET = "Istruzioni"

_HEADER_FILL = PatternFill(start_color="FFD9E1F2", end_color="FFD9E1F2", fill_type="solid")


def template_headers(spec: EntityTypeSpec) -> list[str]:
    return [f.display_label + (REQUIRED_MARK if f.required else "") for f in spec.fields]


def _instructions(spec: EntityTypeSpec) -> pd.DataFrame:
    rows = [[f"Importazione {spec.label}"], [""]]
    rows.extend([note] for note in spec.notes)
    rows.append([""])
    rows.append(["Colonne accettate:"])
    for f in spec.fields:
        synonyms = ", ".join(f.header_synonyms)
        required = " (obbligatorio)" if f.required else ""
        rows.append([f"{f.display_label}{required}: {synonyms}"])
    return pd.DataFrame(rows)


def build_template(entity_type: str) -> bytes:
    """Return the xlsx template of an entity type as bytes."""
    spec = get_entity_spec(entity_type)
    headers = template_headers(spec)
    examples = [[example.get(f.key) for f in spec.fields] for example in spec.examples]
    data = pd.DataFrame(examples, columns=headers)

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        data.to_excel(writer, sheet_name=spec.label, index=False)
        _instructions(spec).to_excel(writer, sheet_name=INSTRUCTIONS_SHEET, header=False, index=False)

        sheet = writer.sheets[spec.label]
        for col, f in enumerate(spec.fields, start=1):
            sheet.column_dimensions[get_column_letter(col)].width = f.width
            cell = sheet.cell(row=1, column=col)
            cell.font = Font(bold=True)
            cell.fill = _HEADER_FILL
        sheet.freeze_panes = "A2"
        writer.sheets[INSTRUCTIONS_SHEET].column_dimensions["A"].width = 100
    return buffer.getvalue()


def write_template(entity_type: str, path: Path) -> Path:
    path.write_bytes(build_template(entity_type))
    return path
