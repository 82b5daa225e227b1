#!/usr/bin/env python3
"""Sample dataset generation for manual import trials.

Generates synthetic company or student files (xlsx or csv) with Italian
headers, as an operator would upload them. A share of the rows can be made
invalid (malformed VAT number / fiscal code, missing required field) and a
share can repeat an earlier row, so the preview shows every issue kind.

Examples:
  %(prog)s companies aziende.xlsx --rows 200
  %(prog)s students studenti.csv --rows 500 --invalid 0.1 --duplicates 0.05
"""
from __future__ import annotations

import argparse
import string
import sys
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

FIRST_NAMES = ["Mario", "Giulia", "Luca", "Francesca", "Marco", "Chiara", "Andrea", "Sara", "Paolo", "Elena"]
LAST_NAMES = ["Rossi", "Bianchi", "Russo", "Ferrari", "Esposito", "Romano", "Colombo", "Ricci", "Greco", "Bruno"]
CITIES = [("Milano", "MI", "20121"), ("Roma", "RM", "00184"), ("Napoli", "NA", "80133"), ("Torino", "TO", "10121")]
COMPANY_KINDS = ["Costruzioni", "Logistica", "Impianti", "Servizi", "Meccanica"]
MONTH_LETTERS = "ABCDEHLMPRST"


def vat_check_digit(first_ten: str) -> str:
    total = 0
    for i, ch in enumerate(first_ten):
        n = int(ch)
        if i % 2 == 1:
            n *= 2
            if n > 9:
                n -= 9
        total += n
    return str((10 - total % 10) % 10)


def random_vat(rng: np.random.Generator) -> str:
    first_ten = "".join(str(d) for d in rng.integers(0, 10, 10))
    return first_ten + vat_check_digit(first_ten)


def random_fiscal_code(rng: np.random.Generator) -> str:
    letters = lambda n: "".join(rng.choice(list(string.ascii_uppercase), n))  # noqa: E731
    year = f"{rng.integers(50, 100):02d}"
    day = f"{rng.integers(1, 29):02d}"
    town = f"{letters(1)}{rng.integers(100, 1000)}"
    return f"{letters(6)}{year}{rng.choice(list(MONTH_LETTERS))}{day}{town}{letters(1)}"


def _company_row(rng: np.random.Generator, i: int) -> dict[str, Any]:
    city, province, cap = CITIES[int(rng.integers(0, len(CITIES)))]
    return {
        "Ragione Sociale": f"{rng.choice(COMPANY_KINDS)} {rng.choice(LAST_NAMES)} S.r.l. {i}",
        "Partita IVA": random_vat(rng),
        "Indirizzo": f"Via Roma {rng.integers(1, 200)}",
        "Città": city,
        "Provincia": province,
        "CAP": cap,
        "Telefono": f"02{rng.integers(1_000_000, 9_999_999)}",
        "Email": f"info{i}@example.it",
    }


def _student_row(rng: np.random.Generator, i: int) -> dict[str, Any]:
    first, last = rng.choice(FIRST_NAMES), rng.choice(LAST_NAMES)
    birth = pd.Timestamp("1960-01-01") + pd.Timedelta(days=int(rng.integers(0, 40 * 365)))
    return {
        "Nome": first,
        "Cognome": last,
        "Codice Fiscale": random_fiscal_code(rng),
        "Email": f"{first.lower()}.{last.lower()}{i}@example.it",
        "Data di nascita": birth.strftime("%d/%m/%Y"),
        "Luogo di nascita": CITIES[int(rng.integers(0, len(CITIES)))][0],
    }


def _spoil(row: dict[str, Any], entity: str, rng: np.random.Generator) -> None:
    """Make one row invalid in one of the ways the preview reports."""
    kind = int(rng.integers(0, 2))
    if entity == "companies":
        if kind == 0:
            row["Partita IVA"] = row["Partita IVA"][:7]
        else:
            row["Ragione Sociale"] = ""
    else:
        if kind == 0:
            row["Codice Fiscale"] = row["Codice Fiscale"][:10]
        else:
            row["Cognome"] = ""


def generate_dataset(
    entity: str, rows: int, invalid: float = 0.0, duplicates: float = 0.0, seed: int = 42
) -> pd.DataFrame:
    """Build the rows of a sample file.

    Args:
        entity: "companies" or "students"
        rows: number of data rows
        invalid: share of rows made invalid
        duplicates: share of rows copying an earlier row
        seed: random seed for reproducible data
    """
    rng = np.random.default_rng(seed)
    make_row = _company_row if entity == "companies" else _student_row
    data: list[dict[str, Any]] = []
    for i in range(1, rows + 1):
        if data and rng.random() < duplicates:
            data.append(dict(data[int(rng.integers(0, len(data)))]))
            continue
        row = make_row(rng, i)
        if rng.random() < invalid:
            _spoil(row, entity, rng)
        data.append(row)
    return pd.DataFrame(data)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate sample company / student files for import trials",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:")[1],
    )
    parser.add_argument("entity", choices=["companies", "students"])
    parser.add_argument("output", type=Path, help="Output .xlsx or .csv path")
    parser.add_argument("--rows", type=int, default=100, help="Number of data rows (default: 100)")
    parser.add_argument("--invalid", type=float, default=0.0, help="Share of invalid rows (default: 0)")
    parser.add_argument("--duplicates", type=float, default=0.0, help="Share of repeated rows (default: 0)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    for name in ("invalid", "duplicates"):
        if not 0.0 <= getattr(args, name) <= 1.0:
            print(f"Error: --{name} must be between 0 and 1", file=sys.stderr)
            return 1

    df = generate_dataset(args.entity, args.rows, args.invalid, args.duplicates, args.seed)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    if args.output.suffix.lower() == ".csv":
        df.to_csv(args.output, sep=";", index=False, encoding="utf-8")
    else:
        df.to_excel(args.output, index=False, engine="openpyxl")

    print(f"Created {args.entity} file: {args.output}")
    print(f"  Rows: {len(df)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
