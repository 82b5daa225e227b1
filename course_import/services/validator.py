from __future__ import annotations

import logging
import re
from collections.abc import Callable, Collection
from datetime import date, datetime, timedelta
from typing import Any

from ..models.config_models import ImportSettings
from ..models.entity_spec import EntityTypeSpec
from ..models.row_data import NormalizedRow
from ..models.store_records import RowContext
from ..models.validation_issue import Severity, ValidationIssue

"""Row validator: required, format and cross-field rules.

validate_row() checks a NormalizedRow against its EntityTypeSpec (required
fields and per-field format rules). check_cross_fields() runs the
entity-specific comparisons that need store context (the referenced course
edition); those only ever produce warnings. Neither mutates the row.
"""

__all__ = [
    "FORMAT_RULES",
    "CROSS_FIELD_RULES",
    "RuleOutcome",
    "vat_checksum_ok",
    "validate_row",
    "check_cross_fields",
]

logger = logging.getLogger(__name__)

RuleOutcome = tuple[Severity, str]
FormatRule = Callable[[Any], RuleOutcome | None]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# omocodia replaces digits with L M N P Q R S T U V
_CF_DIGIT = "[0-9LMNPQRSTUV]"
FISCAL_CODE_PATTERN = re.compile(
    rf"^[A-Z]{{6}}{_CF_DIGIT}{{2}}[A-Z]{_CF_DIGIT}{{2}}[A-Z]{_CF_DIGIT}{{3}}[A-Z]$"
)
VAT_PATTERN = re.compile(r"^\d{11}$")
PHONE_PATTERN = re.compile(r"^\+?\d{6,15}$")
_PHONE_SEPARATORS = re.compile(r"[\s\-.()/]")
POSTAL_CODE_PATTERN = re.compile(r"^\d{5}$")
PROVINCE_PATTERN = re.compile(r"^[A-Z]{2}$")
SDI_PATTERN = re.compile(r"^[A-Z0-9]{6,7}$")


def vat_checksum_ok(vat: str) -> bool:
    """Check digit of an Italian partita IVA (11 digits)."""
    total = 0
    for i, ch in enumerate(vat[:10]):
        n = int(ch)
        if i % 2 == 1:
            n *= 2
            if n > 9:
                n -= 9
        total += n
    return (total + int(vat[10])) % 10 == 0


def _email(value: Any) -> RuleOutcome | None:
    if not EMAIL_PATTERN.match(str(value)):
        return Severity.ERROR, "indirizzo email non valido"
    return None


def _vat_number(value: Any) -> RuleOutcome | None:
    text = str(value)
    if not VAT_PATTERN.match(text):
        return Severity.ERROR, "la partita IVA deve contenere esattamente 11 cifre"
    if not vat_checksum_ok(text):
        return Severity.WARNING, "cifra di controllo della partita IVA non corrispondente"
    return None


def _fiscal_code(value: Any) -> RuleOutcome | None:
    if not FISCAL_CODE_PATTERN.match(str(value)):
        return Severity.ERROR, "codice fiscale non valido (16 caratteri alfanumerici)"
    return None


def _company_fiscal_code(value: Any) -> RuleOutcome | None:
    # companies use either their VAT number or a personal fiscal code
    text = str(value)
    if VAT_PATTERN.match(text) or FISCAL_CODE_PATTERN.match(text):
        return None
    return Severity.ERROR, "codice fiscale aziendale non valido (11 cifre o 16 caratteri)"


def _phone(value: Any) -> RuleOutcome | None:
    if not PHONE_PATTERN.match(_PHONE_SEPARATORS.sub("", str(value))):
        return Severity.ERROR, "numero di telefono non valido (da 6 a 15 cifre)"
    return None


def _positive_integer(value: Any) -> RuleOutcome | None:
    if not isinstance(value, int) or value <= 0:
        return Severity.ERROR, "deve essere un numero intero positivo"
    return None


def _postal_code(value: Any) -> RuleOutcome | None:
    if not POSTAL_CODE_PATTERN.match(str(value)):
        return Severity.WARNING, "il CAP dovrebbe contenere 5 cifre"
    return None


def _province(value: Any) -> RuleOutcome | None:
    if not PROVINCE_PATTERN.match(str(value)):
        return Severity.WARNING, "la provincia dovrebbe essere una sigla di 2 lettere"
    return None


def _sdi_code(value: Any) -> RuleOutcome | None:
    if not SDI_PATTERN.match(str(value)):
        return Severity.WARNING, "il codice SDI dovrebbe avere 6 o 7 caratteri alfanumerici"
    return None


FORMAT_RULES: dict[str, FormatRule] = {
    "email": _email,
    "vat_number": _vat_number,
    "fiscal_code": _fiscal_code,
    "company_fiscal_code": _company_fiscal_code,
    "phone": _phone,
    "positive_integer": _positive_integer,
    "postal_code": _postal_code,
    "province": _province,
    "sdi_code": _sdi_code,
}


def validate_row(
    row: NormalizedRow, spec: EntityTypeSpec, skip_fields: Collection[str] = ()
) -> list[ValidationIssue]:
    """Required and format checks for one row.

    skip_fields are fields that already failed normalization; they are not
    reported a second time as missing.
    """
    issues: list[ValidationIssue] = []
    for f in spec.fields:
        if f.key in skip_fields:
            continue
        value = row.get(f.key)
        if value is None:
            if f.required:
                issues.append(ValidationIssue.error(
                    row.row_number, f.key, f"Campo obbligatorio mancante: {f.display_label}"
                ))
            continue
        for rule_name in f.validators:
            outcome = FORMAT_RULES[rule_name](value)
            if outcome is None:
                continue
            severity, message = outcome
            issues.append(ValidationIssue(
                row.row_number, f.key, f"{f.display_label}: {message}", severity, value
            ))
    return issues


def _format_cents(cents: int) -> str:
    return f"€{cents / 100:.2f}"


def _registration_price(row: NormalizedRow, context: RowContext, settings: ImportSettings) -> list[ValidationIssue]:
    edition = context.edition
    price = row.get("priceApplied")
    if edition is None or price is None or edition.price <= 0:
        return []
    deviation = abs(price - edition.price) / edition.price
    if deviation <= settings.price_tolerance:
        return []
    direction = "superiore" if price > edition.price else "inferiore"
    return [ValidationIssue.warning(
        row.row_number,
        "priceApplied",
        f"Prezzo applicato {_format_cents(price)} {direction} al listino dell'edizione "
        f"{_format_cents(edition.price)} oltre il {settings.price_tolerance:.0%}",
        price,
    )]


def _edition_day(value: Any) -> date | None:
    """Calendar day of a stored edition date ("2025-01-24", "2025-01-24T00:00:00.000Z", date)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def _registration_after_end(row: NormalizedRow, context: RowContext, settings: ImportSettings) -> list[ValidationIssue]:
    edition = context.edition
    registered = row.get("registrationDate")
    if edition is None or registered is None or not edition.end_date:
        return []
    end = _edition_day(edition.end_date)
    if end is None:
        logger.debug(f"row {row.row_number}: edition {edition.id} end date {edition.end_date!r} not a date, check skipped")
        return []
    registered_on = date.fromisoformat(registered)
    if registered_on <= end + timedelta(days=settings.late_registration_days):
        return []
    days_after = (registered_on - end).days
    return [ValidationIssue.warning(
        row.row_number,
        "registrationDate",
        f"Iscrizione registrata {days_after} giorni dopo la fine del corso ({end.isoformat()})",
        registered,
    )]


CrossFieldRule = Callable[[NormalizedRow, RowContext, ImportSettings], list[ValidationIssue]]

CROSS_FIELD_RULES: dict[str, tuple[CrossFieldRule, ...]] = {
    "registrations": (_registration_price, _registration_after_end),
}


def check_cross_fields(
    row: NormalizedRow, spec: EntityTypeSpec, context: RowContext, settings: ImportSettings
) -> list[ValidationIssue]:
    """Entity-specific comparisons across fields and store context (warnings only)."""
    issues: list[ValidationIssue] = []
    for rule in CROSS_FIELD_RULES.get(spec.name, ()):
        issues.extend(rule(row, context, settings))
    return issues
