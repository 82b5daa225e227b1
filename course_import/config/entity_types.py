from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from ..models.entity_spec import EntityTypeSpec, FieldSpec, NaturalKey, Transform

"""Registry of importable entity types.

One frozen EntityTypeSpec per entity type, built once at import time. Header
synonyms are written in their natural form ("P.IVA", "Data di nascita"); the
column mapper normalises them the same way it normalises file headers.
"""

__all__ = [
    "COMPANIES",
    "STUDENTS",
    "REGISTRATIONS",
    "ENTITY_TYPES",
    "UnknownEntityTypeError",
    "get_entity_spec",
]


class UnknownEntityTypeError(ValueError):
    """Raised when an entity type outside the registry is requested."""


# Fields shared by more than one entity type

def _phone() -> FieldSpec:
    return FieldSpec(
        key="phone",
        display_label="Telefono",
        header_synonyms=("telefono", "tel", "cellulare", "phone"),
        validators=("phone",),
        width=16,
    )


def _email() -> FieldSpec:
    return FieldSpec(
        key="email",
        display_label="Email",
        header_synonyms=("email", "e-mail", "mail", "indirizzo email"),
        transform=Transform.EMAIL,
        validators=("email",),
        width=28,
    )


def _address_fields() -> tuple[FieldSpec, ...]:
    return (
        FieldSpec("address", "Indirizzo", header_synonyms=("indirizzo", "via", "address"), width=30),
        FieldSpec("city", "Città", header_synonyms=("citta", "comune", "city"), width=18),
        FieldSpec(
            "province", "Provincia",
            header_synonyms=("provincia", "prov", "pr"),
            transform=Transform.CODE,
            validators=("province",),
            width=10,
        ),
        FieldSpec(
            "postalCode", "CAP",
            header_synonyms=("cap", "codice postale", "postal code"),
            transform=Transform.POSTAL_CODE,
            validators=("postal_code",),
            width=8,
        ),
    )


def _company_vat_reference() -> FieldSpec:
    return FieldSpec(
        key="companyVatNumber",
        display_label="P.IVA Azienda",
        header_synonyms=("p.iva azienda", "piva azienda", "partita iva azienda"),
        transform=Transform.VAT_NUMBER,
        validators=("vat_number",),
        width=16,
    )


def _notes() -> FieldSpec:
    return FieldSpec("notes", "Note", header_synonyms=("note", "notes", "annotazioni"), width=30)


COMPANIES = EntityTypeSpec(
    name="companies",
    table="companies",
    label="Aziende",
    fields=(
        FieldSpec(
            "name", "Ragione Sociale", required=True,
            header_synonyms=("ragione sociale", "nome", "azienda", "denominazione", "nome azienda"),
            width=30,
        ),
        FieldSpec(
            "vatNumber", "Partita IVA",
            header_synonyms=("partita iva", "p.iva", "piva", "p. iva", "vat", "vat number"),
            transform=Transform.VAT_NUMBER,
            validators=("vat_number",),
            width=16,
        ),
        FieldSpec(
            "fiscalCode", "Codice Fiscale",
            header_synonyms=("codice fiscale", "cf", "c.f."),
            transform=Transform.FISCAL_CODE,
            validators=("company_fiscal_code",),
            width=18,
        ),
        *_address_fields(),
        FieldSpec(
            "country", "Nazione",
            header_synonyms=("nazione", "paese", "country"),
            default="Italia",
            width=12,
        ),
        _phone(),
        _email(),
        FieldSpec(
            "pec", "PEC",
            header_synonyms=("pec", "email pec", "posta certificata"),
            transform=Transform.EMAIL,
            validators=("email",),
            width=28,
        ),
        FieldSpec(
            "sdiCode", "Codice SDI",
            header_synonyms=("codice sdi", "sdi", "codice destinatario"),
            transform=Transform.CODE,
            validators=("sdi_code",),
            width=12,
        ),
        FieldSpec(
            "contactPerson", "Referente",
            header_synonyms=("referente", "contatto", "persona di riferimento"),
            width=22,
        ),
        _notes(),
    ),
    natural_keys=(
        NaturalKey(("vatNumber",)),
        NaturalKey(("fiscalCode",)),
        NaturalKey(("email",)),
    ),
    label_fields=("name",),
    examples=(
        {
            "name": "Edilizia Rossi S.r.l.", "vatNumber": "12345678903", "address": "Via Roma 10",
            "city": "Milano", "province": "MI", "postalCode": "20121", "phone": "02 1234567",
            "email": "info@ediliziarossi.it", "pec": "ediliziarossi@pec.it", "sdiCode": "M5UXCR1",
            "contactPerson": "Giuseppe Rossi",
        },
        {
            "name": "Logistica Bianchi S.p.A.", "vatNumber": "98765432103", "address": "Corso Italia 5",
            "city": "Napoli", "province": "NA", "postalCode": "80121", "phone": "081 7654321",
            "email": "amministrazione@logbianchi.it", "contactPerson": "Anna Bianchi",
        },
    ),
    notes=(
        "I campi contrassegnati con * sono obbligatori.",
        "La Partita IVA deve contenere 11 cifre; il prefisso IT viene ignorato.",
        "Le aziende con Partita IVA, Codice Fiscale o Email già presenti vengono segnalate come duplicati.",
        "Provincia: sigla di 2 lettere (es. MI). CAP: 5 cifre.",
    ),
)


STUDENTS = EntityTypeSpec(
    name="students",
    table="students",
    label="Studenti",
    fields=(
        FieldSpec("firstName", "Nome", required=True, header_synonyms=("nome", "first name"), width=16),
        FieldSpec("lastName", "Cognome", required=True, header_synonyms=("cognome", "last name"), width=16),
        FieldSpec(
            "fiscalCode", "Codice Fiscale",
            header_synonyms=("codice fiscale", "cf", "c.f.", "codicefiscale"),
            transform=Transform.FISCAL_CODE,
            validators=("fiscal_code",),
            width=20,
        ),
        _email(),
        _phone(),
        FieldSpec(
            "birthDate", "Data di Nascita",
            header_synonyms=("data nascita", "data di nascita", "nato il", "birth date"),
            transform=Transform.DATE,
            width=14,
        ),
        FieldSpec(
            "birthPlace", "Luogo di Nascita",
            header_synonyms=("luogo nascita", "luogo di nascita", "nato a"),
            width=18,
        ),
        *_address_fields(),
        _company_vat_reference(),
        FieldSpec("companyName", "Azienda", header_synonyms=("azienda", "ragione sociale"), width=24),
        _notes(),
    ),
    natural_keys=(NaturalKey(("fiscalCode",)), NaturalKey(("email",))),
    label_fields=("firstName", "lastName"),
    examples=(
        {
            "firstName": "Mario", "lastName": "Rossi", "fiscalCode": "RSSMRA80A01H501Z",
            "email": "mario.rossi@email.it", "phone": "333 1234567", "birthDate": "01/01/1980",
            "birthPlace": "Roma", "address": "Via Roma 1", "city": "Roma", "province": "RM",
            "postalCode": "00100", "companyVatNumber": "12345678903", "companyName": "Edilizia Rossi S.r.l.",
        },
        {
            "firstName": "Laura", "lastName": "Bianchi", "fiscalCode": "BNCLRA85B41F205X",
            "email": "laura.bianchi@email.it", "phone": "339 7654321", "birthDate": "01/02/1985",
            "birthPlace": "Milano", "city": "Milano", "province": "MI", "postalCode": "20100",
        },
    ),
    notes=(
        "I campi contrassegnati con * sono obbligatori.",
        "Codice Fiscale: 16 caratteri. Codice Fiscale ed Email servono a riconoscere studenti già presenti.",
        "Data di nascita nel formato GG/MM/AAAA.",
        "P.IVA Azienda collega lo studente a un'azienda già registrata; "
        "in alternativa Azienda, con la ragione sociale esatta.",
    ),
)


REGISTRATIONS = EntityTypeSpec(
    name="registrations",
    table="registrations",
    label="Iscrizioni",
    fields=(
        FieldSpec(
            "studentFiscalCode", "Codice Fiscale Studente", required=True,
            header_synonyms=("codice fiscale studente", "cf studente", "codice fiscale", "cf"),
            transform=Transform.FISCAL_CODE,
            validators=("fiscal_code",),
            width=24,
        ),
        FieldSpec(
            "editionId", "ID Edizione", required=True,
            header_synonyms=("id edizione", "edizione", "codice edizione", "edition id"),
            transform=Transform.INTEGER,
            validators=("positive_integer",),
            width=12,
        ),
        FieldSpec(
            "registrationDate", "Data Iscrizione",
            header_synonyms=("data iscrizione", "data", "registration date"),
            transform=Transform.DATE,
            width=14,
        ),
        FieldSpec(
            "priceApplied", "Prezzo Applicato",
            header_synonyms=("prezzo applicato", "prezzo", "importo", "price"),
            transform=Transform.MONEY,
            width=14,
        ),
        _company_vat_reference(),
        _notes(),
    ),
    natural_keys=(NaturalKey(("studentFiscalCode", "editionId")),),
    label_fields=("studentFiscalCode", "editionId"),
    examples=(
        {
            "studentFiscalCode": "RSSMRA80A01H501Z", "editionId": 1, "registrationDate": "15/01/2025",
            "priceApplied": "150,00", "companyVatNumber": "12345678903",
        },
        {"studentFiscalCode": "BNCLRA85B41F205X", "editionId": 1, "registrationDate": "16/01/2025"},
    ),
    notes=(
        "I campi contrassegnati con * sono obbligatori.",
        "Lo studente deve essere già registrato (ricerca per Codice Fiscale).",
        "ID Edizione: identificativo numerico dell'edizione del corso.",
        "Se il Prezzo Applicato è vuoto viene usato il prezzo di listino dell'edizione.",
    ),
)


ENTITY_TYPES: Mapping[str, EntityTypeSpec] = MappingProxyType(
    {spec.name: spec for spec in (COMPANIES, STUDENTS, REGISTRATIONS)}
)


def get_entity_spec(entity_type: str) -> EntityTypeSpec:
    try:
        return ENTITY_TYPES[entity_type]
    except KeyError:
        raise UnknownEntityTypeError(
            f"unknown entity type '{entity_type}' (expected one of: {', '.join(ENTITY_TYPES)})"
        ) from None
