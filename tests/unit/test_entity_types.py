from __future__ import annotations

import pytest

from course_import.config.entity_types import ENTITY_TYPES, UnknownEntityTypeError, get_entity_spec
from course_import.models.entity_spec import NaturalKey, Transform
from course_import.services.validator import FORMAT_RULES


def test_registry_holds_three_entity_types():
    assert sorted(ENTITY_TYPES) == ["companies", "registrations", "students"]


def test_registry_is_read_only():
    with pytest.raises(TypeError):
        ENTITY_TYPES["courses"] = ENTITY_TYPES["companies"]  # type: ignore[index]


def test_unknown_entity_type():
    with pytest.raises(UnknownEntityTypeError, match="courses"):
        get_entity_spec("courses")


def test_entity_specs_are_frozen():
    spec = get_entity_spec("students")
    with pytest.raises(AttributeError):
        spec.name = "x"  # type: ignore[misc]


@pytest.mark.parametrize("entity", ["companies", "students", "registrations"])
def test_validators_exist_and_keys_are_unique(entity):
    spec = get_entity_spec(entity)
    keys = [f.key for f in spec.fields]
    assert len(keys) == len(set(keys))
    for f in spec.fields:
        for rule in f.validators:
            assert rule in FORMAT_RULES
    for key in spec.natural_keys:
        for field in key.fields:
            spec.field(field)


def test_required_fields():
    assert [f.key for f in get_entity_spec("companies").required_fields] == ["name"]
    assert [f.key for f in get_entity_spec("students").required_fields] == ["firstName", "lastName"]
    assert [f.key for f in get_entity_spec("registrations").required_fields] == ["studentFiscalCode", "editionId"]


def test_natural_keys():
    assert [k.label for k in get_entity_spec("companies").natural_keys] == ["vatNumber", "fiscalCode", "email"]
    assert [k.label for k in get_entity_spec("students").natural_keys] == ["fiscalCode", "email"]
    assert get_entity_spec("registrations").natural_keys[0].label == "studentFiscalCode+editionId"


def test_natural_key_values_of_requires_every_part():
    key = NaturalKey(("studentFiscalCode", "editionId"))
    assert key.values_of({"studentFiscalCode": "X", "editionId": 3}) == ("X", 3)
    assert key.values_of({"studentFiscalCode": "X", "editionId": None}) is None


def test_field_lookup_and_describe():
    spec = get_entity_spec("students")
    assert spec.field("birthDate").transform is Transform.DATE
    with pytest.raises(KeyError):
        spec.field("nope")
    assert spec.describe({"firstName": "Mario", "lastName": "Rossi"}) == "Mario Rossi"
    assert spec.describe({"firstName": "Mario", "lastName": None}) == "Mario"
