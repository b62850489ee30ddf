"""証明書更新スキーマのテスト"""
from __future__ import annotations

import json

import pytest
from marshmallow import Schema, pre_load

from features.certs.application.schemas import (
    UPDATE_SCHEMAS,
    decode_json_object,
    load_create_payload,
    update_schema_for,
    validate_update_payload,
)
from features.certs.domain.exceptions import (
    CertificateSchemaError,
    CertificateSchemaFatalError,
    InvalidPayloadError,
)
from features.certs.domain.types import CertificateType


def _fields(excinfo) -> list[str]:
    return [error.field for error in excinfo.value.errors]


def test_every_certificate_type_has_update_schema():
    for certificate_type in CertificateType:
        assert update_schema_for(certificate_type) is UPDATE_SCHEMAS[certificate_type]


@pytest.mark.parametrize("raw", [None, b"", b"{", b'"text"', b"[]", b"null"])
def test_decode_rejects_non_objects(raw):
    with pytest.raises(InvalidPayloadError):
        decode_json_object(raw)


def test_create_payload_drops_unknown_keys_and_applies_defaults():
    data = load_create_payload(b'{"type": "http", "user_id": 4, "owner": "x"}')

    assert data == {
        "type": "http",
        "name": "",
        "domain_names": [],
        "certificate_authority_id": None,
        "dns_provider_id": None,
        "is_ecc": False,
        "meta": {},
    }


def test_create_payload_rejects_wrong_types():
    with pytest.raises(InvalidPayloadError):
        load_create_payload(b'{"type": "http", "certificate_authority_id": "1"}')


@pytest.mark.parametrize(
    "meta",
    [b'{"certificate": 123}', b'{"certificate_key": {"pem": "x"}}', b'{"certificate": null}'],
)
def test_create_payload_rejects_non_text_meta_values(meta):
    with pytest.raises(InvalidPayloadError):
        load_create_payload(b'{"type": "custom", "name": "x", "meta": ' + meta + b"}")


def test_custom_update_accepts_meta_subset():
    changes = validate_update_payload(
        b'{"name": "n", "meta": {"intermediate_certificate": "PEM"}}',
        CertificateType.CUSTOM,
    )

    assert changes == {"name": "n", "meta": {"intermediate_certificate": "PEM"}}


def test_custom_update_rejects_unknown_meta_key():
    with pytest.raises(CertificateSchemaError) as excinfo:
        validate_update_payload(b'{"name": "n", "meta": {"password": "x"}}', CertificateType.CUSTOM)

    assert _fields(excinfo) == ["meta.password"]


def test_http_update_rejects_dns_provider():
    with pytest.raises(CertificateSchemaError) as excinfo:
        validate_update_payload(
            b'{"domain_names": ["a.example.com"], "dns_provider_id": 3}',
            CertificateType.HTTP,
        )

    assert excinfo.value.errors[0].field == "dns_provider_id"
    assert excinfo.value.errors[0].message == "Unknown field."


def test_dns_update_requires_provider_and_positive_ids():
    with pytest.raises(CertificateSchemaError) as excinfo:
        validate_update_payload(
            b'{"domain_names": ["a.example.com"], "certificate_authority_id": 0}',
            CertificateType.DNS,
        )

    assert _fields(excinfo) == ["certificate_authority_id", "dns_provider_id"]


def test_mkcert_update_validates_hostnames():
    with pytest.raises(CertificateSchemaError) as excinfo:
        validate_update_payload(
            b'{"domain_names": ["ok.example.com", "bad host"]}',
            CertificateType.MKCERT,
        )

    assert _fields(excinfo) == ["domain_names.1"]
    assert excinfo.value.errors[0].message == "Not a valid hostname."


def test_domain_names_must_not_be_empty():
    with pytest.raises(CertificateSchemaError) as excinfo:
        validate_update_payload(b'{"domain_names": []}', CertificateType.MKCERT)

    assert _fields(excinfo) == ["domain_names"]


def test_errors_are_ordered_by_field():
    with pytest.raises(CertificateSchemaError) as excinfo:
        validate_update_payload(
            b'{"type": "dns", "zzz": 1, "is_ecc": "maybe"}',
            CertificateType.HTTP,
        )

    assert _fields(excinfo) == ["domain_names", "is_ecc", "type", "zzz"]


def test_list_item_errors_are_ordered_by_index():
    names = [f"host{index}.example.com" for index in range(12)]
    names[2] = "bad host"
    names[10] = "also bad"

    with pytest.raises(CertificateSchemaError) as excinfo:
        validate_update_payload(
            json.dumps({"domain_names": names, "is_ecc": "maybe"}),
            CertificateType.MKCERT,
        )

    assert _fields(excinfo) == ["domain_names.2", "domain_names.10", "is_ecc"]


def test_same_type_is_accepted():
    changes = validate_update_payload(
        b'{"type": "mkcert", "domain_names": ["dev.local"]}',
        CertificateType.MKCERT,
    )

    assert changes == {"type": "mkcert", "domain_names": ["dev.local"]}


def test_malformed_update_body_is_invalid_payload():
    with pytest.raises(InvalidPayloadError):
        validate_update_payload(b"nope", CertificateType.CUSTOM)


class _ExplodingSchema(Schema):
    @pre_load
    def explode(self, data, **kwargs):
        raise RuntimeError("schema engine failure")


def test_schema_engine_failure_is_fatal(monkeypatch):
    monkeypatch.setitem(UPDATE_SCHEMAS, CertificateType.MKCERT, _ExplodingSchema)

    with pytest.raises(CertificateSchemaFatalError) as excinfo:
        validate_update_payload(b'{"domain_names": ["dev.local"]}', CertificateType.MKCERT)

    assert "schema engine failure" in str(excinfo.value)
