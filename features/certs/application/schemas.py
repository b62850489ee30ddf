"""証明書APIの入力スキーマ

更新時のスキーマは保存済みの ``type`` から選択する。
"""
from __future__ import annotations

import json
import re
from typing import Any, Mapping

from marshmallow import (
    EXCLUDE,
    RAISE,
    Schema,
    ValidationError,
    fields,
    pre_load,
    validate,
    validates,
)

from features.certs.domain.exceptions import (
    CertificateSchemaError,
    CertificateSchemaFatalError,
    InvalidPayloadError,
    SchemaFieldError,
)
from features.certs.domain.types import CertificateType

_HOSTNAME_PATTERN = re.compile(
    r"^(\*\.)?([a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?\.)*[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$",
    re.IGNORECASE,
)

MAX_DOMAIN_NAMES = 100


def _hostname():
    return fields.String(
        validate=[
            validate.Length(min=1, max=253),
            validate.Regexp(_HOSTNAME_PATTERN, error="Not a valid hostname."),
        ]
    )


def _domain_names(required: bool = False):
    return fields.List(
        _hostname(),
        required=required,
        validate=validate.Length(min=1, max=MAX_DOMAIN_NAMES),
    )


def _positive_id(required: bool = False):
    return fields.Integer(strict=True, required=required, validate=validate.Range(min=1))


class _CertificateUpdateSchema(Schema):
    """種別ごとの更新スキーマの基底"""

    certificate_type: CertificateType

    class Meta:
        unknown = RAISE

    type = fields.String()
    name = fields.String(validate=validate.Length(min=1, max=255))

    @pre_load
    def _require_any_property(self, data, **kwargs):
        if isinstance(data, Mapping) and not data:
            raise ValidationError("Must have at least 1 property.", "_schema")
        return data

    @validates("type")
    def _validate_type(self, value, **kwargs):
        if value != self.certificate_type.value:
            raise ValidationError(
                f"Certificate type cannot be changed from {self.certificate_type.value}."
            )


class CustomCertificateMetaSchema(Schema):
    class Meta:
        unknown = RAISE

    certificate = fields.String()
    certificate_key = fields.String()
    intermediate_certificate = fields.String()


class CustomCertificateUpdateSchema(_CertificateUpdateSchema):
    certificate_type = CertificateType.CUSTOM

    name = fields.String(required=True, validate=validate.Length(min=1, max=255))
    domain_names = _domain_names()
    meta = fields.Nested(CustomCertificateMetaSchema)


class HttpCertificateUpdateSchema(_CertificateUpdateSchema):
    certificate_type = CertificateType.HTTP

    domain_names = _domain_names(required=True)
    certificate_authority_id = _positive_id()
    is_ecc = fields.Boolean()


class DnsCertificateUpdateSchema(_CertificateUpdateSchema):
    certificate_type = CertificateType.DNS

    domain_names = _domain_names(required=True)
    certificate_authority_id = _positive_id()
    dns_provider_id = _positive_id(required=True)
    is_ecc = fields.Boolean()


class MkcertCertificateUpdateSchema(_CertificateUpdateSchema):
    certificate_type = CertificateType.MKCERT

    domain_names = _domain_names(required=True)
    is_ecc = fields.Boolean()


UPDATE_SCHEMAS: dict[CertificateType, type[Schema]] = {
    CertificateType.CUSTOM: CustomCertificateUpdateSchema,
    CertificateType.HTTP: HttpCertificateUpdateSchema,
    CertificateType.DNS: DnsCertificateUpdateSchema,
    CertificateType.MKCERT: MkcertCertificateUpdateSchema,
}


def update_schema_for(certificate_type: CertificateType) -> type[Schema]:
    """保存済みの種別に対応する更新スキーマを返す"""

    try:
        return UPDATE_SCHEMAS[certificate_type]
    except KeyError:
        raise CertificateSchemaFatalError(
            f"No update schema registered for certificate type: {certificate_type}"
        ) from None


class CertificateCreateSchema(Schema):
    """作成リクエスト。未知のキー（user_id 等）は破棄する"""

    class Meta:
        unknown = EXCLUDE

    type = fields.String(
        required=True,
        validate=validate.OneOf([item.value for item in CertificateType]),
    )
    name = fields.String(load_default="")
    domain_names = fields.List(fields.String(), load_default=list)
    certificate_authority_id = fields.Integer(strict=True, allow_none=True, load_default=None)
    dns_provider_id = fields.Integer(strict=True, allow_none=True, load_default=None)
    is_ecc = fields.Boolean(load_default=False)
    meta = fields.Dict(keys=fields.String(), values=fields.String(), load_default=dict)


def decode_json_object(raw: bytes | str | None) -> dict[str, Any]:
    """リクエストボディをJSONオブジェクトとして読み込む"""

    if raw is None:
        raise InvalidPayloadError()
    try:
        payload = json.loads(raw)
    except ValueError:
        raise InvalidPayloadError() from None
    if not isinstance(payload, dict):
        raise InvalidPayloadError()
    return payload


def load_create_payload(raw: bytes | str | None) -> dict[str, Any]:
    payload = decode_json_object(raw)
    try:
        return CertificateCreateSchema().load(payload)
    except ValidationError:
        raise InvalidPayloadError() from None


def _flatten_messages(messages: Any, path: str = "") -> list[SchemaFieldError]:
    if isinstance(messages, Mapping):
        flattened: list[SchemaFieldError] = []
        for key, value in messages.items():
            key = str(key)
            if key == "_schema":
                child_path = path or "_schema"
            else:
                child_path = f"{path}.{key}" if path else key
            flattened.extend(_flatten_messages(value, child_path))
        return flattened
    if isinstance(messages, (list, tuple)):
        flattened = []
        for item in messages:
            if isinstance(item, (Mapping, list, tuple)):
                flattened.extend(_flatten_messages(item, path))
            else:
                flattened.append(SchemaFieldError(field=path, message=str(item)))
        return flattened
    return [SchemaFieldError(field=path, message=str(messages))]


def _field_sort_key(field: str) -> tuple:
    # domain_names.2 が domain_names.10 より前になるよう数値セグメントは数値で比較
    return tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in field.split(".")
    )


def validate_update_payload(
    raw: bytes | str | None,
    certificate_type: CertificateType,
) -> dict[str, Any]:
    """保存済みの種別のスキーマで更新内容を検証する

    JSONとして読めない場合は :class:`InvalidPayloadError`、フィールド違反は
    :class:`CertificateSchemaError`、スキーマ自体の障害は
    :class:`CertificateSchemaFatalError` を送出する。
    """

    payload = decode_json_object(raw)
    schema_class = update_schema_for(certificate_type)

    try:
        return schema_class().load(payload)
    except ValidationError as exc:
        errors = _flatten_messages(exc.normalized_messages())
        # フィールドパス順に並べ、同一フィールド内はスキーマの順序を保つ
        errors.sort(key=lambda item: _field_sort_key(item.field))
        if not errors:
            errors = [SchemaFieldError(field="_schema", message="Invalid value.")]
        raise CertificateSchemaError(errors) from exc
    except Exception as exc:  # noqa: BLE001 - スキーマ内部の障害は500として扱う
        raise CertificateSchemaFatalError(str(exc) or exc.__class__.__name__) from exc


__all__ = [
    "CertificateCreateSchema",
    "CustomCertificateMetaSchema",
    "CustomCertificateUpdateSchema",
    "DnsCertificateUpdateSchema",
    "HttpCertificateUpdateSchema",
    "MkcertCertificateUpdateSchema",
    "UPDATE_SCHEMAS",
    "decode_json_object",
    "load_create_payload",
    "update_schema_for",
    "validate_update_payload",
]
