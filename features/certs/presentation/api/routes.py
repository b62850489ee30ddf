"""証明書APIのルーティング"""
from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import current_app, jsonify, request
from flask_babel import gettext as _
from flask_login import current_user

from core.settings import settings
from shared.application.query import SortField
from webapp.api.pagination import (
    QueryParseError,
    parse_expand,
    parse_filters,
    parse_page_info,
)

from features.certs.application.dto import ListCertificatesInput
from features.certs.application.use_cases import (
    CreateCertificateUseCase,
    DeleteCertificateUseCase,
    GetCertificateUseCase,
    ListCertificatesUseCase,
    UpdateCertificateUseCase,
)
from features.certs.domain.exceptions import (
    CertificateError,
    CertificateSchemaError,
    InvalidQueryError,
)
from features.certs.domain.models import Certificate, CertificateOwner
from features.certs.infrastructure.certificate_store import (
    FILTER_VALUE_KINDS,
    FILTERABLE_FIELDS,
    SORTABLE_FIELDS,
)

from . import certs_api_bp

DEFAULT_SORT = (SortField("name", "asc"),)

_PUBLIC_META_KEYS = {
    "certificate": "certificate",
    "intermediate_certificate": "intermediateCertificate",
}


def _json_error(message: str, status: HTTPStatus):
    return jsonify({"error": message}), status


def _require_admin():
    if not current_user.is_authenticated:
        return _json_error(_("Authentication required"), HTTPStatus.UNAUTHORIZED)
    if not current_user.can("certificate:manage"):
        return _json_error(_("Forbidden"), HTTPStatus.FORBIDDEN)
    return None


def _isoformat(value) -> str | None:
    return value.isoformat() if value else None


def _serialize_owner(owner: CertificateOwner) -> dict[str, Any]:
    return {
        "id": owner.id,
        "name": owner.name,
        "nickname": owner.nickname,
        "email": owner.email,
    }


def _serialize_certificate(certificate: Certificate) -> dict[str, Any]:
    meta = {
        public_key: certificate.meta[key]
        for key, public_key in _PUBLIC_META_KEYS.items()
        if certificate.meta.get(key)
    }
    data: dict[str, Any] = {
        "id": certificate.id,
        "type": certificate.type.value,
        "userId": certificate.user_id,
        "name": certificate.name,
        "domainNames": list(certificate.domain_names),
        "certificateAuthorityId": certificate.certificate_authority_id,
        "dnsProviderId": certificate.dns_provider_id,
        "isEcc": certificate.is_ecc,
        "status": certificate.status.value,
        "errorMessage": certificate.error_message or None,
        "expiresOn": _isoformat(certificate.expires_on),
        "createdOn": _isoformat(certificate.created_on),
        "modifiedOn": _isoformat(certificate.modified_on),
        "meta": meta,
    }
    if certificate.user is not None:
        data["user"] = _serialize_owner(certificate.user)
    return data


@certs_api_bp.errorhandler(CertificateError)
def _handle_certificate_error(exc: CertificateError):
    status = HTTPStatus(exc.status_code)
    if isinstance(exc, CertificateSchemaError):
        body = {
            "error": str(exc),
            "errors": [item.to_dict() for item in exc.errors],
        }
        return jsonify(body), status

    if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
        current_app.logger.error(
            "certificate api failure",
            exc_info=exc,
            extra={"event": "certificates.api.error"},
        )
    return _json_error(str(exc), status)


@certs_api_bp.route("/certificates", methods=["GET"])
def list_certificates():
    guard = _require_admin()
    if guard:
        return guard

    try:
        page = parse_page_info(
            request.args,
            sortable=SORTABLE_FIELDS,
            default_sort=DEFAULT_SORT,
            default_limit=settings.certificate_page_limit_default,
            max_limit=settings.certificate_page_limit_max,
        )
        filters = parse_filters(
            request.args,
            filterable=FILTERABLE_FIELDS,
            value_kinds=FILTER_VALUE_KINDS,
        )
    except QueryParseError as exc:
        raise InvalidQueryError(str(exc)) from exc

    result = ListCertificatesUseCase().execute(
        ListCertificatesInput(
            page=page,
            filters=filters,
            expand=parse_expand(request.args.get("expand")),
        )
    )
    return jsonify(
        {
            "total": result.total,
            "offset": result.offset,
            "limit": result.limit,
            "sort": result.sort,
            "certificates": [_serialize_certificate(item) for item in result.items],
        }
    )


@certs_api_bp.route("/certificates/<int:certificate_id>", methods=["GET"])
def get_certificate(certificate_id: int):
    guard = _require_admin()
    if guard:
        return guard

    certificate = GetCertificateUseCase().execute(
        certificate_id,
        expand=parse_expand(request.args.get("expand")),
    )
    return jsonify({"certificate": _serialize_certificate(certificate)})


@certs_api_bp.route("/certificates", methods=["POST"])
def create_certificate():
    guard = _require_admin()
    if guard:
        return guard

    certificate = CreateCertificateUseCase().execute(
        request.get_data(cache=True),
        user_id=current_user.id,
    )
    return jsonify({"certificate": _serialize_certificate(certificate)})


@certs_api_bp.route("/certificates/<int:certificate_id>", methods=["PUT"])
def update_certificate(certificate_id: int):
    guard = _require_admin()
    if guard:
        return guard

    certificate = UpdateCertificateUseCase().execute(
        certificate_id,
        request.get_data(cache=True),
    )
    return jsonify({"certificate": _serialize_certificate(certificate)})


@certs_api_bp.route("/certificates/<int:certificate_id>", methods=["DELETE"])
def delete_certificate(certificate_id: int):
    guard = _require_admin()
    if guard:
        return guard

    result = DeleteCertificateUseCase().execute(certificate_id)
    return jsonify({"result": result})


__all__ = [
    "create_certificate",
    "delete_certificate",
    "get_certificate",
    "list_certificates",
    "update_certificate",
]
