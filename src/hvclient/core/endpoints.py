"""Operation builders for each HVCA endpoint.

Each builder returns an ``Operation`` describing the call; the sync and async
clients hand these to their executor unchanged.
"""

from __future__ import annotations

from datetime import datetime
from urllib.parse import quote

import httpx

from ..errors import UnexpectedStatusError
from ..models import (
    CertificateRequest,
    CertInfo,
    CertMeta,
    Claim,
    ClaimAssertionInfo,
    ClaimStatus,
    Page,
    Policy,
)
from .decoders import (
    decode_claim_assertion,
    decode_counter,
    decode_model,
    decode_page,
    decode_string_list,
    location_id,
)
from .operation import JSONBody, Operation

CERTIFICATES_PATH = "/certificates"
CLAIMS_PATH = "/claims/domains"
COUNTERS_PATH = "/counters/certificates"
POLICY_PATH = "/validationpolicy"
QUOTA_PATH = "/quotas/issuance"
STATS_PATH = "/stats"
TRUST_CHAIN_PATH = "/trustchain"

_decode_cert_info = decode_model(CertInfo)
_decode_claim = decode_model(Claim)
_decode_policy = decode_model(Policy)
_decode_cert_meta_page = decode_page(CertMeta)
_decode_claim_page = decode_page(Claim)


def _segment(value: str) -> str:
    if not value:
        msg = "path segment must not be empty"
        raise ValueError(msg)
    return quote(value, safe="")


def _discard(response: httpx.Response) -> None:
    return None


def page_params(
    page: int,
    per_page: int | None = None,
    not_before: datetime | None = None,
    not_after: datetime | None = None,
) -> dict[str, int]:
    """Query parameters for a paginated listing.

    ``per_page`` is sent only when positive; the time window bounds are sent
    as Unix seconds when given.
    """
    params = {"page": page}
    if per_page is not None and per_page > 0:
        params["per_page"] = per_page
    if not_before is not None:
        params["from"] = int(not_before.timestamp())
    if not_after is not None:
        params["to"] = int(not_after.timestamp())
    return params


# Certificates


def certificate_request(request: CertificateRequest) -> Operation[str]:
    """POST /certificates, yielding the new certificate's serial number."""
    return Operation(
        "POST",
        CERTIFICATES_PATH,
        body=JSONBody(request),
        decoder=location_id,
        json_response=False,
        name="certificate_request",
    )


def certificate_retrieve(serial_number: str) -> Operation[CertInfo]:
    return Operation(
        "GET",
        f"{CERTIFICATES_PATH}/{_segment(serial_number)}",
        decoder=_decode_cert_info,
        name="certificate_retrieve",
    )


def certificate_revoke(serial_number: str) -> Operation[None]:
    return Operation(
        "DELETE",
        f"{CERTIFICATES_PATH}/{_segment(serial_number)}",
        decoder=_discard,
        json_response=False,
        name="certificate_revoke",
    )


# Account information


def trust_chain() -> Operation[list[str]]:
    return Operation(
        "GET", TRUST_CHAIN_PATH, decoder=decode_string_list, name="trust_chain"
    )


def policy() -> Operation[Policy]:
    return Operation("GET", POLICY_PATH, decoder=_decode_policy, name="policy")


def counter_certs_issued() -> Operation[int]:
    return Operation(
        "GET",
        f"{COUNTERS_PATH}/issued",
        decoder=decode_counter,
        name="counter_certs_issued",
    )


def counter_certs_revoked() -> Operation[int]:
    return Operation(
        "GET",
        f"{COUNTERS_PATH}/revoked",
        decoder=decode_counter,
        name="counter_certs_revoked",
    )


def quota_issuance() -> Operation[int]:
    return Operation("GET", QUOTA_PATH, decoder=decode_counter, name="quota_issuance")


# Statistics


def _stats(
    kind: str,
    page: int,
    per_page: int | None,
    not_before: datetime | None,
    not_after: datetime | None,
) -> Operation[Page[CertMeta]]:
    return Operation(
        "GET",
        f"{STATS_PATH}/{kind}",
        decoder=_decode_cert_meta_page,
        params=page_params(page, per_page, not_before, not_after),
        name=f"stats_{kind}",
    )


def stats_expiring(
    page: int = 1,
    per_page: int | None = None,
    not_before: datetime | None = None,
    not_after: datetime | None = None,
) -> Operation[Page[CertMeta]]:
    """Certificates expiring within the time window."""
    return _stats("expiring", page, per_page, not_before, not_after)


def stats_issued(
    page: int = 1,
    per_page: int | None = None,
    not_before: datetime | None = None,
    not_after: datetime | None = None,
) -> Operation[Page[CertMeta]]:
    """Certificates issued within the time window."""
    return _stats("issued", page, per_page, not_before, not_after)


def stats_revoked(
    page: int = 1,
    per_page: int | None = None,
    not_before: datetime | None = None,
    not_after: datetime | None = None,
) -> Operation[Page[CertMeta]]:
    """Certificates revoked within the time window."""
    return _stats("revoked", page, per_page, not_before, not_after)


# Domain claims


def claims_domains(
    page: int = 1,
    per_page: int | None = None,
    status: ClaimStatus = ClaimStatus.PENDING,
) -> Operation[Page[Claim]]:
    params: dict[str, str | int] = {"status": ClaimStatus(status).value}
    params.update(page_params(page, per_page))
    return Operation(
        "GET",
        CLAIMS_PATH,
        decoder=_decode_claim_page,
        params=params,
        name="claims_domains",
    )


def claim_submit(domain: str) -> Operation[ClaimAssertionInfo]:
    """POST /claims/domains/{domain}, yielding the token to assert control with."""
    return Operation(
        "POST",
        f"{CLAIMS_PATH}/{_segment(domain)}",
        decoder=decode_claim_assertion,
        name="claim_submit",
    )


def claim_retrieve(claim_id: str) -> Operation[Claim]:
    return Operation(
        "GET",
        f"{CLAIMS_PATH}/{_segment(claim_id)}",
        decoder=_decode_claim,
        name="claim_retrieve",
    )


def claim_delete(claim_id: str) -> Operation[None]:
    return Operation(
        "DELETE",
        f"{CLAIMS_PATH}/{_segment(claim_id)}",
        decoder=_discard,
        json_response=False,
        name="claim_delete",
    )


def decode_claim_dns(response: httpx.Response) -> bool:
    """True when domain control was verified, False when assertion was requested.

    Raises:
        UnexpectedStatusError: For any other success status.
    """
    if response.status_code == 201:
        return False
    if response.status_code == 204:
        return True
    raise UnexpectedStatusError(response.status_code)


def claim_dns(claim_id: str) -> Operation[bool]:
    """POST /claims/domains/{id}/dns, requesting DNS assertion of domain control."""
    return Operation(
        "POST",
        f"{CLAIMS_PATH}/{_segment(claim_id)}/dns",
        decoder=decode_claim_dns,
        json_response=False,
        name="claim_dns",
    )


def claim_reassert(claim_id: str) -> Operation[ClaimAssertionInfo]:
    return Operation(
        "POST",
        f"{CLAIMS_PATH}/{_segment(claim_id)}/reassert",
        decoder=decode_claim_assertion,
        name="claim_reassert",
    )
