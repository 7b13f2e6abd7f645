"""Pydantic models for the HVCA API.

Frozen Pydantic v2 models mapping HVCA JSON bodies. Timestamps travel as
Unix seconds on the wire and are exposed as timezone-aware UTC datetimes.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from enum import StrEnum
from ipaddress import IPv4Address, IPv6Address
from typing import Annotated, Any, Generic, TypeVar

from cryptography import x509
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    SecretStr,
    SerializerFunctionWrapHandler,
    field_serializer,
    model_serializer,
)

T = TypeVar("T")


def _to_utc(value: Any) -> Any:
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


UnixTime = Annotated[
    datetime,
    BeforeValidator(_to_utc),
    PlainSerializer(lambda d: int(d.timestamp()), return_type=int),
]


_HEX = re.compile(r"[0-9A-Fa-f]+")


def _parse_hex_serial(value: Any) -> Any:
    if isinstance(value, str):
        if not _HEX.fullmatch(value):
            msg = f"invalid serial number: {value}"
            raise ValueError(msg)
        return int(value, 16)
    return value


HexSerial = Annotated[
    int,
    BeforeValidator(_parse_hex_serial),
    PlainSerializer(lambda n: f"{n:X}", return_type=str),
]


class _UpperCaseEnum(StrEnum):
    """String enum accepting its values in any letter case."""

    @classmethod
    def _missing_(cls, value: object) -> Any:
        if isinstance(value, str):
            upper = value.upper()
            for member in cls:
                if member.value == upper:
                    return member
        return None


class CertStatus(_UpperCaseEnum):
    """Certificate status."""

    ISSUED = "ISSUED"
    REVOKED = "REVOKED"


class ClaimStatus(_UpperCaseEnum):
    """Domain claim status."""

    PENDING = "PENDING"
    VERIFIED = "VERIFIED"


class ClaimLogEntryStatus(_UpperCaseEnum):
    """Domain claim verification log entry status."""

    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    INFO = "INFO"


class Page(BaseModel, Generic[T]):
    """One page of a paginated listing plus the total number of results."""

    model_config = ConfigDict(frozen=True)

    items: list[T]
    total: int

    def __len__(self) -> int:
        return len(self.items)


class LoginRequest(BaseModel):
    """Body of a POST /login request."""

    model_config = ConfigDict(frozen=True)

    api_key: str
    api_secret: SecretStr

    @field_serializer("api_secret", when_used="json")
    def dump_secret(self, v: SecretStr) -> str:
        return v.get_secret_value()


class LoginResponse(BaseModel):
    """Body of a POST /login response."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str = Field(..., min_length=1)


class Counter(BaseModel):
    """Body of any response carrying a single count."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    value: int


class ProblemDetail(BaseModel):
    """Body of an HVCA error response."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    description: str = ""


class CertMeta(BaseModel):
    """Certificate metadata as returned by the /stats endpoints."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    serial_number: HexSerial
    not_before: UnixTime
    not_after: UnixTime


class CertInfo(BaseModel):
    """A certificate and its status, as returned by GET /certificates/{sn}."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    pem: str = Field(..., alias="certificate", min_length=1)
    status: CertStatus
    updated_at: UnixTime

    def x509_certificate(self) -> x509.Certificate:
        """Parse the PEM-encoded certificate."""
        return x509.load_pem_x509_certificate(self.pem.encode("ascii"))


class ClaimLogEntry(BaseModel):
    """One entry in a domain claim's verification log."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    status: ClaimLogEntryStatus
    description: str = ""
    timestamp: UnixTime


class Claim(BaseModel):
    """A domain control claim."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    status: ClaimStatus
    domain: str
    created_at: UnixTime
    expires_at: UnixTime
    assert_by: UnixTime
    log: list[ClaimLogEntry] = Field(default_factory=list)


class ClaimAssertionInfo(BaseModel):
    """Token and deadline for asserting control of a claimed domain."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    token: str
    assert_by: UnixTime
    id: str = ""


class ValidityPolicy(BaseModel):
    """Validity period constraints of a validation policy."""

    model_config = ConfigDict(frozen=True, extra="allow")

    secondsmin: int = 0
    secondsmax: int = 0
    not_before_negative_skew: int = 0
    not_before_positive_skew: int = 0
    issuer_expiry: int = 0


class Policy(BaseModel):
    """The calling account's validation policy.

    Only the validity section is typed; the remaining sections are kept as
    plain JSON values.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    validity: ValidityPolicy | None = None
    subject_dn: dict[str, Any] | None = None
    san: dict[str, Any] | None = None
    extended_key_usages: dict[str, Any] | None = None
    subject_da: dict[str, Any] | None = None
    qualified_statements: dict[str, Any] | None = None
    ms_extension_template: dict[str, Any] | None = None
    signature: dict[str, Any] | None = None
    public_key: dict[str, Any] | None = None
    public_key_signature: str | None = None
    custom_extensions: list[dict[str, Any]] | None = None


class OIDAndString(BaseModel):
    """An OID paired with a string value."""

    model_config = ConfigDict(frozen=True)

    type: str
    value: str | None = None


class Validity(BaseModel):
    """Requested certificate validity period."""

    model_config = ConfigDict(frozen=True)

    not_before: UnixTime
    not_after: Annotated[datetime, BeforeValidator(_to_utc)] | None = None

    @model_serializer(mode="wrap")
    def dump_validity(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        # Zero asks the server for the maximum validity the policy allows.
        data["not_after"] = (
            int(self.not_after.timestamp()) if self.not_after is not None else 0
        )
        return data


class DN(BaseModel):
    """Requested subject distinguished name."""

    model_config = ConfigDict(frozen=True)

    country: str | None = None
    state: str | None = None
    locality: str | None = None
    street_address: str | None = None
    organization: str | None = None
    organizational_unit: list[str] | None = None
    common_name: str | None = None
    serial_number: str | None = None
    email: str | None = None
    jurisdiction_of_incorporation_locality_name: str | None = None
    jurisdiction_of_incorporation_state_or_province_name: str | None = None
    jurisdiction_of_incorporation_country_name: str | None = None
    business_category: str | None = None
    extra_attributes: list[OIDAndString] | None = None


class SAN(BaseModel):
    """Requested subject alternative names."""

    model_config = ConfigDict(frozen=True)

    dns_names: list[str] | None = None
    emails: list[str] | None = None
    ip_addresses: list[IPv4Address | IPv6Address] | None = None
    uris: list[str] | None = None
    other_names: list[OIDAndString] | None = None


class Signature(BaseModel):
    """Signature algorithm the certificate should be signed with."""

    model_config = ConfigDict(frozen=True)

    algorithm: str
    hash_algorithm: str


class CertificateRequest(BaseModel):
    """Body of a POST /certificates request."""

    model_config = ConfigDict(frozen=True)

    validity: Validity | None = None
    subject_dn: DN | None = None
    san: SAN | None = None
    extended_key_usages: list[str] | None = None
    subject_da: dict[str, Any] | None = None
    qualified_statements: dict[str, Any] | None = None
    ms_extension_template: dict[str, Any] | None = None
    custom_extensions: dict[str, Any] | None = None
    signature: Signature | None = None
    public_key: str | None = None
    public_key_signature: str | None = None
    csr: str | None = None

    def to_json_dict(self) -> dict[str, Any]:
        """JSON-ready mapping with unset sections omitted."""
        return self.model_dump(mode="json", exclude_none=True)
