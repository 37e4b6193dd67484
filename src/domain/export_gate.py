"""
Schema export gate.

Decides which schema.org @type may be published for a profile. Claiming to
be an organization is a stronger assertion than claiming to be a person, so
Organization and LocalBusiness require the strongest proof tier (domain
ownership). Everything else is published as Person.

Pure functions: no I/O, no persisted side effects. Callers pass the
currently stored verification status at render/export time.
"""

from enum import Enum

from .models import VerificationStatus


class SchemaType(str, Enum):
    ORGANIZATION = "Organization"
    LOCAL_BUSINESS = "LocalBusiness"
    PERSON = "Person"


ORGANIZATION_TYPES = frozenset({SchemaType.ORGANIZATION, SchemaType.LOCAL_BUSINESS})

# Declared entity category (editor value) -> desired schema.org type
ENTITY_TYPE_MAP = {
    "local service": SchemaType.LOCAL_BUSINESS,
    "local business": SchemaType.LOCAL_BUSINESS,
    "business": SchemaType.ORGANIZATION,
    "organization": SchemaType.ORGANIZATION,
    "creator / person": SchemaType.PERSON,
    "creator": SchemaType.PERSON,
    "person": SchemaType.PERSON,
}


def desired_schema_type(entity_type: str | None, legal_name: str | None = None) -> SchemaType:
    """
    Map the declared entity category to a schema.org type.

    With no recognised category, a legal/organization name suggests
    Organization; otherwise Person.
    """
    key = (entity_type or "").strip().lower()
    if key in ENTITY_TYPE_MAP:
        return ENTITY_TYPE_MAP[key]
    if not key and legal_name and legal_name.strip():
        return SchemaType.ORGANIZATION
    return SchemaType.PERSON


def decide_export_type(
    declared_type: SchemaType | str | None,
    verification_status: VerificationStatus | str | None,
    legal_name: str | None = None,
) -> SchemaType:
    """
    Gate the declared type by verification tier.

    declared_type may be a schema.org type name ("Organization") or an
    editor entity category ("Business"); categories go through
    desired_schema_type first. An unknown tier counts as UNVERIFIED.

    | desired                    | DOMAIN_VERIFIED | PLATFORM_VERIFIED | UNVERIFIED |
    |----------------------------|-----------------|-------------------|------------|
    | Organization/LocalBusiness | as declared     | Person            | Person     |
    | Person                     | Person          | Person            | Person     |
    """
    desired = _as_schema_type(declared_type) or desired_schema_type(declared_type, legal_name)

    try:
        status = VerificationStatus(verification_status or VerificationStatus.UNVERIFIED)
    except ValueError:
        status = VerificationStatus.UNVERIFIED

    if desired in ORGANIZATION_TYPES and status is not VerificationStatus.DOMAIN_VERIFIED:
        return SchemaType.PERSON
    return desired


def _as_schema_type(value: SchemaType | str | None) -> SchemaType | None:
    if isinstance(value, SchemaType):
        return value
    key = (value or "").strip().lower()
    for schema_type in SchemaType:
        if schema_type.value.lower() == key:
            return schema_type
    return None
