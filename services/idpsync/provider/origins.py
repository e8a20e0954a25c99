"""Well-known provider identifiers and kinds."""

from collections.abc import Iterable
from enum import StrEnum

UAA = "uaa"
LDAP = "ldap"
KEYSTONE = "keystone"

# Every bootstrap pass runs against the system zone
DEFAULT_ZONE_ID = "uaa"

# Never removed by a deletion sweep
PROTECTED_IDENTIFIERS: frozenset[str] = frozenset({UAA, LDAP})


class ProviderKind(StrEnum):
    """Provider type as persisted in the registry."""

    INTERNAL = "uaa"
    LDAP = "ldap"
    SAML = "saml"
    OAUTH2 = "oauth2.0"
    OIDC = "oidc1.0"
    KEYSTONE = "keystone"


def is_protected(identifier: str) -> bool:
    """Return True if ``identifier`` can never be deleted."""
    return identifier in PROTECTED_IDENTIFIERS


def deletable_identifiers(identifiers: Iterable[str]) -> list[str]:
    """Filter a deletion list down to identifiers that may be removed.

    Order is preserved and repeats are dropped.
    """
    result: list[str] = []
    for identifier in identifiers:
        if is_protected(identifier) or identifier in result:
            continue
        result.append(identifier)
    return result
