# src/zonetest/core/params.py
"""Parameter canonicalization and delegation classification.

canonicalize() is the single trust boundary for client-supplied test
parameters: it checks shapes and types once, applies defaults, drops
entries that carry no data, and returns the typed CanonicalParameters that
everything downstream (hashing, classification, storage, worker handoff)
operates on.

The empty-value rule is defined once, in is_empty_value(). Both the live
submission path and the historical backfill classify through classify(),
so they cannot drift apart.
"""

from __future__ import annotations

import ipaddress
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import idna

from zonetest.contracts.enums import DelegationClass
from zonetest.contracts.errors import InvalidInputError
from zonetest.contracts.params import CanonicalParameters, DSField, DSOverride, NameserverOverride

if TYPE_CHECKING:
    from zonetest.core.config import JobSettings

# Fields that identify the caller, not the test. Never hashed.
CLIENT_FIELDS = frozenset({"client_id", "client_version"})

TEST_FIELDS = frozenset({"domain", "ipv4", "ipv6", "profile", "nameservers", "ds_info"})

NAMESERVER_FIELDS = frozenset({"ns", "ip"})
DS_NUMBER_FIELDS = ("keytag", "algorithm", "digtype")
DS_FIELDS = (*DS_NUMBER_FIELDS, "digest")

_TRUTHY = frozenset({"1", "true", "yes", "on"})

_MAX_JSON_INT = 2**53 - 1


def is_empty_value(value: Any) -> bool:
    """Whether a parameter value counts as absent.

    None and whitespace-only strings are empty. Numbers (including 0) and
    booleans are never empty.
    """
    return value is None or (isinstance(value, str) and not value.strip())


def _is_empty_entry(entry: Mapping[str, Any]) -> bool:
    return all(is_empty_value(v) for v in entry.values())


def _dns_name(text: str) -> str:
    """Lowercase, drop the trailing dot and IDNA-encode; no syntax checks."""
    name = text.strip().lower()
    if name != "." and name.endswith("."):
        name = name[:-1]
    if name.isascii():
        return name
    try:
        return idna.encode(name, uts46=True).decode("ascii")
    except idna.IDNAError:
        # Not a valid IDN: carried as typed, the engine reports on it
        return name


def normalize_domain(value: Any, field: str = "domain", *, strict: bool = True) -> str:
    """Normalize a domain name to lowercase A-label form without trailing dot.

    The name is not checked for DNS syntax; that is the engine's job.

    Raises:
        InvalidInputError: If value is missing or blank, or (strict only) not a string
    """
    text = _text(value, field, strict=strict)
    if text is None:
        raise InvalidInputError(field, "is required", value=value)
    return _dns_name(text)


def _text(value: Any, field: str, *, strict: bool) -> str | None:
    if is_empty_value(value):
        return None
    if isinstance(value, str):
        return value.strip()
    if strict:
        raise InvalidInputError(field, "must be a string", value=value)
    return str(value).strip()


def _normalize_bool(value: Any, field: str, *, strict: bool) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if strict:
        raise InvalidInputError(field, "must be a boolean", value=value)
    # Older clients sent 0/1 or "true"/"false"
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def _normalize_profile(value: Any, settings: JobSettings, *, strict: bool) -> str:
    text = _text(value, "profile", strict=strict)
    if text is None:
        return settings.default_profile
    profile = text.lower()
    # Historic rows may name a profile that has since been removed from config
    if strict and profile not in settings.profiles:
        raise InvalidInputError("profile", f"unknown profile, expected one of {sorted(settings.profiles)}", value=value)
    return profile


def _entries(value: Any, field: str) -> list[tuple[int, Mapping[str, Any]]]:
    """Check a list-of-objects field and return its non-empty entries with their positions."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidInputError(field, "must be a list", value=value)
    entries = []
    for i, entry in enumerate(value):
        if not isinstance(entry, Mapping):
            raise InvalidInputError(f"{field}[{i}]", "must be an object", value=entry)
        if _is_empty_entry(entry):
            continue
        entries.append((i, entry))
    return entries


def _check_unknown_keys(entry: Mapping[str, Any], allowed: frozenset[str] | tuple[str, ...], field: str) -> None:
    unknown = sorted(set(entry) - set(allowed))
    if unknown:
        raise InvalidInputError(field, f"unknown field(s): {', '.join(unknown)}")


def _normalize_ip(text: str) -> str:
    try:
        return ipaddress.ip_address(text).compressed
    except ValueError:
        return text.lower()


def _normalize_nameservers(value: Any, *, strict: bool) -> tuple[NameserverOverride, ...]:
    nameservers = []
    for i, entry in _entries(value, "nameservers"):
        field = f"nameservers[{i}]"
        if strict:
            _check_unknown_keys(entry, NAMESERVER_FIELDS, field)

        ns = _text(entry.get("ns"), f"{field}.ns", strict=strict)
        ip = _text(entry.get("ip"), f"{field}.ip", strict=strict)
        override = NameserverOverride(
            ns=_dns_name(ns) if ns is not None else None,
            ip=_normalize_ip(ip) if ip is not None else None,
        )
        if override.to_dict():
            nameservers.append(override)
    return tuple(nameservers)


def _normalize_ds_number(value: Any, field: str, *, strict: bool) -> DSField:
    if is_empty_value(value):
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        if not (text.isascii() and text.isdigit()):
            return text
        number = int(text)
    elif strict:
        raise InvalidInputError(field, "must be an integer or a string", value=value)
    else:
        return str(value).strip()
    # RFC 8785 only serializes integers exactly representable as doubles
    return number if abs(number) <= _MAX_JSON_INT else str(number)


def _normalize_ds_info(value: Any, *, strict: bool) -> tuple[DSOverride, ...]:
    records = []
    for i, entry in _entries(value, "ds_info"):
        field = f"ds_info[{i}]"
        if strict:
            _check_unknown_keys(entry, DS_FIELDS, field)

        numbers = {name: _normalize_ds_number(entry.get(name), f"{field}.{name}", strict=strict) for name in DS_NUMBER_FIELDS}
        digest = _text(entry.get("digest"), f"{field}.digest", strict=strict)
        record = DSOverride(digest=digest.lower() if digest is not None else None, **numbers)
        if any(v is not None for v in record.to_dict().values()):
            records.append(record)
    return tuple(records)


def canonicalize(raw: Any, settings: JobSettings, *, strict: bool = True) -> CanonicalParameters:
    """Turn a raw test request into its canonical form.

    Values are normalized (whitespace, case, trailing dots, address
    spelling) but their contents are not judged: only a missing domain or
    a value of the wrong JSON type is rejected.

    Args:
        raw: Client-supplied parameters (decoded JSON object)
        settings: Job settings providing the default and allowed profiles
        strict: Reject unknown fields, unknown profiles and wrongly typed
            scalars. The historical backfill passes False so rows written
            by older clients and configs still classify.

    Returns:
        CanonicalParameters with defaults applied, empty list entries
        removed and client identity stripped

    Raises:
        InvalidInputError: If the domain is missing or a field has the wrong type
    """
    if not isinstance(raw, Mapping):
        raise InvalidInputError("params", "must be an object", value=raw)

    if strict:
        _check_unknown_keys(raw, TEST_FIELDS | CLIENT_FIELDS, "params")

    if "domain" not in raw:
        raise InvalidInputError("domain", "is required")

    return CanonicalParameters(
        domain=normalize_domain(raw["domain"], strict=strict),
        ipv4=_normalize_bool(raw.get("ipv4"), "ipv4", strict=strict),
        ipv6=_normalize_bool(raw.get("ipv6"), "ipv6", strict=strict),
        profile=_normalize_profile(raw.get("profile"), settings, strict=strict),
        nameservers=_normalize_nameservers(raw.get("nameservers"), strict=strict),
        ds_info=_normalize_ds_info(raw.get("ds_info"), strict=strict),
    )


def count_override_values(params: CanonicalParameters) -> int:
    """Count non-empty field values across all nameserver and DS overrides."""
    entries = [ns.to_dict() for ns in params.nameservers] + [ds.to_dict() for ds in params.ds_info]
    return sum(1 for entry in entries for value in entry.values() if not is_empty_value(value))


def classify(params: CanonicalParameters) -> DelegationClass:
    """Classify a test as delegated (live DNS) or undelegated (overrides supplied)."""
    if count_override_values(params) > 0:
        return DelegationClass.UNDELEGATED
    return DelegationClass.DELEGATED


def merge_template(template: Mapping[str, Any], domain: Any) -> dict[str, Any]:
    """Build one batch member's raw parameters from the shared template.

    Raises:
        InvalidInputError: If the template itself names a domain
    """
    if "domain" in template:
        raise InvalidInputError("template.domain", "batch templates must not name a domain")
    return {**template, "domain": domain}
