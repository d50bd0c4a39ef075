"""Typed test parameters.

CanonicalParameters is the only parameter form used past the
canonicalizer boundary. Raw client submissions stay plain dicts and are
stored verbatim for display; everything that hashes, classifies or hands
work to a worker operates on these frozen dataclasses.

Override values are normalized but not judged: a DS digest that is not
hex or a glue address that does not parse is carried as given, and the
DNS-testing engine reports on it.
"""

from dataclasses import dataclass, field
from typing import Any

# DS numeric fields are integers when the caller sent digits, otherwise the
# stripped text exactly as sent
DSField = int | str | None


@dataclass(frozen=True, slots=True)
class NameserverOverride:
    """A caller-supplied nameserver, optionally with its glue address."""

    ns: str | None = None
    ip: str | None = None

    def to_dict(self) -> dict[str, str]:
        # Absent values are omitted rather than stored as "" or null
        return {key: value for key, value in (("ns", self.ns), ("ip", self.ip)) if value is not None}


@dataclass(frozen=True, slots=True)
class DSOverride:
    """A caller-supplied DS record for the tested zone."""

    keytag: DSField = None
    algorithm: DSField = None
    digtype: DSField = None
    digest: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "keytag": self.keytag,
            "algorithm": self.algorithm,
            "digtype": self.digtype,
            "digest": self.digest,
        }


@dataclass(frozen=True, slots=True)
class CanonicalParameters:
    """Normalized, defaulted test parameters.

    Two submissions a human would call "the same test" produce equal
    instances. Client identity is never part of this form. Nameserver and
    DS order is significant and preserved.
    """

    domain: str
    ipv4: bool
    ipv6: bool
    profile: str
    nameservers: tuple[NameserverOverride, ...] = field(default_factory=tuple)
    ds_info: tuple[DSOverride, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        """JSON form used for hashing, storage and worker handoff."""
        return {
            "domain": self.domain,
            "ipv4": self.ipv4,
            "ipv6": self.ipv6,
            "profile": self.profile,
            "nameservers": [ns.to_dict() for ns in self.nameservers],
            "ds_info": [ds.to_dict() for ds in self.ds_info],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CanonicalParameters":
        """Rebuild from the stored JSON form (our own data - crash on bad shape)."""
        return cls(
            domain=data["domain"],
            ipv4=data["ipv4"],
            ipv6=data["ipv6"],
            profile=data["profile"],
            nameservers=tuple(NameserverOverride(ns=entry.get("ns"), ip=entry.get("ip")) for entry in data["nameservers"]),
            ds_info=tuple(
                DSOverride(
                    keytag=entry["keytag"],
                    algorithm=entry["algorithm"],
                    digtype=entry["digtype"],
                    digest=entry["digest"],
                )
                for entry in data["ds_info"]
            ),
        )
