"""Data models for grantgraph package.

Attributes are snake_case; ``to_dict()`` produces the camelCase JSON shapes
written to the dataset and network files and read back by ``from_dict()``.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional


class FilingRole(str, Enum):
    """How a filing participates in the grants graph."""
    GRANT_MAKER = "grant-maker"
    BENEFICIARY = "beneficiary-only"


@dataclass
class EntityMetadata:
    """Address and financial details reported by a filer."""
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    assets: float = 0.0
    revenue: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["EntityMetadata"]:
        if not data:
            return None
        return cls(
            address=data.get("address"),
            city=data.get("city"),
            state=data.get("state"),
            assets=data.get("assets") or 0.0,
            revenue=data.get("revenue") or 0.0,
        )


@dataclass
class Grant:
    """A grant paid by a foundation, as reported on its 990-PF."""
    recipient_name: str
    amount: float
    tax_year: int
    recipient_ein: str = ""
    recipient_city: str = ""
    recipient_state: str = ""
    recipient_zip: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "recipientTaxId": self.recipient_ein,
            "recipientName": self.recipient_name,
            "amount": self.amount,
            "taxYear": self.tax_year,
            "recipientCity": self.recipient_city,
            "recipientState": self.recipient_state,
            "recipientZip": self.recipient_zip,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Grant":
        return cls(
            recipient_name=data["recipientName"],
            amount=data["amount"],
            tax_year=data["taxYear"],
            recipient_ein=data.get("recipientTaxId") or "",
            recipient_city=data.get("recipientCity") or "",
            recipient_state=data.get("recipientState") or "",
            recipient_zip=data.get("recipientZip") or "",
        )


@dataclass
class FilingRecord:
    """Normalized result of parsing one filing document."""
    ein: str
    name: str
    role: FilingRole
    tax_year: int
    metadata: EntityMetadata = field(default_factory=EntityMetadata)
    grants: list[Grant] = field(default_factory=list)

    @property
    def is_grant_maker(self) -> bool:
        return self.role is FilingRole.GRANT_MAKER

    def to_dict(self) -> dict:
        """Convert to dictionary (the monthly cache record shape)."""
        return {
            "id": self.ein,
            "name": self.name,
            "role": self.role.value,
            "taxYear": self.tax_year,
            "metadata": self.metadata.to_dict(),
            "grants": [g.to_dict() for g in self.grants],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FilingRecord":
        return cls(
            ein=data["id"],
            name=data["name"],
            role=FilingRole(data["role"]),
            tax_year=data["taxYear"],
            metadata=EntityMetadata.from_dict(data.get("metadata")) or EntityMetadata(),
            grants=[Grant.from_dict(g) for g in data.get("grants", [])],
        )


@dataclass
class MonthBatch:
    """Parsed output of one (year, month) archive."""
    year: int
    month: int
    grant_makers: list[FilingRecord] = field(default_factory=list)
    beneficiaries: list[FilingRecord] = field(default_factory=list)

    @property
    def key(self) -> tuple[int, int]:
        return (self.year, self.month)


@dataclass
class ReceivedGrant:
    """A grant as seen from the receiving organization."""
    funder_ein: str
    funder_name: str
    amount: float
    tax_year: int

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "funderId": self.funder_ein,
            "funderName": self.funder_name,
            "amount": self.amount,
            "taxYear": self.tax_year,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ReceivedGrant":
        return cls(
            funder_ein=data["funderId"],
            funder_name=data["funderName"],
            amount=data["amount"],
            tax_year=data["taxYear"],
        )


@dataclass
class Foundation:
    """A grant-making foundation keyed by its EIN."""
    ein: str
    name: str
    grants_given: list[Grant] = field(default_factory=list)
    metadata: Optional[EntityMetadata] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.ein,
            "name": self.name,
            "grantsGiven": [g.to_dict() for g in self.grants_given],
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Foundation":
        return cls(
            ein=data["id"],
            name=data["name"],
            grants_given=[Grant.from_dict(g) for g in data.get("grantsGiven", [])],
            metadata=EntityMetadata.from_dict(data.get("metadata")),
        )


@dataclass
class Organization:
    """A grant recipient keyed by EIN or by a name-derived placeholder key."""
    ein: str
    name: str
    grants_received: list[ReceivedGrant] = field(default_factory=list)
    metadata: Optional[EntityMetadata] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.ein,
            "name": self.name,
            "grantsReceived": [g.to_dict() for g in self.grants_received],
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Organization":
        return cls(
            ein=data["id"],
            name=data["name"],
            grants_received=[ReceivedGrant.from_dict(g) for g in data.get("grantsReceived", [])],
            metadata=EntityMetadata.from_dict(data.get("metadata")),
        )


@dataclass
class DatasetMetadata:
    foundations_processed: int = 0
    total_grants: int = 0
    generated_at: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "foundationsProcessed": self.foundations_processed,
            "totalGrants": self.total_grants,
            "generatedAt": self.generated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DatasetMetadata":
        return cls(
            foundations_processed=data.get("foundationsProcessed", 0),
            total_grants=data.get("totalGrants", 0),
            generated_at=data.get("generatedAt", ""),
        )


@dataclass
class CompleteDataset:
    """Bidirectional grants dataset: who gave, and who received."""
    foundations: dict[str, Foundation] = field(default_factory=dict)
    organizations: dict[str, Organization] = field(default_factory=dict)
    metadata: DatasetMetadata = field(default_factory=DatasetMetadata)

    @property
    def total_received(self) -> int:
        return sum(len(org.grants_received) for org in self.organizations.values())


@dataclass
class CuratedGrant:
    """One row of the externally maintained central-entity grant list."""
    organization: str
    amount: float
    year: int
    city: str = ""
    state: str = ""


@dataclass
class NetworkNode:
    id: str
    name: str
    type: str
    central: bool = False
    amount: Optional[float] = None
    metadata: Optional[EntityMetadata] = None
    grants_received: Optional[list[ReceivedGrant]] = None
    grants_given: Optional[list[Grant]] = None

    def to_dict(self) -> dict:
        """Convert to dictionary, omitting unset optional fields."""
        data = {"id": self.id, "name": self.name, "type": self.type}
        if self.central:
            data["central"] = True
        if self.amount is not None:
            data["amount"] = self.amount
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        if self.grants_received is not None:
            data["grantsReceived"] = [g.to_dict() for g in self.grants_received]
        if self.grants_given is not None:
            data["grantsGiven"] = [g.to_dict() for g in self.grants_given]
        return data


@dataclass
class NetworkLink:
    source: str
    target: str
    amount: float
    year: int
    type: str

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class NetworkGraph:
    """Two-layer ego-graph around one central funder."""
    nodes: list[NetworkNode] = field(default_factory=list)
    links: list[NetworkLink] = field(default_factory=list)

    @property
    def central_node(self) -> Optional[NetworkNode]:
        return next((n for n in self.nodes if n.central), None)

    def count(self, node_type: str) -> int:
        return sum(1 for n in self.nodes if n.type == node_type)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "links": [link.to_dict() for link in self.links],
        }
