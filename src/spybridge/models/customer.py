"""Customer directory models.

Field aliases keep the camelCase shape the directory file has always used
(``editUrl``, ``postalCode``, ``lastSync``), so files written by earlier
sync runs still load.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, SecretStr


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Credentials(BaseModel):
    """SPY login supplied per call. Never persisted."""

    username: str = ""
    password: SecretStr = SecretStr("")

    @property
    def provided(self) -> bool:
        return bool(self.username and self.password.get_secret_value())


class CustomerMetadata(BaseModel):
    """Per-row details scraped from the customer listing."""

    model_config = ConfigDict(populate_by_name=True)

    email: str | None = None
    phone: str | None = None
    address: str | None = None
    country: str | None = None
    salesperson: str | None = None
    brand: str | None = None
    postal_code: str | None = Field(default=None, alias="postalCode")
    city: str | None = None
    uuid: str | None = None
    reference: str | None = None
    last_sync: datetime = Field(default_factory=utcnow, alias="lastSync")


class Customer(BaseModel):
    """A customer as known to the SPY system.

    ``id`` is the SPY ``customer_id`` and is the identity used for dedup
    and upserts.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    edit_url: str = Field(alias="editUrl")
    metadata: CustomerMetadata = Field(default_factory=CustomerMetadata)

    def to_dict(self) -> dict:
        """Serialize with the on-disk camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class DirectoryMetadata(BaseModel):
    """Bookkeeping stored alongside the customer list."""

    model_config = ConfigDict(populate_by_name=True)

    last_sync: datetime | None = Field(default=None, alias="lastSync")
    total_customers: int = Field(default=0, alias="totalCustomers")
    last_updated: datetime = Field(default_factory=utcnow, alias="lastUpdated")
    version: str = "1.0"


class CustomerDirectory(BaseModel):
    """The persisted customer directory: metadata plus name-ordered customers."""

    metadata: DirectoryMetadata = Field(default_factory=DirectoryMetadata)
    customers: list[Customer] = Field(default_factory=list)

    @classmethod
    def build(cls, customers: list[Customer]) -> "CustomerDirectory":
        """Build a directory for a full replace, sorting customers by name."""
        ordered = sorted(customers, key=lambda c: c.name.casefold())
        return cls(
            metadata=DirectoryMetadata(
                last_sync=max((c.metadata.last_sync for c in ordered), default=utcnow()),
                total_customers=len(ordered),
            ),
            customers=ordered,
        )
