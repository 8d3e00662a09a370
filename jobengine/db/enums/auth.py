"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    Caller roles supplied by the identity provider.

    - REQUESTER: Raises tickets, attests completion, rates contractors
    - CONTRACTOR: Accepts jobs, describes work, invoices
    - ADMIN: Assigns tickets, reviews invoices, settles payments
    """

    REQUESTER = "requester"
    CONTRACTOR = "contractor"
    ADMIN = "admin"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
