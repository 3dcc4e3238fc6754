"""Acting user passed explicitly into every lead store, ledger and engine call."""

from dataclasses import dataclass

from app.constants.statuses import ROLE_ADMIN, ROLE_SALES, ROLES


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: str

    def __post_init__(self) -> None:
        if not self.user_id:
            raise ValueError("Actor user_id must be non-empty")
        if self.role not in ROLES:
            raise ValueError(f"Unknown actor role '{self.role}'")

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_sales(self) -> bool:
        return self.role == ROLE_SALES
