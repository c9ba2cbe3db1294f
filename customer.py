from __future__ import annotations


class Customer:
    def __init__(self, id: int, name: str, phone: str, email: str = "", address: str = "",
                 created_at: str | None = None) -> None:
        self.id = id
        self.name = name
        self.phone = phone
        self.email = email
        self.address = address
        self.created_at = created_at

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.name} ({self.phone})"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "created_at": self.created_at,
        }

    @staticmethod
    def from_dict(data: dict) -> "Customer":
        return Customer(
            id=int(data["id"]),
            name=data["name"],
            phone=data["phone"],
            email=data.get("email") or "",
            address=data.get("address") or "",
            created_at=data.get("created_at"),
        )
