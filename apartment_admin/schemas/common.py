import math

from pydantic import BaseModel


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_records: int
    limit: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(
            current_page=page,
            total_pages=math.ceil(total / limit) if limit else 0,
            total_records=total,
            limit=limit,
        )


class Message(BaseModel):
    message: str


def normalize_email(v: str, field: str = "email") -> str:
    """Lowercased address; whitespace anywhere (CR/LF included) is rejected."""
    v = v.strip().lower()
    local, _, domain = v.partition("@")
    if not local or not domain or any(c.isspace() or not c.isprintable() for c in v):
        raise ValueError(f"{field} must be a valid email address")
    return v
