from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, serialises camelCase."""

    class Config:
        from_attributes = True
        populate_by_name = True
        alias_generator = to_camel


def finite(v: float | None, name: str) -> float | None:
    if v is None:
        return None
    if v != v:
        raise ValueError(f"{name} must be a number")
    if v == float("inf") or v == float("-inf"):
        raise ValueError(f"{name} must be finite")
    return v
