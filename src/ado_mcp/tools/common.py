"""Helpers shared by the tool registrars."""
from typing import Any, Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict


class ToolParams(BaseModel):
    """Base class for tool input models."""

    model_config = ConfigDict(extra="ignore")


def camel(name: str) -> str:
    """``QueueTimeDescending`` -> ``queueTimeDescending`` (REST enum spelling)."""
    return name[:1].lower() + name[1:] if name else name


def enum_name(value: Union[int, str, None], names: dict[int, str]) -> Optional[str]:
    """Normalize an enum the REST API may return as a number or a name.

    Returns the lowercase name, or None for a missing value.
    """
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        name = names.get(value)
        return name.lower() if name else str(value)
    return str(value).lower()


def pick(item: dict[str, Any], keys: Iterable[str]) -> dict[str, Any]:
    return {key: item.get(key) for key in keys}


def paginate(items: list, skip: int = 0, top: Optional[int] = None) -> list:
    """Local pagination for endpoints that return everything at once."""
    end = None if top is None else skip + top
    return items[skip:end]
