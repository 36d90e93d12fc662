import re
from typing import Iterable

from bson import ObjectId
from bson.errors import InvalidId

from errors import BadRequestError

HEX_ID = re.compile(r"[a-fA-F0-9]{24}")


def validate_hex_ids(ids: Iterable[str]) -> None:
    """Reject the whole batch if any id is not a 24 character hex string."""
    for id_str in ids:
        if not isinstance(id_str, str) or not HEX_ID.fullmatch(id_str):
            raise BadRequestError("one or more of the provided ids are not a valid hex string")


def ensure_object_id(id_str: str) -> ObjectId:
    validate_hex_ids([id_str])
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise BadRequestError("Invalid ID format")
