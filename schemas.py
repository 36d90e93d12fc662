"""
Database Schemas

Catalog items and categories.
Item and Category map to the MongoDB collections `items` and `categories`.
Price and Shop are owned by other services and never stored here.
"""
from typing import Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel, Field, field_validator

from errors import BadRequestError

DEFAULT_ITEM_STATUS = "active"


def to_str_id(doc: dict) -> dict:
    if not doc:
        return doc
    d = dict(doc)
    if d.get("_id") is not None:
        d["id"] = str(d.pop("_id"))
    return d


class CategoryRef(BaseModel):
    """Category id+name snapshot embedded in every item document."""
    id: str = Field(..., description="Category id (24 hex chars)")
    name: str = Field(..., description="Category name at the time of the snapshot")


class Category(BaseModel):
    id: Optional[str] = Field(None, description="Assigned by the store on creation")
    name: str = Field(..., description="Unique, case-insensitive")

    @classmethod
    def from_document(cls, doc: dict) -> "Category":
        return cls(**to_str_id(doc))

    def to_document(self) -> dict:
        return {"name": self.name}


class Price(BaseModel):
    id: Optional[str] = None
    item_id: Optional[str] = None
    amount: float = 0
    currency: str = ""


class Prices(BaseModel):
    prices: List[Price] = Field(default_factory=list)

    @field_validator("prices", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return [] if v is None else v


class Shop(BaseModel):
    id: str


class Eligible(BaseModel):
    """A selection the buyer makes when ordering, e.g. size or colour."""
    id: Optional[str] = Field(None, description="Server assigned on every write")
    title: str = ""
    type: str = ""
    is_required: bool = False
    options: List[str] = Field(default_factory=list)


class Item(BaseModel):
    id: Optional[str] = None
    name: str
    description: str = ""
    status: str = DEFAULT_ITEM_STATUS
    shop_id: str = ""
    user_id: str = ""
    category: CategoryRef
    price: Optional[Price] = None
    images: List[str] = Field(default_factory=list)
    attributes: Dict[str, str] = Field(default_factory=dict)
    eligible: List[Eligible] = Field(default_factory=list)

    @field_validator("images", "eligible", mode="before")
    @classmethod
    def _none_to_list(cls, v):
        return [] if v is None else v

    @field_validator("attributes", mode="before")
    @classmethod
    def _none_to_dict(cls, v):
        return {} if v is None else v

    @classmethod
    def from_document(cls, doc: dict) -> "Item":
        return cls(**to_str_id(doc))

    def to_document(self) -> dict:
        """Shape persisted on insert. The price always lives in the pricing service."""
        return self.model_dump(exclude={"id", "price"})

    def to_update_document(self) -> dict:
        """Non-empty fields only; empty values leave the stored field untouched."""
        doc = self.model_dump(exclude={"id", "price", "shop_id"})
        return {k: v for k, v in doc.items() if v not in (None, "", [], {})}

    def assign_eligible_ids(self) -> None:
        for eligible in self.eligible:
            eligible.id = str(ObjectId())


class Items(BaseModel):
    items: List[Item] = Field(default_factory=list)

    def item_ids(self) -> List[str]:
        return [item.id for item in self.items]

    def set_prices(self, prices: Prices) -> "Items":
        """Join items with their prices on item id.

        Items without a price are dropped. Each item appears at most once and
        keeps its repository order; the first price seen for an item wins.
        """
        by_item_id: Dict[str, Price] = {}
        for price in prices.prices:
            if price.item_id is not None:
                by_item_id.setdefault(price.item_id, price)

        joined = []
        seen = set()
        for item in self.items:
            price = by_item_id.get(item.id)
            if price is None or item.id in seen:
                continue
            seen.add(item.id)
            joined.append(item.model_copy(update={"price": price}))
        return Items(items=joined)


class ItemsIds(BaseModel):
    items: List[str] = Field(default_factory=list)


class Categories(BaseModel):
    categories: List[Category] = Field(default_factory=list)


# ----- Requests -----

class PriceRequest(BaseModel):
    amount: float = Field(..., description="Zero is rejected as a missing price")
    currency: str = ""


class ItemRequest(BaseModel):
    name: str
    description: str
    status: Optional[str] = None
    category: CategoryRef
    price: PriceRequest
    images: List[str] = Field(default_factory=list)
    attributes: Dict[str, str] = Field(default_factory=dict)
    eligible: List[Eligible] = Field(default_factory=list)

    def to_item(self) -> Item:
        """Map the request onto the domain item.

        Shop id, user id and eligible ids are left for the service to stamp.
        """
        if self.price.amount == 0:
            raise BadRequestError("error converting request to item: price amount must not be zero")

        return Item(
            name=self.name,
            description=self.description,
            status=self.status or "",
            category=self.category,
            price=Price(amount=self.price.amount, currency=self.price.currency),
            images=list(self.images),
            attributes=dict(self.attributes),
            eligible=[Eligible(**e.model_dump(exclude={"id"})) for e in self.eligible],
        )


class CategoryRequest(BaseModel):
    id: Optional[str] = None
    name: str = ""
