"""
Items and categories services.

The item document lives in MongoDB, its price in the pricing service and its
shop in the shop service. Writes touching both stores are two separate calls
with no transaction around them; each returns a CrossStoreWrite so the caller
sees both outcomes. A failed price step after a successful item step is logged
and raised, and the item write is left in place.
"""
import enum
from dataclasses import dataclass, field
from typing import List, Optional

from context import RequestContext
from clients import PriceGateway, ShopGateway
from errors import ApiError, BadRequestError, ConflictError, InternalError, NotFoundError
from logger import get_logger
from repositories import CategoriesRepository, ItemsRepository
from schemas import DEFAULT_ITEM_STATUS, Category, CategoryRef, Item, ItemRequest, Items, ItemsIds
from validators import ensure_object_id, validate_hex_ids

logger = get_logger(__name__)


@dataclass
class CrossStoreWrite:
    """Outcome of an item write followed by the matching price write."""

    item_id: str
    item_written: bool = False
    price_written: bool = False
    price_error: Optional[ApiError] = None

    @property
    def partial(self) -> bool:
        return self.item_written and not self.price_written

    def raise_for_failure(self, operation: str) -> "CrossStoreWrite":
        if self.price_error is None:
            return self
        if self.partial:
            logger.warning(
                "item written without matching price",
                operation=operation,
                item_id=self.item_id,
                error=self.price_error.message,
            )
        raise self.price_error


class CategoryCheck(enum.Enum):
    OK = "ok"
    NAME_TAKEN = "name_taken"
    IN_USE = "in_use"


@dataclass(frozen=True)
class GuardResult:
    outcome: CategoryCheck
    blocking_item_ids: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.outcome is CategoryCheck.OK


def check_name_available(name: str, categories: List[Category]) -> GuardResult:
    """Case-insensitive collision check against every category, the renamed one included."""
    wanted = name.lower()
    for category in categories:
        if category.name.lower() == wanted:
            return GuardResult(CategoryCheck.NAME_TAKEN)
    return GuardResult(CategoryCheck.OK)


def check_deletable(items: List[Item]) -> GuardResult:
    if items:
        return GuardResult(CategoryCheck.IN_USE, [item.id for item in items])
    return GuardResult(CategoryCheck.OK)


class ItemsService:
    def __init__(self, repository: ItemsRepository, prices: PriceGateway, shops: ShopGateway):
        self.repository = repository
        self.prices = prices
        self.shops = shops

    def get(self, ctx: RequestContext, item_id: str) -> Item:
        item = self.repository.get(item_id)
        # Prices are keyed by the stored id; an item without one is not served.
        item.price = self.prices.get_price_by_item_id(ctx, item.id)
        return item

    def _with_prices(self, ctx: RequestContext, items: Items) -> Items:
        prices = self.prices.get_items_prices(ctx, items.item_ids())
        joined = items.set_prices(prices)
        if len(joined.items) < len(items.items):
            logger.info(
                "items dropped for missing price",
                requested=len(items.items),
                returned=len(joined.items),
            )
        return joined

    def get_items_by_user_id(self, ctx: RequestContext, user_id: str) -> Items:
        return self._with_prices(ctx, self.repository.get_by_user_id(user_id))

    def get_items_by_shop_id(self, ctx: RequestContext, shop_id: str) -> Items:
        return self._with_prices(ctx, self.repository.get_by_shop_id(shop_id))

    def get_items_by_shop_category_id(self, ctx: RequestContext, shop_id: str, category_id: str) -> Items:
        return self._with_prices(ctx, self.repository.get_by_shop_category_id(shop_id, category_id))

    def get_items_by_ids(self, ctx: RequestContext, ids: ItemsIds) -> Items:
        return self._with_prices(ctx, self.repository.get_by_ids(ids.items))

    def get_by_category_id(self, ctx: RequestContext, category_id: str) -> List[Item]:
        return self.repository.get_by_category_id(category_id)

    def create_item(self, ctx: RequestContext, request: ItemRequest) -> CrossStoreWrite:
        shop = self.shops.get_shop_by_user_id(ctx)

        item = request.to_item()
        item.shop_id = shop.id
        item.user_id = ctx.user_id or ""
        if not item.status:
            item.status = DEFAULT_ITEM_STATUS
        item.assign_eligible_ids()

        item_id = self.repository.save(item)
        write = CrossStoreWrite(item_id=item_id, item_written=True)
        logger.info("item saved", item_id=item_id, shop_id=shop.id)

        price = item.price.model_copy(update={"item_id": item_id})
        try:
            self.prices.create_price(ctx, price)
            write.price_written = True
        except ApiError as e:
            write.price_error = e

        return write.raise_for_failure("create")

    def update(self, ctx: RequestContext, item_id: str, request: ItemRequest) -> CrossStoreWrite:
        item_id = str(ensure_object_id(item_id))
        item = request.to_item()
        item.user_id = ctx.user_id or ""
        item.assign_eligible_ids()

        old_price = self.prices.get_price_by_item_id(ctx, item_id)
        price = item.price.model_copy(update={"id": old_price.id, "item_id": item_id})

        modified = self.repository.update(item_id, item)
        write = CrossStoreWrite(item_id=item_id, item_written=True)
        logger.info("item updated", item_id=item_id, modified=modified)

        try:
            self.prices.update_price(ctx, price)
            write.price_written = True
        except ApiError as e:
            write.price_error = e

        return write.raise_for_failure("update")

    def delete(self, ctx: RequestContext, item_id: str) -> CrossStoreWrite:
        # Existence check first: nothing goes downstream for an unknown item.
        item = self.repository.get(item_id)

        self.repository.delete(item_id)
        write = CrossStoreWrite(item_id=item.id, item_written=True)
        logger.info("item deleted", item_id=item.id)

        try:
            self.prices.delete_price(ctx, item.id)
            write.price_written = True
        except ApiError as e:
            write.price_error = e

        return write.raise_for_failure("delete")

    def update_items_categories(self, ctx: RequestContext, category: CategoryRef) -> int:
        """Cascade a category rename to the embedded snapshots. No matching item is fine."""
        try:
            return self.repository.update_items_categories(category)
        except NotFoundError:
            logger.debug("no items embed category", category_id=category.id)
            return 0


class CategoriesService:
    def __init__(self, repository: CategoriesRepository, items: ItemsService):
        self.repository = repository
        self.items = items

    def get(self, ctx: RequestContext, category_id: str) -> Category:
        return self.repository.get(category_id)

    def get_all_categories(self, ctx: RequestContext) -> List[Category]:
        categories = self.repository.get_all()
        if not categories:
            raise InternalError("no categories found",
                                RuntimeError("categories should never be empty, please contact an administrator"))
        return categories

    def _ensure_name_available(self, name: str) -> None:
        if not name or not name.strip():
            raise BadRequestError("category name must not be empty")

        guard = check_name_available(name, self.repository.get_all())
        if guard.outcome is CategoryCheck.NAME_TAKEN:
            raise ConflictError("Error creating the item category.", ["category already exists"])

    def create(self, ctx: RequestContext, category: Category) -> str:
        self._ensure_name_available(category.name)
        category_id = self.repository.create(Category(name=category.name))
        logger.info("category created", category_id=category_id, name=category.name)
        return category_id

    def update(self, ctx: RequestContext, category: Category) -> None:
        validate_hex_ids([category.id])
        self._ensure_name_available(category.name)
        self.repository.update(category)
        logger.info("category renamed", category_id=category.id, name=category.name)

        self.items.update_items_categories(ctx, CategoryRef(id=category.id, name=category.name))

    def delete(self, ctx: RequestContext, category_id: str) -> None:
        validate_hex_ids([category_id])
        guard = check_deletable(self.items.get_by_category_id(ctx, category_id))
        if guard.outcome is CategoryCheck.IN_USE:
            raise ConflictError(
                "error attempting to delete the category, update these items before deleting the category",
                [f"the following items are using the category {guard.blocking_item_ids}"],
            )

        self.repository.delete(category_id)
        logger.info("category deleted", category_id=category_id)

    def verify_snapshot(self, ctx: RequestContext, reference: CategoryRef) -> Category:
        """The id+name an item carries must match the stored category exactly."""
        validate_hex_ids([reference.id])
        category = self.repository.get(reference.id)
        if category.name != reference.name:
            raise BadRequestError(f"category name does not match with the existing category for {category.id}")
        return category
