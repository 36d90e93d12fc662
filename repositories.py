"""
MongoDB repositories for items and categories.

Plain data access: every store failure becomes an InternalError labelled with
the operation, a missing document becomes a NotFoundError. No business rules.
"""
from typing import List

from pymongo.collection import Collection
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from database import create_document, get_documents, utcnow
from errors import InternalError, NotFoundError
from logger import get_logger
from schemas import Category, CategoryRef, Item, Items
from validators import ensure_object_id

logger = get_logger(__name__)

DATABASE_ERROR = "[%s] Error in DB"


def _db_error(operation: str, err: Exception) -> InternalError:
    logger.error("database operation failed", operation=operation, error=str(err))
    return InternalError(DATABASE_ERROR % operation, err)


def _decode(operation: str, model, doc: dict):
    """Documents that no longer fit the model are a store failure, not a client one."""
    try:
        return model.from_document(doc)
    except ValidationError as e:
        raise _db_error(operation, e)


class ItemsRepository:
    def __init__(self, collection: Collection):
        self.collection = collection

    def get(self, item_id: str) -> Item:
        _id = ensure_object_id(item_id)
        try:
            doc = self.collection.find_one({"_id": _id})
        except PyMongoError as e:
            raise _db_error("Get", e)

        if not doc:
            raise NotFoundError("item not found")
        return _decode("Get", Item, doc)

    def _find_many(self, operation: str, filter_dict: dict) -> Items:
        # An empty match is reported as NotFound, never as an empty list.
        try:
            docs = get_documents(self.collection, filter_dict)
        except PyMongoError as e:
            raise _db_error(operation, e)

        if not docs:
            raise NotFoundError("items not found")
        return Items(items=[_decode(operation, Item, d) for d in docs])

    def get_by_user_id(self, user_id: str) -> Items:
        return self._find_many("GetByUserID", {"user_id": user_id})

    def get_by_shop_id(self, shop_id: str) -> Items:
        return self._find_many("GetByShopID", {"shop_id": shop_id})

    def get_by_shop_category_id(self, shop_id: str, category_id: str) -> Items:
        return self._find_many("GetByShopCategoryID", {"shop_id": shop_id, "category.id": category_id})

    def get_by_ids(self, item_ids: List[str]) -> Items:
        object_ids = [ensure_object_id(i) for i in item_ids]
        return self._find_many("GetByIDs", {"_id": {"$in": object_ids}})

    def get_by_category_id(self, category_id: str) -> List[Item]:
        """Items embedding the category. Unlike the other listings, no match is an empty list."""
        try:
            docs = get_documents(self.collection, {"category.id": category_id})
        except PyMongoError as e:
            raise _db_error("GetByCategoryID", e)
        return [_decode("GetByCategoryID", Item, d) for d in docs]

    def save(self, item: Item) -> str:
        try:
            inserted_id = create_document(self.collection, item.to_document())
        except PyMongoError as e:
            raise _db_error("Save", e)

        if not inserted_id:
            raise InternalError(DATABASE_ERROR % "Save", RuntimeError("item not created"))
        return inserted_id

    def update(self, item_id: str, item: Item) -> int:
        """Returns the modified count; zero modified is fine, zero matched is NotFound."""
        _id = ensure_object_id(item_id)
        try:
            changes = {**item.to_update_document(), "updated_at": utcnow()}
            result = self.collection.update_one({"_id": _id}, {"$set": changes})
        except PyMongoError as e:
            raise _db_error("Update", e)

        if result.matched_count == 0:
            raise NotFoundError(DATABASE_ERROR % "Update")
        return result.modified_count

    def delete(self, item_id: str) -> int:
        _id = ensure_object_id(item_id)
        try:
            result = self.collection.delete_one({"_id": _id})
        except PyMongoError as e:
            raise _db_error("Delete", e)

        if result.deleted_count == 0:
            raise NotFoundError(DATABASE_ERROR % "Delete")
        return result.deleted_count

    def update_items_categories(self, category: CategoryRef) -> int:
        """Rewrite the embedded category snapshot on every item that carries its id."""
        update = {"$set": {
            "category.id": category.id,
            "category.name": category.name,
            "updated_at": utcnow(),
        }}
        try:
            result = self.collection.update_many({"category.id": category.id}, update)
        except PyMongoError as e:
            raise _db_error("UpdateItemsCategories", e)

        if result.matched_count == 0:
            raise NotFoundError(DATABASE_ERROR % "UpdateItemsCategories", ["no update"])
        return result.modified_count


class CategoriesRepository:
    def __init__(self, collection: Collection):
        self.collection = collection

    def get(self, category_id: str) -> Category:
        _id = ensure_object_id(category_id)
        try:
            doc = self.collection.find_one({"_id": _id})
        except PyMongoError as e:
            raise _db_error("Get", e)

        if not doc:
            raise NotFoundError("category not found")
        return _decode("Get", Category, doc)

    def get_all(self) -> List[Category]:
        try:
            docs = get_documents(self.collection)
        except PyMongoError as e:
            raise _db_error("GetAll", e)
        return [_decode("GetAll", Category, d) for d in docs]

    def create(self, category: Category) -> str:
        try:
            inserted_id = create_document(self.collection, category.to_document())
        except PyMongoError as e:
            raise _db_error("Save", e)

        if not inserted_id:
            raise InternalError(DATABASE_ERROR % "Save", RuntimeError("category not created"))
        return inserted_id

    def update(self, category: Category) -> int:
        _id = ensure_object_id(category.id)
        try:
            changes = {"name": category.name, "updated_at": utcnow()}
            result = self.collection.update_one({"_id": _id}, {"$set": changes})
        except PyMongoError as e:
            raise _db_error("Update", e)

        if result.matched_count == 0:
            raise NotFoundError(DATABASE_ERROR % "Update")
        return result.modified_count

    def delete(self, category_id: str) -> int:
        _id = ensure_object_id(category_id)
        try:
            result = self.collection.delete_one({"_id": _id})
        except PyMongoError as e:
            raise _db_error("Delete", e)

        if result.deleted_count == 0:
            raise NotFoundError(DATABASE_ERROR % "Delete")
        return result.deleted_count
