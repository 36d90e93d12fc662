"""Repository tests against an in-memory MongoDB (mongomock)."""

from datetime import datetime, timezone
from unittest import mock

import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError

from errors import BadRequestError, InternalError, NotFoundError
from repositories import CategoriesRepository, ItemsRepository
from schemas import Category, CategoryRef, Item
from tests.conftest import SHOP_ID, USER_ID, make_item

OTHER_SHOP_ID = "5f0c2b9e8a1d4c3b2a190002"
LATER = datetime(2030, 1, 1, tzinfo=timezone.utc)


class TestItemsRepositoryGet:
    def test_save_then_get(self, items_repository, shoes):
        item_id = items_repository.save(make_item(shoes))

        assert ObjectId.is_valid(item_id)
        item = items_repository.get(item_id)
        assert item.id == item_id
        assert item.name == "Sneaker"
        assert item.category == CategoryRef(id=shoes.id, name="Shoes")
        assert item.price is None

    def test_saved_document_has_no_price(self, items_repository, mongo_db, shoes):
        item = make_item(shoes)
        item.price = None
        item_id = items_repository.save(item)

        doc = mongo_db["items"].find_one({"_id": ObjectId(item_id)})
        assert "price" not in doc

    def test_get_missing(self, items_repository):
        with pytest.raises(NotFoundError) as exc:
            items_repository.get(str(ObjectId()))
        assert exc.value.message == "item not found"

    def test_get_invalid_id(self, items_repository):
        with pytest.raises(BadRequestError):
            items_repository.get("not-an-id")

    def test_store_error_is_internal(self, items_repository):
        with mock.patch.object(items_repository.collection, "find_one", side_effect=PyMongoError("boom")):
            with pytest.raises(InternalError) as exc:
                items_repository.get(str(ObjectId()))
        assert exc.value.message == "[Get] Error in DB"
        assert exc.value.status == 500

    def test_document_missing_required_fields_is_internal(self, items_repository, mongo_db, shoes):
        result = mongo_db["items"].insert_one({"category": {"id": shoes.id, "name": "Shoes"}})

        with pytest.raises(InternalError) as exc:
            items_repository.get(str(result.inserted_id))
        assert exc.value.message == "[Get] Error in DB"

    def test_listing_with_undecodable_document_is_internal(self, items_repository, mongo_db):
        mongo_db["items"].insert_one({"user_id": USER_ID})

        with pytest.raises(InternalError) as exc:
            items_repository.get_by_user_id(USER_ID)
        assert exc.value.message == "[GetByUserID] Error in DB"


class TestItemsRepositoryListings:
    def test_by_user_and_shop(self, items_repository, shoes):
        items_repository.save(make_item(shoes, name="a"))
        items_repository.save(make_item(shoes, name="b", shop_id=OTHER_SHOP_ID, user_id="someone-else"))

        assert [i.name for i in items_repository.get_by_user_id(USER_ID).items] == ["a"]
        assert [i.name for i in items_repository.get_by_shop_id(OTHER_SHOP_ID).items] == ["b"]

    def test_by_shop_and_category(self, items_repository, categories_repository, shoes):
        hats_id = categories_repository.create(Category(name="Hats"))
        hats = Category(id=hats_id, name="Hats")
        items_repository.save(make_item(shoes, name="shoe"))
        items_repository.save(make_item(hats, name="hat"))

        result = items_repository.get_by_shop_category_id(SHOP_ID, hats_id)
        assert [i.name for i in result.items] == ["hat"]

    def test_by_ids(self, items_repository, shoes):
        first = items_repository.save(make_item(shoes, name="a"))
        items_repository.save(make_item(shoes, name="b"))
        third = items_repository.save(make_item(shoes, name="c"))

        result = items_repository.get_by_ids([first, third, str(ObjectId())])
        assert sorted(result.item_ids()) == sorted([first, third])

    @pytest.mark.parametrize(
        "query",
        [
            lambda repo: repo.get_by_user_id("nobody"),
            lambda repo: repo.get_by_shop_id(OTHER_SHOP_ID),
            lambda repo: repo.get_by_shop_category_id(SHOP_ID, str(ObjectId())),
            lambda repo: repo.get_by_ids([str(ObjectId())]),
        ],
    )
    def test_empty_listing_is_not_found(self, items_repository, shoes, query):
        items_repository.save(make_item(shoes))

        with pytest.raises(NotFoundError) as exc:
            query(items_repository)
        assert exc.value.message == "items not found"

    def test_by_category_id_empty_is_a_list(self, items_repository):
        assert items_repository.get_by_category_id(str(ObjectId())) == []


class TestItemsRepositoryWrites:
    def test_update_sets_non_empty_fields(self, items_repository, shoes):
        item_id = items_repository.save(make_item(shoes))
        change = Item(name="Renamed", status="", category=CategoryRef(id=shoes.id, name="Shoes"))

        assert items_repository.update(item_id, change) == 1

        item = items_repository.get(item_id)
        assert item.name == "Renamed"
        assert item.status == "active"
        assert item.shop_id == SHOP_ID
        assert item.images == ["img-1", "img-2"]

    def test_update_refreshes_updated_at(self, items_repository, mongo_db, shoes):
        item_id = items_repository.save(make_item(shoes))
        created = mongo_db["items"].find_one({"_id": ObjectId(item_id)})["created_at"]

        with mock.patch("repositories.utcnow", return_value=LATER):
            items_repository.update(item_id, Item(name="Renamed", category=CategoryRef(id=shoes.id, name="Shoes")))

        doc = mongo_db["items"].find_one({"_id": ObjectId(item_id)})
        assert doc["updated_at"].replace(tzinfo=None) == LATER.replace(tzinfo=None)
        assert doc["created_at"] == created

    def test_rename_cascade_refreshes_updated_at(self, items_repository, mongo_db, shoes):
        item_id = items_repository.save(make_item(shoes))

        with mock.patch("repositories.utcnow", return_value=LATER):
            items_repository.update_items_categories(CategoryRef(id=shoes.id, name="Footwear"))

        doc = mongo_db["items"].find_one({"_id": ObjectId(item_id)})
        assert doc["updated_at"].replace(tzinfo=None) == LATER.replace(tzinfo=None)

    def test_update_missing(self, items_repository, shoes):
        with pytest.raises(NotFoundError):
            items_repository.update(str(ObjectId()), make_item(shoes))

    def test_save_without_inserted_id(self, items_repository, shoes):
        with mock.patch("repositories.create_document", return_value=None):
            with pytest.raises(InternalError) as exc:
                items_repository.save(make_item(shoes))
        assert exc.value.message == "[Save] Error in DB"

    def test_delete(self, items_repository, shoes):
        item_id = items_repository.save(make_item(shoes))

        assert items_repository.delete(item_id) == 1
        with pytest.raises(NotFoundError):
            items_repository.get(item_id)
        with pytest.raises(NotFoundError):
            items_repository.delete(item_id)

    def test_update_items_categories(self, items_repository, shoes):
        ids = [items_repository.save(make_item(shoes, name=n)) for n in ("a", "b")]

        items_repository.update_items_categories(CategoryRef(id=shoes.id, name="Footwear"))

        for item_id in ids:
            assert items_repository.get(item_id).category.name == "Footwear"

    def test_update_items_categories_without_items(self, items_repository):
        with pytest.raises(NotFoundError):
            items_repository.update_items_categories(CategoryRef(id=str(ObjectId()), name="x"))


class TestCategoriesRepository:
    def test_create_get_and_list_in_store_order(self, categories_repository):
        first = categories_repository.create(Category(name="Shoes"))
        second = categories_repository.create(Category(name="Hats"))

        assert categories_repository.get(first) == Category(id=first, name="Shoes")
        assert [c.id for c in categories_repository.get_all()] == [first, second]

    def test_get_missing(self, categories_repository):
        with pytest.raises(NotFoundError):
            categories_repository.get(str(ObjectId()))

    def test_update_name(self, categories_repository, shoes):
        categories_repository.update(Category(id=shoes.id, name="Footwear"))
        assert categories_repository.get(shoes.id).name == "Footwear"

    def test_update_refreshes_updated_at(self, categories_repository, mongo_db, shoes):
        with mock.patch("repositories.utcnow", return_value=LATER):
            categories_repository.update(Category(id=shoes.id, name="Footwear"))

        doc = mongo_db["categories"].find_one({"_id": ObjectId(shoes.id)})
        assert doc["updated_at"].replace(tzinfo=None) == LATER.replace(tzinfo=None)

    def test_undecodable_category_is_internal(self, categories_repository, mongo_db):
        mongo_db["categories"].insert_one({"label": "no name"})

        with pytest.raises(InternalError) as exc:
            categories_repository.get_all()
        assert exc.value.message == "[GetAll] Error in DB"

    def test_update_missing(self, categories_repository):
        with pytest.raises(NotFoundError):
            categories_repository.update(Category(id=str(ObjectId()), name="x"))

    def test_delete(self, categories_repository, shoes):
        categories_repository.delete(shoes.id)
        assert categories_repository.get_all() == []
        with pytest.raises(NotFoundError):
            categories_repository.delete(shoes.id)

    def test_list_store_error(self, mongo_db):
        repository = CategoriesRepository(mongo_db["categories"])
        with mock.patch.object(repository.collection, "find", side_effect=PyMongoError("down")):
            with pytest.raises(InternalError) as exc:
                repository.get_all()
        assert exc.value.message == "[GetAll] Error in DB"


def test_items_repository_uses_given_collection(mongo_db):
    repository = ItemsRepository(mongo_db["other"])
    assert repository.collection.name == "other"
