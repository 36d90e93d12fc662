import os
import tempfile

os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="items-api-logs-")
os.environ["API_USERNAME"] = "admin"
os.environ["API_PASSWORD"] = "changeme"
os.environ.pop("DATABASE_URL", None)

import mongomock  # noqa: E402
import pytest  # noqa: E402

from context import RequestContext  # noqa: E402
from repositories import CategoriesRepository, ItemsRepository  # noqa: E402
from schemas import Category, CategoryRef, Eligible, Item  # noqa: E402
from services import CategoriesService, ItemsService  # noqa: E402
from tests.fakes import FakePriceGateway, FakeShopGateway  # noqa: E402

SHOP_ID = "5f0c2b9e8a1d4c3b2a190001"
USER_ID = "firebase-user-1"


@pytest.fixture()
def mongo_db():
    client = mongomock.MongoClient()
    yield client["catalog_test"]
    client.close()


@pytest.fixture()
def items_repository(mongo_db):
    return ItemsRepository(mongo_db["items"])


@pytest.fixture()
def categories_repository(mongo_db):
    return CategoriesRepository(mongo_db["categories"])


@pytest.fixture()
def prices():
    return FakePriceGateway()


@pytest.fixture()
def shops():
    return FakeShopGateway(SHOP_ID)


@pytest.fixture()
def items_service(items_repository, prices, shops):
    return ItemsService(items_repository, prices, shops)


@pytest.fixture()
def categories_service(categories_repository, items_service):
    return CategoriesService(categories_repository, items_service)


@pytest.fixture()
def ctx():
    return RequestContext(trace_id="trace-123", authorization="Bearer token-1", user_id=USER_ID)


@pytest.fixture()
def shoes(categories_repository):
    category_id = categories_repository.create(Category(name="Shoes"))
    return Category(id=category_id, name="Shoes")


def make_item(category: Category, name: str = "Sneaker", shop_id: str = SHOP_ID,
              user_id: str = USER_ID) -> Item:
    return Item(
        name=name,
        description=f"{name} description",
        shop_id=shop_id,
        user_id=user_id,
        category=CategoryRef(id=category.id, name=category.name),
        images=["img-1", "img-2"],
        attributes={"color": "black"},
        eligible=[Eligible(title="Size", type="select", is_required=True, options=["40", "41"])],
    )
