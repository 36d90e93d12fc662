import secrets
import time
import uuid
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

import database
from clients import PriceClient, PriceGateway, ShopClient, ShopGateway
from config import get_settings
from context import AUTHORIZATION_HEADER, TRACE_HEADER, USER_HEADER, RequestContext
from errors import ApiError, BadRequestError, NotFoundError, UnauthorizedError
from logger import add_context, clear_context, configure_logging, get_logger
from repositories import CategoriesRepository, ItemsRepository
from schemas import Categories, Category, CategoryRequest, ItemRequest, ItemsIds
from services import CategoriesService, ItemsService
from validators import validate_hex_ids

configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.connect() is None:
        logger.warning("database not configured", database_url=bool(get_settings().database_url))
    yield
    database.close()


app = FastAPI(title="Catalog Items API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----- Request logging -----

@app.middleware("http")
async def trace_requests(request: Request, call_next):
    trace_id = request.headers.get(TRACE_HEADER) or uuid.uuid4().hex
    request.state.trace_id = trace_id

    clear_context()
    add_context(trace_id=trace_id, method=request.method, path=request.url.path)
    user_id = request.headers.get(USER_HEADER)
    if user_id:
        add_context(user_id=user_id)
    started = time.perf_counter()

    response = await call_next(request)

    response.headers[TRACE_HEADER] = trace_id
    logger.info(
        "request handled",
        status=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
    )
    return response


# ----- Errors -----

@app.exception_handler(ApiError)
async def handle_api_error(request: Request, exc: ApiError):
    if exc.status >= 500:
        logger.error("request failed", error=exc.message, cause=exc.causes)
    return JSONResponse(status_code=exc.status, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    causes = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
    err = BadRequestError("invalid request body", causes)
    return JSONResponse(status_code=err.status, content=err.to_dict())


# ----- Dependencies -----

@lru_cache(maxsize=1)
def get_price_gateway() -> PriceGateway:
    settings = get_settings()
    return PriceClient(settings.prices_api_url, settings.http_timeout_seconds)


@lru_cache(maxsize=1)
def get_shop_gateway() -> ShopGateway:
    settings = get_settings()
    return ShopClient(settings.shops_api_url, settings.http_timeout_seconds)


def get_items_repository() -> ItemsRepository:
    return ItemsRepository(database.get_collection(database.ITEMS_COLLECTION))


def get_categories_repository() -> CategoriesRepository:
    return CategoriesRepository(database.get_collection(database.CATEGORIES_COLLECTION))


def get_items_service(
    repository: ItemsRepository = Depends(get_items_repository),
    prices: PriceGateway = Depends(get_price_gateway),
    shops: ShopGateway = Depends(get_shop_gateway),
) -> ItemsService:
    return ItemsService(repository, prices, shops)


def get_categories_service(
    repository: CategoriesRepository = Depends(get_categories_repository),
    items: ItemsService = Depends(get_items_service),
) -> CategoriesService:
    return CategoriesService(repository, items)


def get_request_context(request: Request) -> RequestContext:
    trace_id = getattr(request.state, "trace_id", None)
    return RequestContext.new(
        trace_id=trace_id or request.headers.get(TRACE_HEADER),
        authorization=request.headers.get(AUTHORIZATION_HEADER),
        user_id=request.headers.get(USER_HEADER),
    )


def require_caller(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    if not ctx.user_id:
        raise UnauthorizedError("missing caller identity")
    return ctx


basic_auth = HTTPBasic(auto_error=False)


def require_admin(credentials: Optional[HTTPBasicCredentials] = Depends(basic_auth)) -> None:
    settings = get_settings()
    if credentials is None:
        raise UnauthorizedError("missing credentials")

    valid_user = secrets.compare_digest(credentials.username.encode(), settings.api_username.encode())
    valid_password = secrets.compare_digest(credentials.password.encode(), settings.api_password.encode())
    if not (valid_user and valid_password):
        raise UnauthorizedError("invalid credentials")


# ----- Health -----

@app.get("/ping", response_class=PlainTextResponse)
def ping():
    return "pong"


@app.get("/health")
def health():
    settings = get_settings()
    response = {
        "backend": "running",
        "database": "not available",
        "database_url": "set" if settings.database_url else "not set",
        "database_name": "set" if settings.database_name else "not set",
        "collections": [],
    }
    db = database.db
    if db is None:
        return response
    try:
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "connected"
    except Exception as e:
        logger.warning("database health check failed", error=str(e))
        response["database"] = f"connected but error: {str(e)[:80]}"
    return response


# ----- Categories -----
# Registered ahead of the item routes so /items/categories is not read as an item id.

categories_router = APIRouter(prefix="/items", tags=["categories"])


@categories_router.get("/categories")
def get_all_categories(
    ctx: RequestContext = Depends(get_request_context),
    service: CategoriesService = Depends(get_categories_service),
):
    return Categories(categories=service.get_all_categories(ctx))


@categories_router.get("/category/{category_id}")
def get_category(
    category_id: str,
    ctx: RequestContext = Depends(get_request_context),
    service: CategoriesService = Depends(get_categories_service),
):
    validate_hex_ids([category_id])
    return service.get(ctx, category_id)


@categories_router.post("/category", status_code=201, dependencies=[Depends(require_admin)])
def create_category(
    body: CategoryRequest,
    ctx: RequestContext = Depends(get_request_context),
    service: CategoriesService = Depends(get_categories_service),
):
    category_id = service.create(ctx, Category(name=body.name))
    return {"id": category_id}


@categories_router.put("/category", status_code=204, dependencies=[Depends(require_admin)])
def update_category(
    body: CategoryRequest,
    ctx: RequestContext = Depends(get_request_context),
    service: CategoriesService = Depends(get_categories_service),
):
    if not body.name.strip():
        raise BadRequestError("category name must not be empty")
    validate_hex_ids([body.id or ""])
    service.update(ctx, Category(id=body.id, name=body.name))
    return Response(status_code=204)


@categories_router.delete("/category/{category_id}", status_code=204, dependencies=[Depends(require_admin)])
def delete_category(
    category_id: str,
    ctx: RequestContext = Depends(get_request_context),
    service: CategoriesService = Depends(get_categories_service),
):
    validate_hex_ids([category_id])
    service.delete(ctx, category_id)
    return Response(status_code=204)


# ----- Items -----

items_router = APIRouter(prefix="/items", tags=["items"])


@items_router.get("")
def get_items_by_user_id(
    ctx: RequestContext = Depends(require_caller),
    service: ItemsService = Depends(get_items_service),
):
    return service.get_items_by_user_id(ctx, ctx.user_id)


@items_router.post("/list")
def get_items_by_ids(
    body: ItemsIds,
    response: Response,
    ctx: RequestContext = Depends(get_request_context),
    service: ItemsService = Depends(get_items_service),
):
    validate_hex_ids(body.items)
    items = service.get_items_by_ids(ctx, body)
    if len(items.items) != len(body.items):
        response.headers["integrity"] = "false"
    return items


@items_router.get("/shop/{shop_id}")
def get_items_by_shop_id(
    shop_id: str,
    ctx: RequestContext = Depends(get_request_context),
    service: ItemsService = Depends(get_items_service),
):
    validate_hex_ids([shop_id])
    return service.get_items_by_shop_id(ctx, shop_id)


@items_router.get("/shop/{shop_id}/category/{category_id}")
def get_items_by_shop_category_id(
    shop_id: str,
    category_id: str,
    ctx: RequestContext = Depends(get_request_context),
    service: ItemsService = Depends(get_items_service),
):
    validate_hex_ids([shop_id, category_id])
    items = service.get_items_by_shop_category_id(ctx, shop_id, category_id)
    if not items.items:
        raise NotFoundError("items not found")
    return items


@items_router.get("/{item_id}")
def get_item(
    item_id: str,
    ctx: RequestContext = Depends(get_request_context),
    service: ItemsService = Depends(get_items_service),
):
    validate_hex_ids([item_id])
    return service.get(ctx, item_id)


@items_router.post("", status_code=201)
def create_item(
    body: ItemRequest,
    ctx: RequestContext = Depends(require_caller),
    service: ItemsService = Depends(get_items_service),
    categories: CategoriesService = Depends(get_categories_service),
):
    categories.verify_snapshot(ctx, body.category)
    write = service.create_item(ctx, body)
    return {"id": write.item_id}


@items_router.put("/{item_id}", status_code=204)
def update_item(
    item_id: str,
    body: ItemRequest,
    ctx: RequestContext = Depends(require_caller),
    service: ItemsService = Depends(get_items_service),
    categories: CategoriesService = Depends(get_categories_service),
):
    validate_hex_ids([item_id, body.category.id])
    categories.verify_snapshot(ctx, body.category)
    service.update(ctx, item_id, body)
    return Response(status_code=204)


@items_router.delete("/{item_id}", status_code=204)
def delete_item(
    item_id: str,
    ctx: RequestContext = Depends(require_caller),
    service: ItemsService = Depends(get_items_service),
):
    validate_hex_ids([item_id])
    service.delete(ctx, item_id)
    return Response(status_code=204)


app.include_router(categories_router)
app.include_router(items_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
