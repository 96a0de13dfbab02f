from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, RedirectResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import Settings, get_settings
from database import (
    MongoSessionStore,
    MongoStoreRepository,
    SessionStore,
    StoreRepository,
    ensure_indexes,
    get_database,
)
from errors import (
    GatewayError,
    MissingParameter,
    gateway_error_handler,
    unhandled_error_handler,
    validation_error_handler,
)
from gateway import ClientFactory, fetch_authorized_data
from logger import configure_logging, get_logger
from oauth import SESSION_COOKIE, begin_auth, complete_auth, validate_callback
from schemas import KeyInfo, SelectionsResult, SelectionsUpdate
from selections import key_info, update_selections
from shopify_client import ShopifyClient

logger = get_logger(__name__)

DASHBOARD_HTML = Path(__file__).parent / "static" / "dashboard.html"


def get_db(settings: Settings = Depends(get_settings)) -> Database:
    return get_database(settings.database_url, settings.database_name)


def get_repository(db: Database = Depends(get_db)) -> StoreRepository:
    return MongoStoreRepository(db)


def get_session_store(db: Database = Depends(get_db)) -> SessionStore:
    return MongoSessionStore(db)


def get_client_factory(settings: Settings = Depends(get_settings)) -> ClientFactory:
    def factory(shop: str, access_token: str) -> ShopifyClient:
        return ShopifyClient(shop, access_token, settings.shopify_api_version, settings.shopify_timeout)
    return factory


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info(f"Starting Shopify BI gateway - HOST: {settings.public_host}, PORT: {settings.port}")
    if not settings.shopify_api_key or not settings.shopify_api_secret:
        logger.warning("SHOPIFY_API_KEY / SHOPIFY_API_SECRET are not set; installs will fail")
    try:
        ensure_indexes(get_database(settings.database_url, settings.database_name))
        logger.info("MongoDB connected")
    except PyMongoError as e:
        logger.error(f"MongoDB connection error: {e}")
    yield


app = FastAPI(title="Shopify BI Gateway", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(GatewayError, gateway_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)


def dashboard_redirect(shop: str) -> RedirectResponse:
    return RedirectResponse(f"/dashboard?shop={quote(shop)}", status_code=302)


@app.get("/")
def index(
    shop: Optional[str] = Query(None),
    repository: StoreRepository = Depends(get_repository),
    sessions: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
):
    if not shop:
        raise MissingParameter(
            "Missing shop parameter. Please add ?shop=your-shop.myshopify.com to your request"
        )

    record = repository.find_by_shop(shop)
    if record and record.is_authenticated:
        return dashboard_redirect(shop)

    session_id, auth_url = begin_auth(shop, sessions, settings)
    response = RedirectResponse(auth_url, status_code=302)
    response.set_cookie(
        SESSION_COOKIE,
        session_id,
        max_age=600,
        httponly=True,
        samesite="lax",
        secure=settings.public_host.startswith("https://"),
    )
    return response


@app.get("/auth/callback")
def auth_callback(
    request: Request,
    repository: StoreRepository = Depends(get_repository),
    sessions: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
):
    shop, access_token = validate_callback(
        request.cookies.get(SESSION_COOKIE),
        dict(request.query_params),
        sessions,
        settings,
    )
    complete_auth(shop, access_token, repository)

    response = dashboard_redirect(shop)
    response.delete_cookie(SESSION_COOKIE)
    return response


@app.get("/dashboard")
def dashboard(
    shop: Optional[str] = Query(None),
    repository: StoreRepository = Depends(get_repository),
):
    if not shop:
        raise MissingParameter()

    if repository.find_by_shop(shop) is None:
        return RedirectResponse(f"/?shop={quote(shop)}", status_code=302)
    return FileResponse(DASHBOARD_HTML, media_type="text/html")


@app.post("/api/data-selections", response_model=SelectionsResult)
def post_data_selections(
    payload: SelectionsUpdate,
    shop: Optional[str] = Query(None),
    repository: StoreRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
):
    if not shop:
        raise MissingParameter()
    return update_selections(shop, payload.data_selections, repository, settings.public_host)


@app.get("/api/data/{api_key}")
def get_store_data(
    api_key: str,
    repository: StoreRepository = Depends(get_repository),
    client_factory: ClientFactory = Depends(get_client_factory),
):
    return fetch_authorized_data(api_key, repository, client_factory)


@app.get("/api/key-info", response_model=KeyInfo)
def get_key_info(
    shop: Optional[str] = Query(None),
    repository: StoreRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
):
    if not shop:
        raise MissingParameter()
    return key_info(shop, repository, settings.public_host)


@app.get("/health")
def health(db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    response = {
        "backend": "running",
        "database": "not connected",
        "database_name": settings.database_name,
        "collections": [],
    }

    try:
        db.command("ping")
        response["database"] = "connected"
        response["collections"] = db.list_collection_names()[:10]
    except PyMongoError as e:
        logger.warning(f"Health check could not reach MongoDB: {e}")
        response["database"] = f"error: {str(e)[:60]}"

    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
