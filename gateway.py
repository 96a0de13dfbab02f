from typing import Callable, Dict, List, Any, NamedTuple

from database import StoreRepository
from errors import Unauthorized, UpstreamError
from logger import get_logger
from schemas import DataCategory, FETCHABLE_CATEGORIES
from shopify_client import ShopifyClient

logger = get_logger(__name__)

# Single page per category; larger stores are truncated
PAGE_LIMIT = 250

ClientFactory = Callable[[str, str], ShopifyClient]
DataPayload = Dict[str, List[Any]]


class Resource(NamedTuple):
    path: str
    body_key: str
    params: Dict[str, Any]


RESOURCES: Dict[DataCategory, Resource] = {
    DataCategory.ORDERS: Resource("orders.json", "orders", {"status": "any"}),
    DataCategory.CUSTOMERS: Resource("customers.json", "customers", {}),
    DataCategory.PRODUCTS: Resource("products.json", "products", {}),
    DataCategory.INVENTORY: Resource("inventory_items.json", "inventory_items", {}),
    # Placeholder: the reports shape is not a fixed contract
    DataCategory.ANALYTICS: Resource("reports.json", "reports", {}),
}


def fetch_authorized_data(api_key: str, repository: StoreRepository, client_factory: ClientFactory) -> DataPayload:
    """
    Return every category the store behind `api_key` has authorized, fetched
    live from Shopify. Categories that are not authorized are left out of the
    payload entirely. One failed fetch fails the whole call.
    """
    record = repository.find_by_api_key(api_key)
    if record is None:
        raise Unauthorized()

    authorized = [category for category in FETCHABLE_CATEGORIES if record.allows(category)]
    data: DataPayload = {}
    if not authorized:
        return data

    client = client_factory(record.shop, record.access_token)
    for category in authorized:
        resource = RESOURCES[category]
        params = {"limit": PAGE_LIMIT, **resource.params}
        try:
            body = client.get(resource.path, params)
        except UpstreamError as e:
            logger.error(f"Fetching {category.value} for {record.shop} failed: {e.message}")
            raise UpstreamError() from e
        data[category.value] = body.get(resource.body_key) or []

    logger.info(f"Served {', '.join(data)} for {record.shop}")
    return data
