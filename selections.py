from typing import Dict

from database import StoreRepository
from errors import NotFound
from logger import get_logger
from schemas import DataCategory, KeyInfo, SelectionsResult, normalize_selections

logger = get_logger(__name__)


def build_api_url(host: str, api_key: str) -> str:
    return f"{host.rstrip('/')}/api/data/{api_key}"


def update_selections(
    shop: str,
    selections: Dict[DataCategory, bool],
    repository: StoreRepository,
    host: str,
) -> SelectionsResult:
    # Replace as given: anything the caller left out is switched off
    flags = normalize_selections(selections)
    record = repository.replace_selections(shop, flags)
    if record is None or not record.api_key:
        raise NotFound()

    enabled = [name for name, on in flags.items() if on]
    logger.info(f"Selections for {shop} set to: {', '.join(enabled) or 'none'}")
    return SelectionsResult(api_key=record.api_key, api_url=build_api_url(host, record.api_key))


def key_info(shop: str, repository: StoreRepository, host: str) -> KeyInfo:
    record = repository.find_by_shop(shop)
    # A record without a key has not finished onboarding
    if record is None or not record.api_key:
        raise NotFound()
    return KeyInfo(
        api_key=record.api_key,
        api_url=build_api_url(host, record.api_key),
        data_selections=record.data_selections,
    )
