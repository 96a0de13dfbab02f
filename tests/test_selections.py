import pytest

from errors import NotFound
from schemas import DataCategory
from selections import build_api_url, key_info, update_selections

HOST = "https://bi.example.com"


def test_build_api_url_strips_trailing_slash():
    assert build_api_url("https://bi.example.com/", "abc") == "https://bi.example.com/api/data/abc"


def test_update_returns_stable_key_and_url(repository):
    repository.add(api_key="K1")

    result = update_selections("a.myshopify.com", {DataCategory.ORDERS: True}, repository, HOST)

    assert result.api_key == "K1"
    assert result.api_url == "https://bi.example.com/api/data/K1"
    assert result.success is True


def test_update_replaces_instead_of_merging(repository):
    repository.add(api_key="K1", orders=True, customers=True, completeStore=True)

    update_selections("a.myshopify.com", {DataCategory.PRODUCTS: True}, repository, HOST)

    flags = repository.find_by_shop("a.myshopify.com").data_selections
    assert flags == {
        "orders": False,
        "customers": False,
        "products": True,
        "inventory": False,
        "analytics": False,
        "completeStore": False,
    }


def test_update_unknown_shop(repository):
    with pytest.raises(NotFound):
        update_selections("ghost.myshopify.com", {DataCategory.ORDERS: True}, repository, HOST)


def test_key_info(repository):
    repository.add(api_key="K1", inventory=True)

    info = key_info("a.myshopify.com", repository, HOST)

    assert info.api_key == "K1"
    assert info.data_selections["inventory"] is True
    assert len(info.data_selections) == 6
    assert info.model_dump(by_alias=True)["apiUrl"] == "https://bi.example.com/api/data/K1"


def test_key_info_unknown_shop(repository):
    with pytest.raises(NotFound):
        key_info("ghost.myshopify.com", repository, HOST)


def test_keyless_record_is_not_found(repository):
    repository.add(api_key=None)

    with pytest.raises(NotFound):
        key_info("a.myshopify.com", repository, HOST)
    with pytest.raises(NotFound):
        update_selections("a.myshopify.com", {DataCategory.ORDERS: True}, repository, HOST)
