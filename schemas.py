from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, StrictBool
from typing import Optional, List, Dict, Any


class DataCategory(str, Enum):
    ORDERS = "orders"
    CUSTOMERS = "customers"
    PRODUCTS = "products"
    INVENTORY = "inventory"
    ANALYTICS = "analytics"
    COMPLETE_STORE = "completeStore"


# Categories that map to an upstream resource; completeStore only grants access
FETCHABLE_CATEGORIES: List[DataCategory] = [
    DataCategory.ORDERS,
    DataCategory.CUSTOMERS,
    DataCategory.PRODUCTS,
    DataCategory.INVENTORY,
    DataCategory.ANALYTICS,
]


def default_selections() -> Dict[str, bool]:
    return {category.value: False for category in DataCategory}


def normalize_selections(selections: Dict[Any, bool]) -> Dict[str, bool]:
    """
    Expand a partial category -> flag mapping to all six flags.
    Categories that are not given are stored as False.
    """
    flags = default_selections()
    for category, enabled in selections.items():
        flags[DataCategory(category).value] = bool(enabled)
    return flags


class StoreRecord(BaseModel):
    """
    Connected stores collection
    Collection name: "stores"
    """
    shop: str = Field(..., description="Shopify store domain, e.g. acme.myshopify.com")
    access_token: Optional[str] = Field(None, description="Admin API access token")
    data_selections: Dict[str, bool] = Field(default_factory=default_selections)
    api_key: Optional[str] = Field(None, description="Opaque key handed to the BI tool")

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "StoreRecord":
        return cls(
            shop=doc["shop"],
            access_token=doc.get("access_token"),
            data_selections=normalize_selections(doc.get("data_selections") or {}),
            api_key=doc.get("api_key"),
        )

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def allows(self, category: DataCategory) -> bool:
        if self.data_selections.get(DataCategory.COMPLETE_STORE.value):
            return True
        return bool(self.data_selections.get(category.value))


class OAuthSession(BaseModel):
    """
    Pending install handshakes
    Collection name: "oauth_sessions"
    """
    shop: str
    state: str


class SelectionsUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data_selections: Dict[DataCategory, StrictBool] = Field(..., alias="dataSelections")


class SelectionsResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    api_key: str = Field(..., alias="apiKey")
    api_url: str = Field(..., alias="apiUrl")


class KeyInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_key: str = Field(..., alias="apiKey")
    api_url: str = Field(..., alias="apiUrl")
    data_selections: Dict[str, bool] = Field(..., alias="dataSelections")
