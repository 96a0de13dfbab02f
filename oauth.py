"""
Shopify install handshake.

Begin: mint a state nonce, remember {shop, state} under a fresh session id in
the session store, and send the merchant to Shopify's authorize page.
Callback: check the session, state, shop and HMAC, then trade the code for a
permanent access token.
"""

import hashlib
import hmac
import re
import secrets
from typing import Dict, Optional, Tuple
from urllib.parse import urlencode

import requests

from config import Settings, SHOPIFY_SCOPES
from database import SessionStore, StoreRepository
from errors import AuthError, MissingParameter
from logger import get_logger, mask
from schemas import OAuthSession, StoreRecord

logger = get_logger(__name__)

SESSION_COOKIE = "shopify_oauth_session"

SHOP_DOMAIN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9\-]*\.myshopify\.com$")


def validate_shop_domain(shop: str) -> bool:
    return bool(SHOP_DOMAIN.match(shop or ""))


def generate_api_key() -> str:
    return secrets.token_hex(16)


def verify_hmac(query_params: Dict[str, str], secret: str) -> bool:
    """Verify the `hmac` Shopify attaches to redirect query strings."""
    received = query_params.get("hmac", "")
    params = {k: v for k, v in sorted(query_params.items()) if k != "hmac"}
    computed = hmac.new(secret.encode("utf-8"), urlencode(params).encode("utf-8"), hashlib.sha256).hexdigest()
    return hmac.compare_digest(computed, received)


def build_auth_url(settings: Settings, shop: str, state: str) -> str:
    params = urlencode({
        "client_id": settings.shopify_api_key,
        "scope": ",".join(SHOPIFY_SCOPES),
        "redirect_uri": settings.redirect_uri,
        "state": state,
    })
    return f"https://{shop}/admin/oauth/authorize?{params}"


def exchange_code_for_token(settings: Settings, shop: str, code: str) -> str:
    url = f"https://{shop}/admin/oauth/access_token"
    payload = {
        "client_id": settings.shopify_api_key,
        "client_secret": settings.shopify_api_secret,
        "code": code,
    }
    try:
        r = requests.post(url, json=payload, timeout=settings.shopify_timeout)
    except requests.RequestException as e:
        raise AuthError() from e
    if r.status_code != 200:
        logger.error(f"Token exchange for {shop} returned HTTP {r.status_code}: {r.text[:200]}")
        raise AuthError()

    try:
        token = r.json().get("access_token")
    except ValueError as e:
        raise AuthError() from e
    if not token:
        logger.error(f"Token exchange for {shop} returned no access_token")
        raise AuthError()
    return token


def begin_auth(shop: str, sessions: SessionStore, settings: Settings) -> Tuple[str, str]:
    """Returns (session_id, authorize_url)."""
    if not validate_shop_domain(shop):
        raise MissingParameter("Invalid shop parameter. Expected your-shop.myshopify.com")

    session_id = secrets.token_urlsafe(32)
    state = secrets.token_hex(16)
    sessions.set(session_id, OAuthSession(shop=shop, state=state))
    logger.info(f"Starting OAuth for {shop}")
    return session_id, build_auth_url(settings, shop, state)


def validate_callback(
    session_id: Optional[str],
    query_params: Dict[str, str],
    sessions: SessionStore,
    settings: Settings,
) -> Tuple[str, str]:
    """Returns (shop, access_token) for a genuine callback; raises AuthError otherwise."""
    if not session_id:
        logger.warning("OAuth callback without a session cookie")
        raise AuthError()

    pending = sessions.get(session_id)
    if pending is None:
        logger.warning("OAuth callback for an unknown or consumed session")
        raise AuthError()
    # One attempt per handshake
    sessions.delete(session_id)

    shop = query_params.get("shop", "")
    if not secrets.compare_digest(query_params.get("state", ""), pending.state):
        logger.warning(f"OAuth state mismatch for {shop}")
        raise AuthError()
    if shop != pending.shop or not validate_shop_domain(shop):
        logger.warning(f"OAuth callback shop {shop!r} does not match {pending.shop!r}")
        raise AuthError()
    if not verify_hmac(query_params, settings.shopify_api_secret):
        logger.warning(f"OAuth HMAC check failed for {shop}")
        raise AuthError()

    code = query_params.get("code")
    if not code:
        raise AuthError()

    return shop, exchange_code_for_token(settings, shop, code)


def complete_auth(shop: str, access_token: str, repository: StoreRepository) -> StoreRecord:
    # The candidate key is only kept when this creates the record
    record = repository.save_authentication(shop, access_token, generate_api_key())
    logger.info(f"{shop} authenticated, API key {mask(record.api_key)}")
    return record
