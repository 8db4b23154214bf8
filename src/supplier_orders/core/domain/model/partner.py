from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass

from supplier_orders.core.domain.model.order import PartnerId


@dataclass(frozen=True)
class Partner:
    partner_id: PartnerId
    name: str
    api_key_hash: str
    is_active: bool = True
    webhook_url: str | None = None

    def verify_api_key(self, api_key: str, salt: str) -> bool:
        return hmac.compare_digest(self.api_key_hash, hash_api_key(api_key, salt))


def hash_api_key(api_key: str, salt: str) -> str:
    return hashlib.sha256(f"{salt}{api_key}".encode("utf-8")).hexdigest()


def generate_api_key() -> str:
    return secrets.token_urlsafe(32)
