import hmac
import hashlib
from typing import Optional
from jose import jwt, JWTError
from glowstore.core import config
from glowstore.core.errors import NotConfiguredError


def check_admin_secret(supplied: Optional[str]) -> bool:
    if not config.ADMIN_SECRET:
        raise NotConfiguredError("ADMIN_SECRET is not configured")
    return bool(supplied) and hmac.compare_digest(str(supplied), str(config.ADMIN_SECRET))


def decode_supabase_token(token: str) -> dict:
    # Supabase signs access tokens with the project's JWT secret (HS256)
    if not config.SUPABASE_JWT_SECRET:
        raise NotConfiguredError("SUPABASE_JWT_SECRET is not configured")
    return jwt.decode(token, config.SUPABASE_JWT_SECRET, algorithms=["HS256"], audience="authenticated")


def user_id_from_token(token: str) -> Optional[str]:
    try:
        payload = decode_supabase_token(token)
    except JWTError:
        return None
    return payload.get("sub")


def paystack_signature_valid(raw_body: bytes, signature: Optional[str]) -> bool:
    if not config.PAYSTACK_SECRET_KEY:
        raise NotConfiguredError("Paystack is not configured")
    if not signature:
        return False
    expected = hmac.new(config.PAYSTACK_SECRET_KEY.encode(), raw_body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, signature)


def flutterwave_hash_valid(supplied: Optional[str]) -> bool:
    if not config.FLUTTERWAVE_WEBHOOK_HASH:
        raise NotConfiguredError("FLUTTERWAVE_WEBHOOK_HASH is not configured")
    return bool(supplied) and hmac.compare_digest(str(supplied), str(config.FLUTTERWAVE_WEBHOOK_HASH))
