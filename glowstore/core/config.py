import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()

APP_NAME = os.getenv("APP_NAME", "TKB Glow Store API")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_SERVICE_ROLE_KEY")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")

ADMIN_SECRET = os.getenv("ADMIN_SECRET")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

CURRENCY = os.getenv("CURRENCY", "NGN")
DEFAULT_DELIVERY_CHARGE = Decimal(os.getenv("DEFAULT_DELIVERY_CHARGE", "0"))
PRICE_TOLERANCE = Decimal(os.getenv("PRICE_TOLERANCE", "0.01"))
STORE_NAME = os.getenv("STORE_NAME", "TKB Glow")

# payment providers
PAYSTACK_SECRET_KEY = os.getenv("PAYSTACK_SECRET_KEY")
PAYSTACK_BASE_URL = os.getenv("PAYSTACK_BASE_URL", "https://api.paystack.co").rstrip("/")
FLUTTERWAVE_SECRET_KEY = os.getenv("FLUTTERWAVE_SECRET_KEY")
FLUTTERWAVE_BASE_URL = os.getenv("FLUTTERWAVE_BASE_URL", "https://api.flutterwave.com/v3").rstrip("/")
FLUTTERWAVE_WEBHOOK_HASH = os.getenv("FLUTTERWAVE_WEBHOOK_HASH")
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "25"))

# outgoing mail
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
EMAIL_FROM = os.getenv("EMAIL_FROM", SMTP_USER or "")

# whatsapp relay (optional, otherwise admins get a wa.me link)
WHATSAPP_WEBHOOK_URL = os.getenv("WHATSAPP_WEBHOOK_URL", "").strip()
WHATSAPP_TOKEN = os.getenv("WHATSAPP_TOKEN", "").strip()
DEFAULT_COUNTRY_CODE = os.getenv("DEFAULT_COUNTRY_CODE", "234")
