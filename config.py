import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file)
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./entitlements.db")
    API_PREFIX = data.get("API_PREFIX", "")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")
    ENABLE_LOGGING_MIDDLEWARE = bool(data.get("ENABLE_LOGGING_MIDDLEWARE", 1))
    ENABLE_SENTRY = data.get("ENABLE_SENTRY", 0)
    DSN_SENTRY = data.get("DSN_SENTRY", "")
    SENTRY_ENVIRONMENT = data.get("SENTRY_ENVIRONMENT", "dev")

    # Billing provider (Stripe)
    STRIPE_SECRET_KEY = data.get("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET = data.get("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_ADD_ON_PRODUCT_ID = data.get("STRIPE_ADD_ON_PRODUCT_ID", "")
    STRIPE_MAX_NETWORK_RETRIES = data.get("STRIPE_MAX_NETWORK_RETRIES", 0)
    FRONTEND_URL = data.get("FRONTEND_URL", "http://localhost:3000")
    CHECKOUT_SESSION_TTL_MINUTES = data.get("CHECKOUT_SESSION_TTL_MINUTES", 30)

    # Subscription lifecycle
    TRIAL_DAYS = data.get("TRIAL_DAYS", 7)
    DEFAULT_GRACE_PERIOD_DAYS = data.get("DEFAULT_GRACE_PERIOD_DAYS", 7)
    PAYMENT_FAILURE_GRACE_PERIOD_DAYS = data.get("PAYMENT_FAILURE_GRACE_PERIOD_DAYS", 7)

    # Add-on credit packs
    ADD_ON_CREDITS = data.get("ADD_ON_CREDITS", 500)
    ADD_ON_PRICE = data.get("ADD_ON_PRICE", "30.00")
    ADD_ON_CURRENCY = data.get("ADD_ON_CURRENCY", "USD")

    # Usage metering
    BILLABLE_CHANNELS = data.get("BILLABLE_CHANNELS", ["whatsapp"])

    # Expiration sweep (reporting freshness only)
    EXPIRATION_SWEEP_ENABLED = bool(data.get("EXPIRATION_SWEEP_ENABLED", False))
    EXPIRATION_SWEEP_INTERVAL_SECONDS = data.get("EXPIRATION_SWEEP_INTERVAL_SECONDS", 3600)
    EXPIRATION_SWEEP_BATCH_SIZE = data.get("EXPIRATION_SWEEP_BATCH_SIZE", 500)
