import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./jobboard.db")

# ✅ Security
SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

# ✅ Stripe
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")

# ✅ Billing
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "inr")
INVOICE_TAX_RATE = int(os.getenv("INVOICE_TAX_RATE", "18"))  # flat GST percentage
DEFAULT_FEATURE_DURATION_DAYS = int(os.getenv("DEFAULT_FEATURE_DURATION_DAYS", "30"))

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")

# ✅ Migrations
RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "0") == "1"
