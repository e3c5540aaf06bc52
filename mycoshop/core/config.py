from decimal import Decimal
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "Mycoshop API"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    CLIENT_URL: str = "http://localhost:5173"
    DATABASE_URL: str = "sqlite:///./mycoshop.db"

    # Pricing
    TAX_RATE: Decimal = Decimal("0.08")
    FREE_SHIPPING_THRESHOLD: Decimal = Decimal("50.00")
    SHIPPING_COST: Decimal = Decimal("9.99")
    MAX_QUANTITY_PER_ITEM: int = 10
    MAX_TOTAL_ITEMS: int = 50
    CURRENCY: str = "USD"

    # Carts are dropped after this many days without a mutation
    CART_TTL_DAYS: int = 7

    # Session cookie
    SESSION_COOKIE_NAME: str = "mycoshop_sid"
    SESSION_MAX_AGE_DAYS: int = 7

    # A timed-out request may still finish server-side; database waits are
    # bounded separately and kept below the request timeout
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    DATABASE_TIMEOUT_SECONDS: float = 10.0

    # Lets the order owner set payment status directly; off in production
    ALLOW_MANUAL_PAYMENT_UPDATES: bool = True

    # Razorpay
    RAZORPAY_KEY_ID: str = "rzp_test_placeholder"
    RAZORPAY_KEY_SECRET: str = "rzp_secret_placeholder"
    RAZORPAY_WEBHOOK_SECRET: str = "webhook_secret"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def manual_payment_updates(self) -> bool:
        return self.ALLOW_MANUAL_PAYMENT_UPDATES and not self.is_production

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
