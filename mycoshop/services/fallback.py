"""Static catalog served when the database cannot be reached."""

from datetime import datetime
from decimal import Decimal

from mycoshop.models.product import Product, ProductCategory


FALLBACK_PRODUCTS = [
    {
        "id": 1,
        "name": "Golden Teacher Spores",
        "description": "Classic strain perfect for beginners. Known for its golden caps and educational growing experience.",
        "price": Decimal("25.99"),
        "category": ProductCategory.SPORES,
        "strain": "Golden Teacher",
        "stock": 50,
        "image_urls": ["/assets/golden-teacher.jpg"],
        "featured": True,
        "created_at": datetime(2024, 1, 15),
        "specifications": {"difficulty": "Beginner", "potency": "Medium", "origin": "Colombia"},
    },
    {
        "id": 2,
        "name": "Blue Meanie Spores",
        "description": "Potent strain with distinctive blue bruising. Fast colonization and heavy yields.",
        "price": Decimal("32.99"),
        "category": ProductCategory.SPORES,
        "strain": "Blue Meanie",
        "stock": 30,
        "image_urls": ["/assets/blue-meanie.jpg"],
        "featured": True,
        "created_at": datetime(2024, 1, 20),
        "specifications": {"difficulty": "Intermediate", "potency": "High", "origin": "Australia"},
    },
    {
        "id": 3,
        "name": "Penis Envy Spores",
        "description": "Unique appearance with thick stems and small caps. One of the most sought-after strains.",
        "price": Decimal("45.99"),
        "category": ProductCategory.SPORES,
        "strain": "Penis Envy",
        "stock": 20,
        "image_urls": ["/assets/penis-envy.jpg"],
        "featured": True,
        "created_at": datetime(2024, 1, 25),
        "specifications": {"difficulty": "Advanced", "potency": "Very High", "origin": "USA"},
    },
    {
        "id": 4,
        "name": "Beginner Grow Kit",
        "description": "Complete kit with everything needed to start growing. Includes substrate, spores, and instructions.",
        "price": Decimal("89.99"),
        "category": ProductCategory.GROWKITS,
        "stock": 15,
        "image_urls": ["/assets/grow-kit.jpg"],
        "featured": False,
        "created_at": datetime(2024, 2, 1),
        "specifications": {
            "includes": "Substrate, Spores, Instructions, Spray Bottle",
            "difficulty": "Beginner",
            "yield": "100-200g fresh",
        },
    },
    {
        "id": 5,
        "name": "Sterilized Substrate",
        "description": "Pre-sterilized growing medium ready for inoculation. Made from organic materials.",
        "price": Decimal("19.99"),
        "category": ProductCategory.SUPPLIES,
        "stock": 40,
        "image_urls": ["/assets/substrate.jpg"],
        "featured": False,
        "created_at": datetime(2024, 2, 5),
        "specifications": {
            "volume": "2.5 lbs",
            "sterilized": "true",
            "ingredients": "Vermiculite, Brown Rice Flour, Water",
        },
    },
]


def fallback_products():
    """Fresh, detached Product instances for the static catalog."""
    return [Product(active=True, updated_at=data["created_at"], **data) for data in FALLBACK_PRODUCTS]
