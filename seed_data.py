from decimal import Decimal
from sqlmodel import Session, select
from mycoshop.db.session import engine, create_db_and_tables
from mycoshop.models.product import Product, ProductCategory, ProductSize, Size

# name, strain, description, base price, stock, image, featured, (small, standard, large) as (price, stock)
SPORE_STRAINS = [
    ("Mazatapec", "Mazatapec",
     "Classic Psilocybe cubensis strain from Mexico. Known for its spiritual and introspective effects. Great for beginners.",
     "20.00", 50, "/assets/MAZATAPEC.jpg", True,
     (("15.00", 25), ("20.00", 30), ("35.00", 15)),
     {"Origin": "Mexico", "Difficulty": "Beginner", "Potency": "Moderate", "Growth Speed": "Fast"}),
    ("Blue Mini", "Blue Mini",
     "Compact variety with vivid blue hues. Small but potent mushrooms with beautiful coloration.",
     "18.00", 35, "/assets/BLUE MINI.jpg", False,
     (("13.00", 20), ("18.00", 25), ("32.00", 10)),
     {"Origin": "Cultivated", "Difficulty": "Intermediate", "Potency": "High", "Growth Speed": "Medium"}),
    ("PF Classic", "PF Classic",
     "Beginner-friendly spores for PF Tek enthusiasts. Reliable growth and consistent results.",
     "15.00", 60, "/assets/PF CLASSIC.jpg", True,
     (("12.00", 30), ("15.00", 40), ("28.00", 20)),
     {"Origin": "Florida", "Difficulty": "Beginner", "Potency": "Moderate", "Growth Speed": "Fast"}),
    ("Z-Strain", "Z-Strain",
     "Popular strain known for consistent growth and reliable yields. Excellent for research purposes.",
     "22.00", 40, "/assets/z strain.jpg", False,
     (("17.00", 20), ("22.00", 25), ("38.00", 15)),
     {"Origin": "Unknown", "Difficulty": "Beginner", "Potency": "High", "Growth Speed": "Fast"}),
    ("Penis Envy", "Penis Envy",
     "Highly sought-after strain known for its unique appearance and potency. Advanced cultivators only.",
     "35.00", 25, "/assets/PENIS ENVY.png", True,
     (("28.00", 15), ("35.00", 20), ("60.00", 8)),
     {"Origin": "Amazonian", "Difficulty": "Advanced", "Potency": "Very High", "Growth Speed": "Slow"}),
    ("A+ Albinos", "A+ Albino",
     "Beautiful albino variety with ghostly white caps. Stunning visual appeal and consistent growth.",
     "28.00", 30, "/assets/A+ ALBINOS.jpg", False,
     (("22.00", 18), ("28.00", 22), ("48.00", 12)),
     {"Origin": "Florida", "Difficulty": "Intermediate", "Potency": "High", "Growth Speed": "Medium"}),
    ("Burma", "Burma",
     "Fast-growing strain from Myanmar. Known for large flushes and robust mycelium growth.",
     "24.00", 45, "/assets/burma mushrooms.jpg", False,
     (("19.00", 25), ("24.00", 30), ("42.00", 15)),
     {"Origin": "Myanmar", "Difficulty": "Beginner", "Potency": "Moderate", "Growth Speed": "Very Fast"}),
]

# Syringe volumes: 5ml, 10ml, 20ml
SIZE_ORDER = (Size.SMALL, Size.STANDARD, Size.LARGE)

def build_product(name, strain, description, price, stock, image, featured, sizes, specifications):
    product = Product(
        name=name,
        description=description,
        price=Decimal(price),
        category=ProductCategory.SPORES,
        strain=strain,
        stock=stock,
        image_urls=[image],
        featured=featured,
        specifications=specifications,
    )
    product.sizes = [
        ProductSize(size=size, price=Decimal(size_price), stock=size_stock)
        for size, (size_price, size_stock) in zip(SIZE_ORDER, sizes)
    ]
    return product

def seed_products():
    print("Creating database and tables...")
    create_db_and_tables()

    with Session(engine) as session:
        # Check if products already exist to avoid duplicates
        existing_products = session.exec(select(Product)).all()
        if existing_products:
            print(f"Database already contains {len(existing_products)} products. Skipping seed.")
            return

        print("Seeding initial products...")
        products = [build_product(*row) for row in SPORE_STRAINS]
        for product in products:
            session.add(product)
        session.commit()

        for product in products:
            session.refresh(product)
            print(f"Seeded {product.name} - ${product.price} (Stock: {product.stock})")

if __name__ == "__main__":
    seed_products()
