import logging

from stores import ProductStore

logger = logging.getLogger("geoprice.seed")

SAMPLE_PRODUCTS = [
    {
        "name": "Wireless Bluetooth Headphones",
        "description": (
            "Premium noise-cancelling wireless headphones with 30-hour battery life "
            "and superior sound quality. Perfect for music lovers and professionals."
        ),
        "base_price": "149.99",
        "sku": "WBH-001",
        "images": [
            "https://images.unsplash.com/photo-1505740420928-5e560c06d30e?w=800",
            "https://images.unsplash.com/photo-1484704849700-f032a568e944?w=800",
        ],
    },
    {
        "name": "Smart Fitness Watch",
        "description": (
            "Advanced fitness tracker with heart rate monitoring, GPS, sleep tracking, "
            "and 50+ sport modes. Water-resistant up to 50 meters."
        ),
        "base_price": "249.99",
        "sku": "SFW-002",
        "images": [
            "https://images.unsplash.com/photo-1523275335684-37898b6baf30?w=800",
            "https://images.unsplash.com/photo-1546868871-7041f2a55e12?w=800",
        ],
    },
    {
        "name": "Portable Power Bank 20000mAh",
        "description": (
            "High-capacity portable charger with fast charging technology. Charge "
            "multiple devices simultaneously with dual USB ports and USB-C."
        ),
        "base_price": "59.99",
        "sku": "PPB-003",
        "images": [
            "https://images.unsplash.com/photo-1609091839311-d5365f9ff1c5?w=800",
            "https://images.unsplash.com/photo-1624823183493-ed5832f48f18?w=800",
        ],
    },
]


def seed_products(products: ProductStore, samples=SAMPLE_PRODUCTS):
    """Insert the sample products whose SKU is not in the catalog yet.

    Returns ``(inserted, skipped)``.
    """
    inserted = skipped = 0
    for data in samples:
        if products.find_by_sku(data["sku"]) is not None:
            logger.info("Product with SKU %s already exists. Skipping...", data["sku"])
            skipped += 1
            continue
        products.create(data)
        inserted += 1

    logger.info("Seeding complete! Inserted: %d, Skipped: %d", inserted, skipped)
    return inserted, skipped
