import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from .core.config import get_settings
from .identifiers import generate_order_id
from .models import Order, OrderItem, OrderStatus, PaymentStatus, Product, ProductStatus, Store


logger = logging.getLogger(__name__)

DEMO_STORES = [
    {
        "slug": "demo-store",
        "owner_user_id": "demo-owner",
        "name": "Demo Store",
        "email": "contact@demo-store.example",
        "theme_color": "#2563eb",
        "description": "Everyday essentials",
        "products": [
            ("Classic White T-Shirt", 2999, 150, "Apparel", ProductStatus.ACTIVE),
            ("Leather Messenger Bag", 14999, 45, "Accessories", ProductStatus.ACTIVE),
            ("Organic Coffee Beans", 2499, 200, "Food & Beverage", ProductStatus.ACTIVE),
            ("Yoga Mat Pro", 4999, 0, "Sports", ProductStatus.DRAFT),
        ],
    },
    {
        "slug": "fashion-boutique",
        "owner_user_id": "fashion-owner",
        "name": "Fashion Boutique",
        "email": "hello@fashion-boutique.example",
        "theme_color": "#ec4899",
        "description": "Seasonal fashion",
        "products": [
            ("Summer Dress", 8999, 65, "Apparel", ProductStatus.ACTIVE),
            ("Silk Scarf", 5999, 100, "Accessories", ProductStatus.ACTIVE),
        ],
    },
]

# (customer name, customer email, product index, quantity, status, payment status)
DEMO_ORDERS = [
    ("Amira Ben Ali", "amira@example.com", 0, 2, OrderStatus.DELIVERED, PaymentStatus.PAID),
    ("Youssef Trabelsi", "youssef@example.com", 1, 1, OrderStatus.SHIPPED, PaymentStatus.PAID),
    ("Amira Ben Ali", "amira@example.com", 2, 3, OrderStatus.PENDING, PaymentStatus.PENDING),
]


async def seed_demo_data(session) -> int:
    """Create the demo stores with products and a few orders. Skips stores that exist."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    created = 0

    for entry in DEMO_STORES:
        result = await session.execute(select(Store).where(Store.slug == entry["slug"]))
        if result.scalar_one_or_none():
            continue

        store = Store(
            slug=entry["slug"],
            subdomain=entry["slug"],
            owner_user_id=entry["owner_user_id"],
            name=entry["name"],
            email=entry["email"],
            theme_color=entry["theme_color"],
            currency=settings.default_currency,
            timezone=settings.default_timezone,
            description=entry["description"],
            is_active=True,
        )
        session.add(store)
        await session.flush()

        products = [
            Product(
                store_id=store.id,
                name=name,
                price_cents=price_cents,
                inventory=inventory,
                category=category,
                status=status.value,
            )
            for name, price_cents, inventory, category, status in entry["products"]
        ]
        session.add_all(products)
        await session.flush()

        for count, (customer, email, index, quantity, status, payment) in enumerate(DEMO_ORDERS):
            product = products[index % len(products)]
            # Spread over recent days; the millisecond offset keeps order IDs distinct across stores
            placed_at = now - timedelta(days=count, milliseconds=store.id)
            session.add(
                Order(
                    order_id=generate_order_id(count, now=placed_at),
                    store_id=store.id,
                    customer_name=customer,
                    customer_email=email,
                    shipping_address="Avenue Habib Bourguiba, Tunis",
                    total_cents=product.price_cents * quantity,
                    status=status.value,
                    payment_status=payment.value,
                    created_at=placed_at,
                    items=[
                        OrderItem(
                            product_id=product.id,
                            name=product.name,
                            price_cents=product.price_cents,
                            quantity=quantity,
                        )
                    ],
                )
            )

        created += 1
        logger.info(f"Seeded demo store '{entry['slug']}'")

    await session.commit()
    return created
