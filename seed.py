import logging
from typing import Dict

import factories

log = logging.getLogger("storefront.seed")

DEMO_CATALOG = {
    "Laptops": {
        "Ultrabooks": [
            {
                "title": "MacBook Air 13",
                "description": "Thin and light laptop with an all-day battery",
                "price": 1199.0,
                "quantity": 25,
                "shipping": "Yes",
                "color": "Silver",
                "brand": "Apple",
                "images": ["macbook-air.jpg"],
            },
            {
                "title": "XPS 13",
                "description": "Compact 13 inch laptop with an edge to edge display",
                "price": 999.0,
                "quantity": 40,
                "shipping": "Yes",
                "color": "Black",
                "brand": "Dell",
            },
        ],
        "Gaming": [
            {
                "title": "ROG Strix G16",
                "description": "16 inch gaming laptop with a high refresh rate panel",
                "price": 1599.0,
                "quantity": 10,
                "shipping": "No",
                "color": "Black",
                "brand": "Asus",
            },
        ],
    },
    "Phones": {
        "Smartphones": [
            {
                "title": "Galaxy S24",
                "description": "Flagship smartphone with a triple camera",
                "price": 899.0,
                "quantity": 60,
                "shipping": "Yes",
                "color": "Blue",
                "brand": "Samsung",
            },
        ],
    },
}


def seed_demo_catalog(db=None) -> Dict[str, int]:
    """Creates the demo categories, subs and products; running it twice changes nothing."""
    categories = factories.create_category_service(db=db)
    subs = factories.create_sub_service(db=db)
    products = factories.create_product_service(db=db)

    counts = {"categories": 0, "subs": 0, "products": 0}
    for category_name, sub_map in DEMO_CATALOG.items():
        category = categories.find_or_create_category({"name": category_name})
        counts["categories"] += 1
        for sub_name, items in sub_map.items():
            sub = subs.find_or_create_sub({"name": sub_name, "parent": category["id"]})
            counts["subs"] += 1
            for item in items:
                products.find_or_create_product({**item, "category": category["id"], "sub": sub["id"]})
                counts["products"] += 1
    log.info("Demo catalog seeded: %s", counts)
    return counts
