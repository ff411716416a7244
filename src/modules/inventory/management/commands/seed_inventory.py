from __future__ import annotations

import random
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from modules.inventory.models import Product, ProductVariant

# (sku, name, price, stock or None when stock lives on the variants)
CATALOG = [
    ("PRT-001", "Sunset over the harbour", Decimal("45.00"), None),
    ("PRT-002", "Alpine lake at dawn", Decimal("39.00"), None),
    ("PRT-003", "Old town rooftops", Decimal("29.00"), None),
    ("FRM-001", "Oak frame", Decimal("24.90"), 40),
    ("FRM-002", "Black aluminium frame", Decimal("19.90"), 25),
    ("GFT-001", "Gift card", Decimal("50.00"), 500),
]

VARIANT_LABELS = ["A4", "A3", "A2"]


class Command(BaseCommand):
    help = "Seed the catalogue with demo products, variants and users."

    def add_arguments(self, parser):
        parser.add_argument(
            "--seed",
            type=int,
            default=42,
            help="Random seed used for variant stock levels.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        random.seed(options["seed"])
        self.stdout.write("Seeding inventory...")

        users_created = self._seed_users()
        products = self._seed_products()
        variants_created = self._seed_variants(products)

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"products={len(products)}, "
                f"variants={variants_created}"
            )
        )

    def _seed_users(self) -> int:
        User = get_user_model()
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
            created += 1
        if not User.objects.filter(username="shopper").exists():
            User.objects.create_user("shopper", password="shopper123")
            created += 1
        return created

    def _seed_products(self) -> list[Product]:
        products: list[Product] = []
        for sku, name, price, stock in CATALOG:
            product, _ = Product.objects.get_or_create(
                sku=sku,
                defaults={
                    "name": name,
                    "price": price,
                    "stock_quantity": stock or 0,
                },
            )
            products.append(product)
        return products

    def _seed_variants(self, products: list[Product]) -> int:
        created = 0
        for product in products:
            if not product.sku.startswith("PRT-"):
                continue
            for label in VARIANT_LABELS:
                _, was_created = ProductVariant.objects.get_or_create(
                    product=product,
                    label=label,
                    defaults={"stock_quantity": random.randint(0, 15)},
                )
                created += int(was_created)
            product.sync_from_variants()
            product.save(update_fields=["stock_quantity", "is_available"])
        return created
