import pytest
from django.contrib.auth import get_user_model
from django.core.management import call_command

from modules.inventory.models import Product, ProductVariant

pytestmark = pytest.mark.integration


def test_seeds_catalogue_with_variants():
    call_command("seed_inventory", seed=1)

    assert Product.objects.count() == 6
    prints = Product.objects.filter(sku__startswith="PRT-")
    assert ProductVariant.objects.filter(product__in=prints).count() == 9
    for product in prints:
        expected = sum(v.stock_quantity for v in product.variants.all())
        assert product.stock_quantity == expected
        assert product.is_available == (expected > 0)


def test_is_idempotent():
    call_command("seed_inventory")
    call_command("seed_inventory")

    assert Product.objects.count() == 6
    assert ProductVariant.objects.count() == 9
    assert get_user_model().objects.filter(username__in=["admin", "shopper"]).count() == 2
