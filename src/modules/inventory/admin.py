from django.contrib import admin

from modules.inventory.models import Product, ProductVariant


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 0
    fields = ["label", "stock_quantity", "is_available"]
    readonly_fields = ["is_available"]


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ["sku", "name", "price", "stock_quantity", "is_available"]
    search_fields = ["sku", "name"]
    readonly_fields = ["is_available"]
    inlines = [ProductVariantInline]
