from django.contrib import admin
from django.utils.html import format_html

from billing_core.models import CatalogItem, Category, UnitOfMeasure

from .mixins import TenantAdminMixin


@admin.register(Category)
class CategoryAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("id", "company", "name", "swatch")
    search_fields = ("name",)
    list_filter = ("company",)

    @admin.display(description="Color")
    def swatch(self, obj):
        if not obj.color:
            return "-"
        return format_html('<span style="color:{}">&#9632;</span> {}', obj.color, obj.color)


@admin.register(UnitOfMeasure)
class UnitOfMeasureAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("id", "company", "code", "name")
    search_fields = ("code", "name")
    list_filter = ("company",)


@admin.register(CatalogItem)
class CatalogItemAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("id", "company", "name", "rate", "category", "gst_applicable")
    search_fields = ("name", "description")
    list_filter = ("company", "category", "gst_applicable")

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company", "category")
