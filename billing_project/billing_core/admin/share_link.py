from django.contrib import admin

from billing_core.models import ShareLink
from ..services.share_links import deactivate
from .mixins import TenantAdminMixin


@admin.register(ShareLink)
class ShareLinkAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id", "company", "document_type", "document_id", "has_password",
        "is_active", "expires_at", "view_count", "last_accessed_at",
    )
    list_filter = ("company", "document_type", "is_active")
    search_fields = ("token",)
    # the password hash never leaves the server, not even into admin
    exclude = ("password_hash",)
    readonly_fields = (
        "company", "document_type", "document_id", "token", "is_active",
        "view_count", "last_accessed_at", "created_at",
    )
    actions = ["deactivate_links"]

    @admin.display(boolean=True)
    def has_password(self, obj):
        return obj.has_password

    # links are created through the API, which issues the token
    def has_add_permission(self, request):
        return False

    @admin.action(description="Deactivate selected share links")
    def deactivate_links(self, request, queryset):
        for link in queryset.filter(is_active=True):
            deactivate(link.token, user=request.user)
        self.message_user(request, "Selected share links deactivated.")
