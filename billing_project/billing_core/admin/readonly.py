from django.contrib import admin
from django.core.exceptions import PermissionDenied

"""Base admin for append-only models such as the audit log."""
class ReadOnlyAdmin(admin.ModelAdmin):
    list_per_page = 50  # page size

    # make every model field readonly
    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    # Allow viewing the change form, fields are readonly anyway
    def has_change_permission(self, request, obj=None):
        return True

    # Prevent any attempt to save via the admin UI
    def save_model(self, request, obj, form, change):
        raise PermissionDenied("Rows cannot be changed via the admin.")

    # Disable admin actions like delete_selected
    def get_actions(self, request):
        return {}
