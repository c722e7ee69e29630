from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User
import logging

logger = logging.getLogger('accounts')

class UserAdmin(BaseUserAdmin):
    list_display = ('username', 'display_name', 'role', 'grade', 'has_voted')
    list_filter = ('role', 'grade', 'has_voted')
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Poll', {'fields': ('role', 'display_name', 'grade', 'has_voted')}),
    )
    # the voted flag belongs to the voting service
    readonly_fields = ('has_voted',)

    def has_change_permission(self, request, obj = None):
        return request.user.is_superuser

    def has_delete_permission(self, request, obj = None):
        return request.user.is_superuser

    def save_model(self, request, obj, form, change):
        if change:
            logger.info(f'User updated by admin: {request.user.username} - {obj.username}')
        else:
            logger.info(f"User created by admin: {request.user.username}- {obj.username}")
        super().save_model(request, obj, form, change)

admin.site.register(User, UserAdmin)
