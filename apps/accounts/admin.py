# accounts/admin.py

from django.contrib import admin
from django.contrib.auth.models import User
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import School, UserProfile
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# INLINE ADMINS
# =============================================================================

class UserProfileInline(admin.StackedInline):
    """Inline admin for UserProfile"""
    model = UserProfile
    can_delete = False
    verbose_name_plural = 'Profile Information'
    fields = ('school', 'role', 'phone')


class UserAdmin(BaseUserAdmin):
    inlines = (UserProfileInline,)
    list_display = ['username', 'email', 'first_name', 'last_name', 'get_role', 'get_school', 'is_active']

    def get_role(self, obj):
        profile = getattr(obj, 'profile', None)
        return profile.get_role_display() if profile else '-'
    get_role.short_description = 'Role'

    def get_school(self, obj):
        profile = getattr(obj, 'profile', None)
        return profile.school if profile and profile.school else '-'
    get_school.short_description = 'School'


admin.site.unregister(User)
admin.site.register(User, UserAdmin)


# =============================================================================
# SCHOOL ADMIN
# =============================================================================

@admin.register(School)
class SchoolAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'code', 'school_type', 'country', 'is_active', 'created_at']
    list_filter = ['school_type', 'country', 'is_active']
    search_fields = ['full_name', 'code', 'receipt_name']
    prepopulated_fields = {'code': ('full_name',)}
