from django.contrib import admin
from .models import UserProfile


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ['email', 'nome', 'role', 'is_active']
    list_filter = ['role', 'is_active']
    search_fields = ['email', 'nome', 'auth_uid']
    readonly_fields = ['id', 'auth_uid']
