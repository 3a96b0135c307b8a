from django.contrib import admin
from .models import RateioClaro, SyncOverride, SyncLog


@admin.register(RateioClaro)
class RateioClaroAdmin(admin.ModelAdmin):
    list_display = ['numero_linha', 'nome', 'status', 'updated_at']
    list_filter = ['status']
    search_fields = ['numero_linha', 'nome']
    readonly_fields = ['id', 'created_at']


@admin.register(SyncOverride)
class SyncOverrideAdmin(admin.ModelAdmin):
    list_display = ['numero_linha', 'planilha_hash', 'user_id', 'updated_at']
    search_fields = ['numero_linha', 'planilha_hash']
    readonly_fields = ['updated_at']


@admin.register(SyncLog)
class SyncLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'user_id', 'inserted', 'updated', 'inactivated', 'checksum_planilha']
    readonly_fields = ['id', 'user_id', 'inserted', 'updated', 'inactivated',
                       'options', 'checksum_planilha', 'payload', 'created_at']
    date_hierarchy = 'created_at'
    ordering = ['-created_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
