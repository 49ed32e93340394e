from django.contrib import admin

from .models import View, ViewEvent


class ViewEventInline(admin.TabularInline):
    model = ViewEvent
    extra = 0
    can_delete = False
    readonly_fields = ['kind', 'payload', 'timestamp']


@admin.register(View)
class ViewAdmin(admin.ModelAdmin):
    list_display = [
        'id',
        'document',
        'created_at',
        'ip_address',
        'country',
        'browser',
        'is_mobile',
        'is_unique',
        'submitted_name',
    ]
    list_filter = ['is_unique', 'is_mobile', 'is_tablet', 'video_unlocked', 'created_at']
    search_fields = ['document__title', 'document__public_slug', 'session_id', 'submitted_name']
    raw_id_fields = ['document']
    inlines = [ViewEventInline]

    # Ledger rows are facts; uniqueness only changes through reconciliation.
    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]


@admin.register(ViewEvent)
class ViewEventAdmin(admin.ModelAdmin):
    list_display = ['id', 'view', 'kind', 'timestamp']
    list_filter = ['kind', 'timestamp']
    raw_id_fields = ['view']
    readonly_fields = ['view', 'kind', 'payload', 'timestamp']
