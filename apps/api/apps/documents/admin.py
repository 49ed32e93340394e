from django.contrib import admin

from .models import Document


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    list_display = [
        'title',
        'public_slug',
        'media_kind',
        'status',
        'owner',
        'total_views',
        'unique_views',
        'contacts_collected',
        'created_at',
    ]
    list_filter = ['status', 'media_kind', 'allow_download', 'require_contact', 'created_at']
    search_fields = ['title', 'public_slug', 'owner__email']
    readonly_fields = [
        'id',
        'public_slug',
        'schema_version',
        'total_views',
        'unique_views',
        'total_downloads',
        'contacts_collected',
        'last_viewed_at',
        'created_at',
        'updated_at',
    ]
    raw_id_fields = ['owner']

    fieldsets = (
        ('Document', {
            'fields': ('id', 'owner', 'title', 'description', 'public_slug', 'media_kind', 'status')
        }),
        ('Files', {
            'fields': ('schema_version', 'files', 'original_name', 'mime_type', 'size_bytes')
        }),
        ('Viewer settings', {
            'fields': ('allow_download', 'require_contact', 'expires_at')
        }),
        ('Stats (cache of the view ledger)', {
            'fields': ('total_views', 'unique_views', 'total_downloads', 'contacts_collected', 'last_viewed_at')
        }),
        ('Audit', {
            'fields': ('created_at', 'updated_at')
        }),
    )
