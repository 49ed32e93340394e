import uuid

import apps.documents.models
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Document',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True, default='', max_length=1000)),
                ('public_slug', models.CharField(default=apps.documents.models.generate_public_slug, editable=False, help_text='Random URL-safe identifier used in public viewer links', max_length=16, unique=True)),
                ('media_kind', models.CharField(choices=[('pdf', 'PDF'), ('video', 'Video')], max_length=16)),
                ('status', models.CharField(choices=[('processing', 'Processing'), ('active', 'Active'), ('inactive', 'Inactive'), ('error', 'Error'), ('deleted', 'Deleted')], default='processing', max_length=16)),
                ('files', models.JSONField(blank=True, default=dict)),
                ('schema_version', models.PositiveSmallIntegerField(default=1)),
                ('original_name', models.CharField(blank=True, default='', max_length=255)),
                ('mime_type', models.CharField(blank=True, default='', max_length=128)),
                ('size_bytes', models.BigIntegerField(default=0)),
                ('allow_download', models.BooleanField(default=True)),
                ('require_contact', models.BooleanField(default=False, help_text='Viewers must submit name + mobile before reading')),
                ('expires_at', models.DateTimeField(blank=True, help_text='Document becomes inaccessible after this instant', null=True)),
                ('password', models.CharField(blank=True, default='', help_text='Hashed viewer password (empty = not protected)', max_length=128)),
                ('total_views', models.PositiveIntegerField(default=0)),
                ('unique_views', models.PositiveIntegerField(default=0)),
                ('total_downloads', models.PositiveIntegerField(default=0)),
                ('contacts_collected', models.PositiveIntegerField(default=0)),
                ('last_viewed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='documents', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Document',
                'verbose_name_plural': 'Documents',
                'db_table': 'flipbook_document',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['owner', 'status'], name='idx_document_owner_status'),
                    models.Index(fields=['status'], name='idx_document_status'),
                ],
            },
        ),
    ]
