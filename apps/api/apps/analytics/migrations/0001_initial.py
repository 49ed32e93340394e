import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('documents', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='View',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('session_id', models.CharField(max_length=64)),
                ('ip_address', models.CharField(blank=True, default='', max_length=64)),
                ('user_agent', models.TextField(blank=True, default='')),
                ('referrer', models.TextField(blank=True, default='')),
                ('country', models.CharField(blank=True, default='', max_length=100)),
                ('region', models.CharField(blank=True, default='', max_length=100)),
                ('city', models.CharField(blank=True, default='', max_length=100)),
                ('time_zone', models.CharField(blank=True, default='', max_length=64)),
                ('latitude', models.FloatField(blank=True, null=True)),
                ('longitude', models.FloatField(blank=True, null=True)),
                ('browser', models.CharField(blank=True, default='', max_length=64)),
                ('os', models.CharField(blank=True, default='', max_length=64)),
                ('device_family', models.CharField(blank=True, default='', max_length=64)),
                ('is_mobile', models.BooleanField(default=False)),
                ('is_tablet', models.BooleanField(default=False)),
                ('submitted_name', models.CharField(blank=True, default='', max_length=200)),
                ('submitted_mobile', models.CharField(blank=True, default='', max_length=32)),
                ('contact_submitted_at', models.DateTimeField(blank=True, null=True)),
                ('is_unique', models.BooleanField(default=True)),
                ('video_unlocked', models.BooleanField(default=False)),
                ('video_unlocked_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('document', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='views', to='documents.document')),
            ],
            options={
                'db_table': 'flipbook_view',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['document', 'ip_address', 'created_at'], name='idx_view_doc_ip_created'),
                    models.Index(fields=['document', 'session_id'], name='idx_view_doc_session'),
                    models.Index(fields=['document', 'created_at'], name='idx_view_doc_created'),
                    models.Index(fields=['document', 'submitted_mobile'], name='idx_view_doc_mobile'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ViewEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('kind', models.CharField(choices=[('view', 'View'), ('page_turn', 'Page turn'), ('video_play', 'Video play'), ('download', 'Download'), ('contact_submit', 'Contact submitted'), ('video_unlocked', 'Video unlocked'), ('attempted_unlock', 'Attempted unlock')], max_length=32)),
                ('payload', models.JSONField(blank=True, default=dict)),
                ('timestamp', models.DateTimeField(default=django.utils.timezone.now)),
                ('view', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='events', to='analytics.view')),
            ],
            options={
                'db_table': 'flipbook_view_event',
                'ordering': ['timestamp', 'id'],
                'indexes': [
                    models.Index(fields=['view', 'timestamp'], name='idx_view_event_view_ts'),
                    models.Index(fields=['kind', 'timestamp'], name='idx_view_event_kind_ts'),
                ],
            },
        ),
    ]
