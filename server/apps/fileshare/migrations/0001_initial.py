# Generated manually for fileshare models

import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import server.apps.fileshare.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='UserProfile',
            fields=[
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='storage_profile', serialize=False, to=settings.AUTH_USER_MODEL)),
                ('email', models.EmailField(blank=True, default='', max_length=254)),
                ('display_name', models.CharField(blank=True, default='', max_length=150)),
                ('total_storage', models.BigIntegerField(default=server.apps.fileshare.models._default_total_storage, help_text='Storage quota limit in bytes')),
                ('used_storage', models.BigIntegerField(default=0, help_text='Currently used storage in bytes')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'User Profile',
                'verbose_name_plural': 'User Profiles',
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('total_storage__gte', 0)), name='total_storage_non_negative'),
                    models.CheckConstraint(condition=models.Q(('used_storage__gte', 0)), name='used_storage_non_negative'),
                    models.CheckConstraint(condition=models.Q(('used_storage__lte', models.F('total_storage'))), name='used_storage_within_total'),
                ],
            },
        ),
        migrations.CreateModel(
            name='FileRecord',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('size_bytes', models.BigIntegerField(help_text='File size in bytes')),
                ('mime_type', models.CharField(max_length=255)),
                ('checksum_sha256', models.CharField(db_index=True, help_text='SHA256 hash for integrity verification', max_length=64)),
                ('url', models.CharField(max_length=2048)),
                ('secure_url', models.CharField(max_length=2048)),
                ('provider_id', models.CharField(help_text='Storage key: {user_id}/file.ext', max_length=1024)),
                ('is_public', models.BooleanField(default=False)),
                ('is_password_protected', models.BooleanField(default=False)),
                ('password_hash', models.CharField(blank=True, default='', max_length=64)),
                ('expires_at', models.DateTimeField(blank=True, null=True)),
                ('uploaded_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='file_records', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'File Record',
                'verbose_name_plural': 'File Records',
                'ordering': ['-uploaded_at'],
                'indexes': [
                    models.Index(fields=['owner', '-uploaded_at'], name='fileshare_owner_recent_idx'),
                    models.Index(fields=['is_public', 'expires_at'], name='fileshare_public_expiry_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(models.Q(('is_password_protected', True), models.Q(('password_hash', ''), _negated=True)), models.Q(('is_password_protected', False), ('password_hash', '')), _connector='OR'), name='fileshare_password_hash_iff_protected'),
                    models.CheckConstraint(condition=models.Q(('size_bytes__gte', 0)), name='fileshare_size_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='FileShare',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('email', models.EmailField(db_index=True, max_length=254)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('file', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='shares', to='fileshare.filerecord')),
            ],
            options={
                'verbose_name': 'File Share',
                'verbose_name_plural': 'File Shares',
                'ordering': ['created_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('file', 'email'), name='fileshare_file_email_unique'),
                ],
            },
        ),
    ]
