# Generated migration

from django.db import migrations, models
import django.utils.timezone
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='RateioClaro',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('nome', models.CharField(blank=True, max_length=300, null=True)),
                ('numero_linha', models.CharField(blank=True, db_index=True, help_text='Canonical digits, no country code', max_length=32, null=True)),
                ('status', models.CharField(blank=True, choices=[('active', 'Active'), ('inactive', 'Inactive')], max_length=20, null=True)),
                ('user_id', models.UUIDField(blank=True, help_text='Auth uid of the row owner', null=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                'db_table': 'rateio_claro',
                'ordering': ['created_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='SyncOverride',
            fields=[
                ('numero_linha', models.CharField(max_length=32, primary_key=True, serialize=False)),
                ('planilha_hash', models.CharField(help_text="'ABSENT' or 'PRESENT:<normalized name>'", max_length=400)),
                ('updated_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('user_id', models.UUIDField(blank=True, null=True)),
            ],
            options={
                'db_table': 'rateio_claro_sync_overrides',
                'ordering': ['numero_linha'],
            },
        ),
        migrations.CreateModel(
            name='SyncLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('user_id', models.UUIDField(blank=True, null=True)),
                ('inserted', models.IntegerField(default=0)),
                ('updated', models.IntegerField(default=0)),
                ('inactivated', models.IntegerField(default=0)),
                ('options', models.JSONField(blank=True, default=dict)),
                ('checksum_planilha', models.CharField(blank=True, help_text='SHA256 of the canonical sheet rows', max_length=64)),
                ('payload', models.JSONField(blank=True, default=dict, help_text='Diff summary and sample')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
            ],
            options={
                'db_table': 'rateio_sync_logs',
                'ordering': ['-created_at'],
            },
        ),
    ]
