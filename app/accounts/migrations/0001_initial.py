# Generated migration

from django.db import migrations, models
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='UserProfile',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('auth_uid', models.UUIDField(db_index=True, help_text='Identity id issued by the auth provider', unique=True)),
                ('nome', models.CharField(blank=True, max_length=200)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('role', models.CharField(blank=True, help_text='e.g. admin, administrador, financeiro, usuario', max_length=50)),
                ('modules', models.JSONField(blank=True, default=list, help_text='Module keys this user may access')),
                ('is_active', models.BooleanField(default=True)),
            ],
            options={
                'db_table': 'users',
                'ordering': ['nome'],
            },
        ),
    ]
