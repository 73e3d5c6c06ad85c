# Generated manually for the link occurrence store

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='LinkOccurrence',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('silo_id', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ('source_post_id', models.CharField(db_index=True, max_length=64)),
                ('target_post_id', models.CharField(blank=True, max_length=64, null=True)),
                ('anchor_text', models.CharField(max_length=255)),
                ('context_snippet', models.CharField(blank=True, default='', max_length=200)),
                ('start_index', models.PositiveIntegerField(blank=True, null=True)),
                ('end_index', models.PositiveIntegerField(blank=True, null=True)),
                ('occurrence_key', models.CharField(blank=True, db_index=True, max_length=40, null=True)),
                ('href_normalized', models.CharField(max_length=500)),
                ('position_bucket', models.CharField(choices=[('start', 'Start'), ('mid', 'Mid'), ('end', 'End')], default='start', max_length=8)),
                ('link_type', models.CharField(choices=[('internal', 'Internal'), ('external', 'External'), ('affiliate', 'Affiliate')], default='external', max_length=16)),
                ('is_nofollow', models.BooleanField(default=False)),
                ('is_sponsored', models.BooleanField(default=False)),
                ('is_ugc', models.BooleanField(default=False)),
                ('is_blank', models.BooleanField(default=False)),
                ('is_silo_internal', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['source_post_id', 'id'],
            },
        ),
    ]
