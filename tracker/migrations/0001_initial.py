from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='UserPresence',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('guild_id', models.CharField(max_length=32)),
                ('user_id', models.CharField(max_length=32)),
                ('first_seen', models.BigIntegerField()),
                ('last_seen', models.BigIntegerField()),
            ],
            options={
                'db_table': 'tracker_userpresence',
                'unique_together': {('guild_id', 'user_id')},
            },
        ),
        migrations.CreateModel(
            name='MessageEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('guild_id', models.CharField(max_length=32)),
                ('channel_id', models.CharField(max_length=32)),
                ('user_id', models.CharField(max_length=32)),
                ('message_id', models.CharField(max_length=32, unique=True)),
                ('created_at', models.BigIntegerField()),
                ('has_attachment', models.BooleanField(default=False)),
                ('attachment_count', models.PositiveIntegerField(default=0)),
            ],
            options={
                'db_table': 'tracker_messageevent',
                'indexes': [models.Index(fields=['guild_id', 'user_id'], name='msg_guild_user_idx')],
            },
        ),
        migrations.CreateModel(
            name='VoiceSession',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('guild_id', models.CharField(max_length=32)),
                ('user_id', models.CharField(max_length=32)),
                ('channel_id', models.CharField(max_length=32)),
                ('joined_at', models.BigIntegerField()),
                ('left_at', models.BigIntegerField(blank=True, null=True)),
                ('duration_seconds', models.BigIntegerField(blank=True, null=True)),
            ],
            options={
                'db_table': 'tracker_voicesession',
                'indexes': [models.Index(fields=['guild_id', 'user_id', 'left_at'], name='voice_open_idx')],
            },
        ),
    ]
