from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('tracker', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='messageevent',
            name='link_count',
            field=models.PositiveIntegerField(default=0),
        ),
    ]
