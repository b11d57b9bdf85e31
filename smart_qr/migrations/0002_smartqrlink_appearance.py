from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('smart_qr', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='smartqrlink',
            name='logo',
            field=models.URLField(blank=True, verbose_name='Logo URL'),
        ),
        migrations.AddField(
            model_name='smartqrlink',
            name='dark_color',
            field=models.CharField(blank=True, max_length=7, verbose_name='Dark colour'),
        ),
        migrations.AddField(
            model_name='smartqrlink',
            name='light_color',
            field=models.CharField(blank=True, max_length=7, verbose_name='Light colour'),
        ),
    ]
