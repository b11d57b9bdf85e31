import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='QRScan',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event', models.CharField(choices=[('generated', 'Generated'), ('scanned', 'Scanned')], default='generated', max_length=20, verbose_name='Event')),
                ('qr_type', models.CharField(choices=[('product', 'Product'), ('vendor', 'Vendor'), ('order', 'Order'), ('collection', 'Collection'), ('p2p', 'P2P exchange')], max_length=20, verbose_name='Type')),
                ('code', models.CharField(blank=True, max_length=255, verbose_name='Canonical URL')),
                ('user_agent', models.CharField(blank=True, max_length=255, verbose_name='User agent')),
                ('metadata', models.JSONField(default=dict, verbose_name='Metadata')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created')),
            ],
            options={
                'verbose_name': 'QR event',
                'verbose_name_plural': 'QR events',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='SmartQRLink',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('qr_type', models.CharField(choices=[('product', 'Product'), ('vendor', 'Vendor'), ('order', 'Order'), ('collection', 'Collection'), ('p2p', 'P2P exchange')], max_length=20, verbose_name='Type')),
                ('token', models.CharField(db_index=True, max_length=16, verbose_name='Short token')),
                ('signature', models.CharField(max_length=128, verbose_name='Signature')),
                ('version', models.PositiveSmallIntegerField(default=1, verbose_name='Envelope version')),
                ('payload', models.JSONField(default=dict, verbose_name='Payload')),
                ('ai_enhanced', models.BooleanField(default=False, verbose_name='AI enhanced')),
                ('fallback', models.BooleanField(default=False, verbose_name='Built by local fallback')),
                ('access_count', models.PositiveIntegerField(default=0, verbose_name='Access count')),
                ('max_usage', models.PositiveIntegerField(blank=True, null=True, verbose_name='Usage limit')),
                ('last_accessed', models.DateTimeField(blank=True, null=True, verbose_name='Last accessed')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, verbose_name='Created')),
                ('expires_at', models.DateTimeField(blank=True, null=True, verbose_name='Expires')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
            ],
            options={
                'verbose_name': 'QR link',
                'verbose_name_plural': 'QR links',
                'ordering': ['-created_at'],
            },
        ),
    ]
