from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("shop", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="order",
            name="stock_reserved",
            field=models.BooleanField(
                default=False,
                help_text="True when placing the order reserved units; False when it deducted them.",
            ),
        ),
    ]
