from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("bookings", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="dealpurchase",
            name="needs_reconciliation",
            field=models.BooleanField(
                default=False,
                help_text="Settled with more miles than the wallet held; an admin must review.",
            ),
        ),
        migrations.AddField(
            model_name="dealpurchase",
            name="reconciliation_reason",
            field=models.CharField(blank=True, default="", max_length=255),
        ),
    ]
