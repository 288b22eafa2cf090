"""
Store upstream free-text values in unbounded columns and track messages
discarded while a job was suspended.
"""

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("collector", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="scrapejob",
            name="dropped_while_suspended",
            field=models.BooleanField(
                default=False,
                help_text="Set when a worker discarded the queued message of this suspended job.",
            ),
        ),
        # ===== Product =====
        migrations.AlterField(
            model_name="product",
            name="brand",
            field=models.TextField(blank=True, null=True),
        ),
        migrations.AlterField(
            model_name="product",
            name="category",
            field=models.TextField(blank=True, null=True),
        ),
        migrations.AlterField(
            model_name="product",
            name="availability",
            field=models.TextField(blank=True, null=True),
        ),
        migrations.AlterField(
            model_name="product",
            name="currency",
            field=models.TextField(default="USD"),
        ),
        # ===== PriceSnapshot =====
        migrations.AlterField(
            model_name="pricesnapshot",
            name="currency",
            field=models.TextField(default="USD"),
        ),
        migrations.AlterField(
            model_name="pricesnapshot",
            name="availability",
            field=models.TextField(blank=True, null=True),
        ),
        migrations.AlterField(
            model_name="pricesnapshot",
            name="seller_name",
            field=models.TextField(blank=True, null=True),
        ),
        # ===== Review =====
        migrations.AlterField(
            model_name="review",
            name="author",
            field=models.TextField(default="Anonymous"),
        ),
        migrations.AlterField(
            model_name="review",
            name="author_id",
            field=models.TextField(blank=True, null=True),
        ),
        # ===== Seller / ProductSearch =====
        migrations.AlterField(
            model_name="seller",
            name="name",
            field=models.TextField(unique=True),
        ),
        migrations.AlterField(
            model_name="productsearch",
            name="query",
            field=models.TextField(),
        ),
    ]
