from __future__ import annotations

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from .models import Product

logger = logging.getLogger(__name__)


@receiver(pre_save, sender=Product)
def product_pre_save(sender, instance: Product, **kwargs):
    prev_price = None
    if instance.pk:
        prev_price = Product.objects.filter(pk=instance.pk).values_list("price", flat=True).first()
    instance._prev_price = prev_price


@receiver(post_save, sender=Product)
def product_post_save(sender, instance: Product, created: bool, **kwargs):
    prev_price = getattr(instance, "_prev_price", None)
    if created or prev_price is None:
        return
    if Decimal(prev_price) == Decimal(instance.price):
        return

    from .services import build_price_change, check_price_alerts

    build_price_change(
        product=instance,
        old_price=prev_price,
        new_price=instance.price,
        reason=getattr(instance, "_price_change_reason", "") or "manual",
        changed_by=getattr(instance, "_price_changed_by", None),
    )
    instance._price_change_reason = ""
    instance._price_changed_by = None

    if Decimal(instance.price) < Decimal(prev_price):
        transaction.on_commit(lambda: check_price_alerts(product=instance))
