"""Signals: drop memoized scores when an opportunity changes."""
from __future__ import annotations

import logging

from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from meddpicc.services import invalidate_score

logger = logging.getLogger(__name__)


def _invalidate(instance) -> None:
    organization_id = instance.organization_id
    opportunity_id = instance.pk

    invalidate_score(organization_id, opportunity_id)
    # Again after commit, so a read racing the transaction cannot pin the old text.
    transaction.on_commit(lambda: invalidate_score(organization_id, opportunity_id))


@receiver(post_save, sender="crm.Opportunity")
def on_opportunity_saved(sender, instance, **kwargs):
    _invalidate(instance)


@receiver(post_delete, sender="crm.Opportunity")
def on_opportunity_deleted(sender, instance, **kwargs):
    _invalidate(instance)
