"""Database models for the contentintel app.

Every hyperlink found in an article body is stored as one
:class:`LinkOccurrence`. Rows are rewritten by
:func:`contentintel.services.sync_link_occurrences`, which keeps the id of an
occurrence stable across re-extractions as long as its anchor, href and
surrounding text do not change.
"""

from __future__ import annotations

from django.db import models


class LinkOccurrence(models.Model):
    """A single link (or CTA) found in the content of a source post."""

    POSITION_CHOICES = [('start', 'Start'), ('mid', 'Mid'), ('end', 'End')]
    LINK_TYPE_CHOICES = [('internal', 'Internal'), ('external', 'External'), ('affiliate', 'Affiliate')]

    silo_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    source_post_id = models.CharField(max_length=64, db_index=True)
    target_post_id = models.CharField(max_length=64, null=True, blank=True)
    anchor_text = models.CharField(max_length=255)
    context_snippet = models.CharField(max_length=200, blank=True, default='')
    start_index = models.PositiveIntegerField(null=True, blank=True)
    end_index = models.PositiveIntegerField(null=True, blank=True)
    occurrence_key = models.CharField(max_length=40, null=True, blank=True, db_index=True)
    href_normalized = models.CharField(max_length=500)
    position_bucket = models.CharField(max_length=8, choices=POSITION_CHOICES, default='start')
    link_type = models.CharField(max_length=16, choices=LINK_TYPE_CHOICES, default='external')
    is_nofollow = models.BooleanField(default=False)
    is_sponsored = models.BooleanField(default=False)
    is_ugc = models.BooleanField(default=False)
    is_blank = models.BooleanField(default=False)
    is_silo_internal = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['source_post_id', 'id']

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return f"{self.source_post_id} -> {self.href_normalized}"
