import uuid

from django.conf import settings
from django.db import models


class Event(models.Model):
    CATEGORY_CHOICES = [
        ("tech", "Tech"),
        ("non-tech", "Non-tech"),
    ]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=128)
    category = models.CharField(max_length=16, choices=CATEGORY_CHOICES, default="tech")
    description = models.TextField(blank=True, default="")
    # price in rupees; teams pay price_per_head * team_size
    price_per_head = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    max_team_size = models.PositiveSmallIntegerField(default=1)
    image_url = models.URLField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)

    def __str__(self):
        return self.name


class Team(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(Event, on_delete=models.PROTECT, related_name="teams", null=True, blank=True)
    team_name = models.CharField(max_length=128)
    college_name = models.CharField(max_length=255, blank=True, default="")
    team_size = models.PositiveSmallIntegerField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="teams"
    )
    is_onspot = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)

    def __str__(self):
        return f"{self.team_name} ({self.event or 'no event'})"
