import uuid

from django.db import models
from django.db.models import Q


class Payment(models.Model):
    class Status(models.TextChoices):
        CREATED = "created", "Created"
        UNPAID = "unpaid", "Unpaid"
        PAID = "paid", "Paid"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    team = models.ForeignKey("events.Team", on_delete=models.PROTECT, related_name="payments")
    amount = models.PositiveIntegerField(help_text="Smallest currency unit (paise)")
    currency = models.CharField(max_length=8, default="INR")
    status = models.CharField(max_length=12, choices=Status.choices, default=Status.CREATED, db_index=True)

    razorpay_order_id = models.CharField(max_length=64, unique=True)
    razorpay_payment_id = models.CharField(max_length=64, blank=True, null=True, db_index=True)
    receipt = models.CharField(max_length=40, blank=True, default="")
    gateway_payload = models.JSONField(blank=True, null=True)

    paid_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)
        constraints = [
            models.UniqueConstraint(
                fields=["team"],
                condition=Q(status="paid"),
                name="payments_one_paid_payment_per_team",
            ),
        ]

    @property
    def is_paid(self) -> bool:
        return self.status == self.Status.PAID

    def __str__(self):
        return f"{self.razorpay_order_id} ({self.status})"


class Ticket(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    team = models.OneToOneField("events.Team", on_delete=models.PROTECT, related_name="ticket")
    ticket_code = models.CharField(max_length=32, unique=True)
    pdf_url = models.URLField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.ticket_code
