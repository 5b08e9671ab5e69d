from decimal import Decimal

from django.contrib import admin

from .models import Payment, Ticket
from .services import registration_stats


def _rupees(paise):
    return Decimal(paise or 0) / 100


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("razorpay_order_id", "team", "status", "amount", "currency", "razorpay_payment_id", "paid_at", "created_at")
    search_fields = ("razorpay_order_id", "razorpay_payment_id", "receipt", "team__team_name")
    list_filter = ("status", "currency", "created_at")
    # status changes only through ticket issuance
    readonly_fields = (
        "team", "amount", "currency", "status", "razorpay_order_id", "razorpay_payment_id", "receipt",
        "gateway_payload", "paid_at", "created_at", "updated_at",
    )
    ordering = ("-created_at",)

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def changelist_view(self, request, extra_context=None):
        stats = registration_stats()
        stats["total_revenue"] = _rupees(stats["total_revenue"])
        stats["pending_revenue"] = _rupees(stats["pending_revenue"])
        extra_context = {**(extra_context or {}), "registration_stats": stats}
        return super().changelist_view(request, extra_context=extra_context)


@admin.register(Ticket)
class TicketAdmin(admin.ModelAdmin):
    list_display = ("ticket_code", "team", "pdf_url", "created_at")
    search_fields = ("ticket_code", "team__team_name")
    readonly_fields = ("team", "ticket_code", "created_at")

    # tickets come from verify-payment or the on-spot team action
    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
