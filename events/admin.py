from decimal import Decimal

from django.contrib import admin, messages

from payments.exceptions import PaymentError
from payments.services import registration_stats, settle_onspot
from .models import Event, Team


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "price_per_head", "max_team_size", "paid_teams", "revenue", "created_at")
    list_filter = ("category",)
    search_fields = ("name",)

    @admin.display(description="Paid teams")
    def paid_teams(self, obj):
        return registration_stats(event=obj)["paid_registrations"]

    @admin.display(description="Revenue (INR)")
    def revenue(self, obj):
        return Decimal(registration_stats(event=obj)["total_revenue"]) / 100


@admin.register(Team)
class TeamAdmin(admin.ModelAdmin):
    list_display = ("team_name", "event", "team_size", "college_name", "is_onspot", "created_at")
    list_filter = ("event", "is_onspot")
    search_fields = ("id", "team_name", "college_name")
    readonly_fields = ("is_onspot",)
    actions = ["record_onspot_payment"]

    @admin.action(description="Record on-spot payment and issue ticket")
    def record_onspot_payment(self, request, queryset):
        done = 0
        for team in queryset:
            try:
                ticket, _ = settle_onspot(team)
            except PaymentError as e:
                self.message_user(request, f"{team.team_name}: {e.public_message}", level=messages.ERROR)
            else:
                done += 1
                self.message_user(request, f"{team.team_name}: ticket {ticket.ticket_code}")
        if done:
            self.message_user(request, f"Recorded {done} on-spot payment(s).", level=messages.SUCCESS)
