from django.contrib import admin

from performance.models import LeaderboardSnapshot, SalesTarget


@admin.register(SalesTarget)
class SalesTargetAdmin(admin.ModelAdmin):
    list_display = ("user", "organization", "territory", "period_type", "period_start", "period_end", "target_value")
    list_filter = ("period_type", "organization")
    search_fields = ("user__email",)


@admin.register(LeaderboardSnapshot)
class LeaderboardSnapshotAdmin(admin.ModelAdmin):
    list_display = ("organization", "period", "computed_at")
    list_filter = ("organization",)
    readonly_fields = ("data", "computed_at")
