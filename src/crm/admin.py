from django.contrib import admin

from .models import Activity, Company, Contact, Lead, Opportunity, OpportunityStageHistory


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ("name", "organization", "industry", "territory")
    list_filter = ("organization",)
    search_fields = ("name",)


@admin.register(Contact)
class ContactAdmin(admin.ModelAdmin):
    list_display = ("last_name", "first_name", "company", "email")
    search_fields = ("last_name", "first_name", "email")


@admin.register(Lead)
class LeadAdmin(admin.ModelAdmin):
    list_display = ("company_name", "organization", "owner", "status", "score", "created_at")
    list_filter = ("status", "organization")
    search_fields = ("company_name", "contact_name", "email")


class StageHistoryInline(admin.TabularInline):
    model = OpportunityStageHistory
    extra = 0
    readonly_fields = ("from_stage", "to_stage", "changed_by", "reason", "created_at")
    can_delete = False


@admin.register(Opportunity)
class OpportunityAdmin(admin.ModelAdmin):
    list_display = ("name", "organization", "owner", "status", "peak_stage", "amount", "meddpicc_score")
    list_filter = ("status", "peak_stage", "organization")
    search_fields = ("name", "company__name")
    readonly_fields = ("meddpicc_score",)
    inlines = (StageHistoryInline,)


@admin.register(Activity)
class ActivityAdmin(admin.ModelAdmin):
    list_display = ("subject", "type", "actor", "occurred_at")
    list_filter = ("type",)
