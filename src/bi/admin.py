from django.contrib import admin

from bi.models import (
    CallActivity,
    FormularyAccess,
    HealthcareProvider,
    KPICalculatedValue,
    KPIDefinition,
    PrescriptionEvent,
    Product,
    SampleDistribution,
)


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "organization", "therapeutic_area", "is_active")
    list_filter = ("is_active", "organization")
    search_fields = ("name", "code")


@admin.register(HealthcareProvider)
class HealthcareProviderAdmin(admin.ModelAdmin):
    list_display = ("last_name", "first_name", "specialty", "territory", "is_kol", "is_active")
    list_filter = ("is_kol", "is_active", "organization")
    search_fields = ("last_name", "first_name", "npi")


@admin.register(PrescriptionEvent)
class PrescriptionEventAdmin(admin.ModelAdmin):
    list_display = ("prescription_date", "product", "hcp", "prescription_type", "volume", "territory")
    list_filter = ("prescription_type", "organization")
    date_hierarchy = "prescription_date"


@admin.register(CallActivity)
class CallActivityAdmin(admin.ModelAdmin):
    list_display = ("call_date", "rep", "hcp", "call_type", "outcome", "samples_distributed")
    list_filter = ("call_type", "outcome", "organization")
    date_hierarchy = "call_date"


@admin.register(SampleDistribution)
class SampleDistributionAdmin(admin.ModelAdmin):
    list_display = ("distribution_date", "rep", "hcp", "product", "quantity")
    list_filter = ("organization",)


@admin.register(FormularyAccess)
class FormularyAccessAdmin(admin.ModelAdmin):
    list_display = ("payer", "product", "coverage_level", "effective_date", "end_date")
    list_filter = ("coverage_level", "organization")
    search_fields = ("payer",)


@admin.register(KPIDefinition)
class KPIDefinitionAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "organization", "owner", "is_active")
    list_filter = ("is_active", "organization")
    search_fields = ("name", "code")


@admin.register(KPICalculatedValue)
class KPICalculatedValueAdmin(admin.ModelAdmin):
    list_display = ("kpi_code", "organization", "calculation_date", "period_start", "period_end", "value")
    list_filter = ("kpi_code", "organization")
    readonly_fields = ("created_at", "updated_at")
