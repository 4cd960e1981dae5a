from django.contrib import admin

from .models import Organization, OrganizationMember, Territory


class OrganizationMemberInline(admin.TabularInline):
    model = OrganizationMember
    fk_name = "organization"
    extra = 0
    autocomplete_fields = ("user", "manager")


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "industry", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name", "code")
    inlines = (OrganizationMemberInline,)


@admin.register(Territory)
class TerritoryAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "organization", "region", "is_active")
    list_filter = ("organization", "is_active")
    search_fields = ("name", "code")
