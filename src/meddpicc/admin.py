from django.contrib import admin

from .models import MEDDPICCConfiguration, MEDDPICCConfigurationHistory


@admin.register(MEDDPICCConfiguration)
class MEDDPICCConfigurationAdmin(admin.ModelAdmin):
    list_display = ("name", "organization", "version", "is_active", "created_by", "created_at")
    list_filter = ("is_active", "organization")
    readonly_fields = ("version", "created_by", "created_at")


@admin.register(MEDDPICCConfigurationHistory)
class MEDDPICCConfigurationHistoryAdmin(admin.ModelAdmin):
    list_display = ("organization", "configuration", "action", "changed_by", "created_at")
    list_filter = ("action",)
    readonly_fields = ("previous_config", "new_config")
