from django.contrib import admin

from .models import StashedUpload, UploadedFile


@admin.register(UploadedFile)
class UploadedFileAdmin(admin.ModelAdmin):
    list_display = ("name", "size", "mime_type", "uploaded_by", "modified")
    list_filter = ("mime_type",)
    search_fields = ("name", "sha1", "source_url")
    readonly_fields = ("created", "modified", "sha1", "size", "source_url")
    raw_id_fields = ("uploaded_by", "watchers")


@admin.register(StashedUpload)
class StashedUploadAdmin(admin.ModelAdmin):
    list_display = ("key", "filename", "user", "size", "created")
    search_fields = ("key", "filename", "user__username")
    readonly_fields = ("created", "key", "sha1", "size", "source_url")
    raw_id_fields = ("user",)
    actions = ("discard_stashed_uploads",)

    @admin.action(description="Discard selected stashed uploads")
    def discard_stashed_uploads(self, request, queryset):
        count = 0
        for stash in queryset:
            stash.discard()
            count += 1
        self.message_user(request, f"Discarded {count} stashed uploads")
