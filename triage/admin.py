"""
Django admin registrations for the triage models.

Queue positions are shown read-only: edit them through the admission and
completion services, never by hand, or the dense ordering breaks.
"""

from django.contrib import admin

from .models import Hospital, User, Doctor, QueueEntry, QueueEntryTransition


@admin.register(Hospital)
class HospitalAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'address', 'created_at')
    search_fields = ('id', 'name')


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'hospital', 'is_staff', 'is_superuser')
    list_filter = ('role', 'hospital')
    search_fields = ('username', 'first_name', 'last_name', 'email')


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ('name', 'hospital', 'specialty', 'available')
    list_filter = ('hospital', 'specialty', 'available')
    search_fields = ('name',)


@admin.register(QueueEntry)
class QueueEntryAdmin(admin.ModelAdmin):
    list_display = ('id', 'hospital', 'subject', 'status', 'severity', 'queue_position', 'analysis_is_fallback')
    list_filter = ('status', 'hospital', 'analysis_is_fallback')
    search_fields = ('id', 'subject__username')
    readonly_fields = ('severity', 'status', 'queue_position', 'processed_at', 'completed_at')


@admin.register(QueueEntryTransition)
class QueueEntryTransitionAdmin(admin.ModelAdmin):
    list_display = ('entry', 'from_status', 'to_status', 'operator', 'timestamp')
    list_filter = ('to_status',)
    search_fields = ('entry__id', 'operator__username')
