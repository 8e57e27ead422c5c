"""
URL mappings for the intake API.

Routes carry no trailing slash (``APPEND_SLASH = False``).
"""
from django.urls import path, include

from .views import health
from .views.intake import report_upload, symptoms_submit
from .views.queues import entry_complete, hospital_doctors, hospital_queue, my_entry


urlpatterns = [
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Intake
    path('api/reports/upload', report_upload, name='report_upload'),
    path('api/symptoms/submit', symptoms_submit, name='symptoms_submit'),
    # Queue
    path('api/hospital/queue', hospital_queue, name='hospital_queue'),
    path('api/hospital/doctors', hospital_doctors, name='hospital_doctors'),
    path('api/reports/<str:entry_id>/complete', entry_complete, name='entry_complete'),
    path('api/queue/entry', my_entry, name='my_entry'),
]
