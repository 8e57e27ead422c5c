"""
Root URL map: the intake API from ``triage.routers``, the admin site for
hospital and doctor records, and the generated API docs.
"""
from django.contrib import admin
from django.urls import include, path
from drf_yasg import openapi
from drf_yasg.views import get_schema_view
from rest_framework import permissions

admin.site.site_header = "Patient intake administration"

api_info = openapi.Info(
    title="Patient Intake API",
    default_version='v1',
    description=(
        "Patients submit a report image or symptoms and are placed in their "
        "hospital's queue by severity; staff read and complete the queue."
    ),
)

schema_view = get_schema_view(api_info, public=True, permission_classes=(permissions.AllowAny,))

docs_patterns = [
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
    path('swagger.json', schema_view.without_ui(cache_timeout=0), name='schema-json'),
]

urlpatterns = [
    path('', include('triage.routers')),
    path('admin/', admin.site.urls),
    *docs_patterns,
]
