from django.urls import path
from . import views

app_name = 'reports'

urlpatterns = [
    path('<slug:report>', views.report_data, name='report_data'),

    # Export functionality
    path('<slug:report>/export', views.report_export, name='report_export'),
]
