from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('', include('profiles.urls')),
    path('', include('inventory.urls')),
    path('', include('staff.urls')),
    path('', include('sales.urls')),
    path('api/reports/', include('reports.urls')),
]

handler404 = 'config.api.page_not_found'
handler500 = 'config.api.server_error'
