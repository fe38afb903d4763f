from django.urls import path
from . import views

app_name = 'profiles'

urlpatterns = [
    # Store settings
    path('api/store-settings', views.store_settings, name='store_settings'),
    path('api/store-settings/pin', views.set_pin, name='set_pin'),
    path('api/pin-auth', views.pin_auth, name='pin_auth'),
    path('api/pin-logout', views.pin_logout, name='pin_logout'),

    # Printer configuration
    path('api/printer-configs', views.printer_config_list, name='printer_config_list'),
    path('api/printer-configs/<int:config_id>', views.printer_config_detail, name='printer_config_detail'),
    path('api/printer-configs/<int:config_id>/toggle', views.printer_config_toggle, name='printer_config_toggle'),

    # Invoice templates
    path('api/invoice-templates', views.invoice_template_list, name='invoice_template_list'),
    path('api/invoice-templates/<int:template_id>', views.invoice_template_detail, name='invoice_template_detail'),
]
