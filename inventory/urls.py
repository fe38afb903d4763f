from django.urls import path
from . import views

app_name = 'inventory'

urlpatterns = [
    # Product management
    path('api/products', views.product_list, name='product_list'),
    path('api/products/<int:product_id>', views.product_detail, name='product_detail'),
    path('api/products/bulk', views.product_bulk_create, name='product_bulk_create'),

    # Excel import / export
    path('api/products/import', views.product_import, name='product_import'),
    path('api/products/export', views.product_export, name='product_export'),
    path('api/products/import-template', views.product_import_template, name='product_import_template'),
    path('api/products/import-errors', views.product_import_errors, name='product_import_errors'),

    # Categories and stock
    path('api/categories', views.category_list, name='category_list'),
    path('api/stock-movements', views.stock_movement_list, name='stock_movement_list'),
]
