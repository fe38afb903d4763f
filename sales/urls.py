from django.urls import path
from . import views

app_name = 'sales'

urlpatterns = [
    # Orders
    path('api/orders', views.order_list, name='order_list'),
    path('api/orders/date-range/<str:start>/<str:end>', views.order_date_range, name='order_date_range'),
    path('api/orders/<int:order_id>', views.order_detail, name='order_detail'),
    path('api/order-items/<int:order_id>', views.order_items, name='order_items'),
    path('api/order-items/<str:start>/<str:end>', views.order_items_date_range, name='order_items_date_range'),

    # Customers
    path('api/customers', views.customer_list, name='customer_list'),
    path('api/customers/next-id', views.customer_next_id, name='customer_next_id'),
    path('api/customers/adjust-points', views.customer_adjust_points, name='customer_adjust_points'),
    path('api/customers/redeem-points', views.customer_redeem_points, name='customer_redeem_points'),
    path('api/customers/<int:customer_id>', views.customer_detail, name='customer_detail'),
    path('api/point-transactions', views.point_transaction_list, name='point_transaction_list'),

    # Invoices
    path('api/invoices', views.invoice_list, name='invoice_list'),
    path('api/invoices/<int:invoice_id>', views.invoice_detail, name='invoice_detail'),
    path('api/invoice-items/<int:invoice_id>', views.invoice_items, name='invoice_items'),
]
