from django.urls import path
from . import views

app_name = 'staff'

urlpatterns = [
    path('api/employees', views.employee_list, name='employee_list'),
    path('api/attendance', views.attendance_list, name='attendance_list'),
    path('api/attendance/clock-in', views.clock_in, name='clock_in'),
    path('api/attendance/clock-out', views.clock_out, name='clock_out'),
]
