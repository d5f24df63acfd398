from django.urls import path, re_path
from django.contrib.auth import views as auth_views
from . import api, views

urlpatterns = [
    # Dashboard
    path('', views.dashboard, name='dashboard'),

    # Auth
    path("login/", auth_views.LoginView.as_view(template_name="login.html"), name="login"),
    path("logout/", auth_views.LogoutView.as_view(), name="logout"),

    # Orders
    path('orders/', views.orders_list, name='orders_list'),
    path('orders/create/', views.create_order, name='create_order'),
    path('orders/advance/<str:order_id>/', views.advance_order, name='advance_order'),
    path('orders/track/<str:order_id>/', views.order_tracker, name='order_tracker'),
    path('orders/track/<str:order_id>/start/', views.start_tracking, name='start_tracking'),
    path('orders/track/<str:order_id>/stop/', views.stop_tracking, name='stop_tracking'),
    path('orders/track/<str:order_id>/delivered/', views.mark_delivered, name='mark_delivered'),

    # Inventory
    path('inventory/', views.inventory_list, name='inventory_list'),
    path('inventory/add/', views.add_inventory, name='add_inventory'),
    path('inventory/edit/<str:item_id>/', views.edit_inventory, name='edit_inventory'),
    path('inventory/delete/<str:item_id>/', views.delete_inventory, name='delete_inventory'),

    # Recipes
    path('recipes/', views.recipe_list, name='recipe_list'),
    path('recipes/add/', views.add_recipe, name='add_recipe'),
    path('recipes/edit/<str:recipe_id>/', views.edit_recipe, name='edit_recipe'),
    path('recipes/delete/<str:recipe_id>/', views.delete_recipe, name='delete_recipe'),

    # Sales & expenses
    path('sales/', views.sales, name='sales'),
    path('expenses/', views.expenses, name='expenses'),

    # Email reports
    path('email-reports/', views.email_reports, name='email_reports'),
    path('email-reports/toggle/<str:recipient_id>/', views.toggle_recipient, name='toggle_recipient'),
    path('email-reports/delete/<str:recipient_id>/', views.delete_recipient, name='delete_recipient'),
    path('email-reports/test/<str:report_type>/', views.send_test_report, name='send_test_report'),

    # Users
    path('users/', views.users, name='users'),
    path('users/toggle/<int:user_id>/', views.toggle_user, name='toggle_user'),
    path('users/delete/<int:user_id>/', views.delete_user, name='delete_user'),

    # JSON API
    path('api/email-management/recipients', api.recipients, name='api_recipients'),
    path('api/email-management/logs', api.logs, name='api_logs'),
    path('api/email-management/test-daily', api.test_daily, name='api_test_daily'),
    path('api/email-management/test-weekly', api.test_weekly, name='api_test_weekly'),
    path('api/orders/', api.orders, name='api_orders'),
    path('api/orders/<str:order_id>/status/', api.order_status, name='api_order_status'),
    path('api/orders/<str:order_id>/location/', api.order_location, name='api_order_location'),
    path('api/reports/<str:report_type>/', api.trigger_report, name='api_trigger_report'),
    re_path(r'^api/(?P<path>.*)$', api.not_found),
]
