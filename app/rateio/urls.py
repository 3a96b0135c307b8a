from django.urls import path
from . import views

urlpatterns = [
    path('rateio-claro-sync', views.rateio_claro_sync, name='rateio_claro_sync'),
    path('rateio-claro-sync/', views.rateio_claro_sync),
    path('rateio-claro-sync/<str:path_action>', views.rateio_claro_sync, name='rateio_claro_sync_action'),
]
