# schoolfees/urls.py

from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    # Django admin (also serves the login page)
    path('admin/', admin.site.urls),

    # Fees app - ledger, collection, defaulters, reports
    path('fees/', include(('fees.urls', 'fees'), namespace='fees')),
]
