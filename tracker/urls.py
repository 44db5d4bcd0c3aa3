from django.urls import path
from . import views

urlpatterns = [
    path('stats/<str:guild_id>/<str:user_id>', views.user_stats),
    path('voice/<str:guild_id>/<str:user_id>/sessions', views.voice_sessions),
]
