from typing import Any, Dict, List

from django.http import JsonResponse

from .stats import StatsQuery, seconds_to_hours_minutes
from .store import ActivityStore

_store = ActivityStore()

# ================== STATS ==================

def user_stats(request, guild_id: str, user_id: str):
    stats = StatsQuery(_store).aggregate(guild_id, user_id)
    out = {"guild_id": guild_id, "user_id": user_id, **stats.as_dict()}
    if stats.available:
        out["voice_time"] = seconds_to_hours_minutes(stats.total_voice_seconds)
        return JsonResponse(out)
    return JsonResponse(out, status=503)

# ================== VOICE SESSIONS ==================

def voice_sessions(request, guild_id: str, user_id: str):
    only_open = request.GET.get("open") in ("1", "true")
    out: List[Dict[str, Any]] = []
    for s in _store.sessions_for(guild_id, user_id, only_open=only_open):
        out.append({
            "id": s.pk,
            "channel_id": s.channel_id,
            "joined_at": s.joined_at,
            "left_at": s.left_at,
            "duration_seconds": s.duration_seconds,
            "open": s.is_open,
        })
    return JsonResponse(out, safe=False)
