"""
Application signals (blinker).

Publishers send with the user id as keyword payload; subscribers connect
with ``@profile_updated.connect``.

    profile_updated   user_id, fields (names of the columns that changed)
    xp_awarded        user_id, amount, reason, total_xp
    streak_changed    user_id, streak, previous
"""

from blinker import Namespace

profile_signals = Namespace()

profile_updated = profile_signals.signal("profile_updated")
xp_awarded = profile_signals.signal("xp_awarded")
streak_changed = profile_signals.signal("streak_changed")
