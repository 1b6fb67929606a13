"""Wrapped-style insight sentences, chosen by thresholds on DetailedMetrics."""

from __future__ import annotations
from typing import Callable, List, Tuple

from metrics import DetailedMetrics

Rule = Tuple[Callable[[DetailedMetrics], bool], Callable[[DetailedMetrics], str]]

def _hour12(hour: int) -> str:
    return f"{hour - 12}PM" if hour > 12 else f"{hour}AM"

# Evaluated in order; every matching rule contributes its sentence.
RULES: List[Rule] = [
    (lambda m: m.total_listening_time // 60 > 0,
     lambda m: f"🎧 You've jammed for {m.total_listening_time // 60} hours ({m.total_listening_time} minutes)!"),
    (lambda m: bool(m.top_artists),
     lambda m: f"🎤 {m.top_artists[0].name} was your #1 artist with {m.top_artists[0].count} plays!"),
    (lambda m: m.listening_diversity > 50,
     lambda m: f"🌈 You explored {m.unique_artists} artists - super diverse taste!"),
    (lambda m: m.listening_diversity < 20,
     lambda m: f"🎯 You're loyal to your favorites - {m.unique_artists} artists on repeat!"),
    (lambda m: m.skip_rate < 15,
     lambda m: f"✨ Only {m.skip_rate}% skip rate - you know what you like!"),
    (lambda m: m.skip_rate > 25,
     lambda m: f"⏭️ {m.skip_rate}% skip rate - time to clean those playlists!"),
    # Placeholder-driven rules only fire when simulated figures were requested
    (lambda m: m.simulated is not None,
     lambda m: f"⏰ Peak listening at {_hour12(m.simulated.peak_listening_hour)} - your music power hour!"),
    (lambda m: m.simulated is not None and m.simulated.average_energy > 0.7,
     lambda m: f"⚡ High-energy vibes - {round(m.simulated.average_energy * 100)}% pure electricity!"),
    (lambda m: m.simulated is not None and m.simulated.average_energy < 0.4,
     lambda m: f"😌 Chill mode activated - {round(m.simulated.average_energy * 100)}% relaxed energy"),
    (lambda m: m.track_count > 0 and m.unique_tracks == m.track_count,
     lambda m: f"🆕 No repeats! {m.unique_tracks} unique tracks - variety is your style!"),
    (lambda m: m.unique_tracks < m.track_count / 2,
     lambda m: f"🔁 {m.track_count - m.unique_tracks} repeat plays - you love your favorites!"),
]

def generate_insights(metrics: DetailedMetrics, rules: List[Rule] = RULES) -> List[str]:
    return [template(metrics) for predicate, template in rules if predicate(metrics)]
