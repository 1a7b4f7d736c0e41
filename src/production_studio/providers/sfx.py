"""
Ambient sound library

A fixed catalog of ambient track ids with keyword hints, resolved to
preview audio through the Freesound search API when a key is configured.
"""

import logging
import re
from typing import Any, Dict, List, Optional

import requests

from ..core.config import FREESOUND_API_BASE, FREESOUND_API_KEY
from ..core.errors import ProviderError, ProviderNotConfiguredError

logger = logging.getLogger(__name__)

AMBIENT_CATALOG: Dict[str, Dict[str, Any]] = {
    # Nature
    "ocean-waves": {"query": "ocean waves beach ambient", "keywords": ["ocean", "sea", "wave", "beach", "underwater", "deep-sea", "coast"], "volume": 0.35},
    "forest-ambience": {"query": "forest birds nature ambient", "keywords": ["forest", "jungle", "woods", "tree", "bird", "nature"], "volume": 0.3},
    "rain-gentle": {"query": "rain gentle soft ambient", "keywords": ["rain", "drizzle", "wet", "umbrella"], "volume": 0.3},
    "thunderstorm": {"query": "thunderstorm rain thunder ambient", "keywords": ["storm", "thunder", "lightning", "hurricane"], "volume": 0.35},
    "wind-howling": {"query": "wind howling strong ambient", "keywords": ["wind", "mountain", "arctic", "snow", "blizzard"], "volume": 0.3},
    "desert-wind": {"query": "desert wind sand ambient", "keywords": ["desert", "sand", "dune", "sahara", "arid"], "volume": 0.3},
    "river-stream": {"query": "river stream water flowing ambient", "keywords": ["river", "stream", "creek", "waterfall", "lake"], "volume": 0.3},
    "fire-crackling": {"query": "fire crackling campfire ambient", "keywords": ["fire", "campfire", "fireplace", "flame", "volcano"], "volume": 0.3},
    "night-crickets": {"query": "night crickets insects ambient", "keywords": ["night", "crickets", "moon", "evening", "stars"], "volume": 0.25},
    # Urban
    "city-traffic": {"query": "city traffic urban ambient", "keywords": ["city", "street", "traffic", "urban", "downtown", "car"], "volume": 0.25},
    "cafe-chatter": {"query": "cafe restaurant chatter ambient", "keywords": ["cafe", "coffee", "restaurant", "bar", "crowd"], "volume": 0.2},
    "office-hum": {"query": "office ambience typing quiet", "keywords": ["office", "work", "computer", "business", "meeting"], "volume": 0.2},
    "market-bazaar": {"query": "market bazaar crowd ambient", "keywords": ["market", "bazaar", "souk", "vendor", "shopping"], "volume": 0.25},
    # Atmosphere
    "space-drone": {"query": "space ambient drone deep", "keywords": ["space", "galaxy", "planet", "cosmic", "universe", "astronaut", "future"], "volume": 0.25},
    "mystery-drone": {"query": "dark mysterious ambient drone", "keywords": ["mystery", "dark", "horror", "haunted", "cave", "ancient", "tomb"], "volume": 0.25},
    "industrial-machines": {"query": "factory machines industrial ambient", "keywords": ["factory", "machine", "industrial", "engine", "robot"], "volume": 0.2},
}

AMBIENT_TRACK_IDS = list(AMBIENT_CATALOG)

MOOD_TO_TRACK = {
    "calm": "rain-gentle",
    "peaceful": "forest-ambience",
    "mysterious": "mystery-drone",
    "tense": "mystery-drone",
    "epic": "wind-howling",
    "futuristic": "space-drone",
    "energetic": "city-traffic",
}


def suggest_ambient_track(text: str, mood: Optional[str] = None) -> Optional[str]:
    """Pick the catalog track whose keywords best match the scene text"""
    lowered = (text or "").lower()
    best_id, best_hits = None, 0
    for track_id, entry in AMBIENT_CATALOG.items():
        hits = sum(1 for keyword in entry["keywords"] if re.search(rf"\b{re.escape(keyword)}", lowered))
        if hits > best_hits:
            best_id, best_hits = track_id, hits
    if best_id is None and mood:
        best_id = MOOD_TO_TRACK.get(mood.lower())
    return best_id


class FreesoundLibrary:
    """Resolves catalog ids to preview URLs via the Freesound text search"""

    def __init__(self, api_key: str = FREESOUND_API_KEY, base_url: str = FREESOUND_API_BASE):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._cache: Dict[str, Optional[Dict[str, Any]]] = {}

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def search(self, query: str, min_duration: int = 10, page_size: int = 5) -> List[Dict[str, Any]]:
        if not self.api_key:
            raise ProviderNotConfiguredError("Freesound", "FREESOUND_API_KEY")
        params = {
            "query": query,
            "token": self.api_key,
            "sort": "rating_desc",
            "page_size": page_size,
            "fields": "id,name,duration,previews,avg_rating",
            "filter": f"duration:[{min_duration} TO *]",
        }
        response = requests.get(f"{self.base_url}/search/text/", params=params, timeout=30)
        if not response.ok:
            raise ProviderError(f"Freesound search failed: {response.status_code}",
                                status_code=response.status_code, body=response.text, provider="freesound")
        return response.json().get("results") or []

    def resolve(self, track_id: str) -> Optional[Dict[str, Any]]:
        """Best preview for a catalog id (cached per process)"""
        if track_id in self._cache:
            return self._cache[track_id]
        entry = AMBIENT_CATALOG.get(track_id)
        if entry is None:
            return None
        results = self.search(entry["query"])
        sound = None
        if results:
            best = results[0]
            previews = best.get("previews") or {}
            sound = {
                "id": best.get("id"),
                "name": best.get("name"),
                "url": previews.get("preview-hq-mp3") or previews.get("preview-lq-mp3"),
                "duration": best.get("duration"),
            }
        logger.info(f"[Freesound] {track_id} -> {sound['name'] if sound else 'no result'}")
        self._cache[track_id] = sound
        return sound
