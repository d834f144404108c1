"""
LLM-powered demo data generator for the Travel Schedule Recalculator.
STRATEGY: one request per room (owner, members, blocked times and the
existing assignment together) so the slots always reference real members.
Strong prompt + robust parsing; invalid participants are skipped, not fatal.
"""

import os
import json
import logging
import re
import google.generativeai as genai
from typing import Any, Dict, List, Optional, Tuple
from datetime import date, timedelta
from pydantic import ValidationError

from models import AssignedSlot, BlockedTime, Participant, Room

logger = logging.getLogger(__name__)

MODEL_NAME = "gemini-2.5-flash-preview-09-2025"


def next_monday(today: Optional[date] = None) -> date:
    today = today or date.today()
    return today + timedelta(days=(7 - today.weekday()) % 7 or 7)


def robust_parse_json(raw_text: str) -> Dict[str, Any]:
    """
    ROBUST PARSER: handles Markdown fences and shape normalization.
    Always returns a dict (empty when nothing usable came back).
    """
    if not raw_text:
        return {}

    # 1. Clean Markdown Code Blocks
    clean_text = re.sub(r"```json\s*|\s*```", "", raw_text).strip()

    try:
        data = json.loads(clean_text)
    except json.JSONDecodeError:
        # Fallback: try to extract the outermost object
        match = re.search(r'(\{.*\})', clean_text, re.DOTALL)
        if not match:
            return {}
        try:
            data = json.loads(match.group(1))
        except json.JSONDecodeError:
            return {}

    # 2. Normalize Data Shape
    if isinstance(data, list):
        return {"members": data}
    if isinstance(data, dict):
        for key in ("room", "result", "data"):
            if isinstance(data.get(key), dict):
                return data[key]
        return data
    return {}


def build_room(payload: Dict[str, Any]) -> Optional[Room]:
    """
    Validate a parsed payload item by item: bad members, blocked times or
    slots are logged and skipped; a missing owner is the only fatal case.
    """
    try:
        owner = Participant.model_validate(payload.get("owner") or {})
    except ValidationError as e:
        logger.error(f"Owner failed validation: {e.json()}")
        return None

    members: List[Participant] = []
    for i, item in enumerate(payload.get("members") or []):
        try:
            members.append(Participant.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping invalid member {i}: {e.json()}")

    blocked: List[BlockedTime] = []
    for i, item in enumerate(payload.get("blocked_times") or []):
        try:
            blocked.append(BlockedTime.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping invalid blocked time {i}: {e.json()}")

    known_ids = {owner.id, *(m.id for m in members)}
    slots: List[AssignedSlot] = []
    for i, item in enumerate(payload.get("time_slots") or []):
        try:
            slot = AssignedSlot.model_validate(item)
        except ValidationError as e:
            logger.warning(f"Skipping invalid slot {i}: {e.json()}")
            continue
        if slot.participant_id not in known_ids:
            logger.warning(f"Skipping slot {i}: unknown participant {slot.participant_id}")
            continue
        slots.append(slot)

    return Room(owner=owner, members=members, blocked_times=blocked, time_slots=slots)


class RoomGenerator:
    def __init__(self, api_key: str | None = None):
        self.api_key = api_key or os.environ.get("GOOGLE_API_KEY")
        if not self.api_key:
            raise ValueError("GOOGLE_API_KEY not found. Please set it in environment.")

        genai.configure(api_key=self.api_key)
        self.model = genai.GenerativeModel(MODEL_NAME)
        self.total_cost = 0.0

    def _estimate_cost(self, prompt_tokens: int, response_tokens: int) -> float:
        return (prompt_tokens * 0.075 + response_tokens * 0.30) / 1_000_000

    def _build_prompt(self, member_count: int, start_date: date, city: str) -> str:
        week = [(start_date + timedelta(days=d)).isoformat() for d in range(5)]
        return f"""
        Generate one tutoring coordination room in {city}: one tutor (the owner)
        and {member_count} students (members) who are visited at home.

        OUTPUT FORMAT:
        A single valid JSON Object with keys "owner", "members", "blocked_times", "time_slots".

        STRICT SCHEMA RULES (Follow exactly to avoid validation errors):

        1. PARTICIPANT ("owner" and each item of "members"):
           {{
             "id": "member_01",                      (STRING, owner id is "owner")
             "display_name": "Minji Kim",
             "location": {{ "lat": 37.55, "lng": 126.98 }},   (real coordinates inside {city})
             "availability": [
               {{ "weekday": 0, "start_time": "09:00", "end_time": "12:00", "priority": 3 }}
             ]
           }}
           - "weekday": INTEGER 0-4 (0=Monday). NEVER use day names.
           - Times are "HH:MM" on 10-minute boundaries, start < end.
           - "priority": 2 or 3.

        2. "blocked_times": list of {{ "name": "Lunch", "start_time": "12:00", "end_time": "13:00" }}.

        3. "time_slots": the existing assignment, one object per session:
           {{ "participant_id": "member_01", "date": "YYYY-MM-DD", "start_time": "10:00", "end_time": "11:00", "label": "Math" }}
           - "date" MUST be one of {json.dumps(week)}.
           - Sessions last 50 to 120 minutes, on 10-minute boundaries.
           - Sessions of different members on the same date MUST NOT overlap.
           - Each member has 1 or 2 sessions in the week. The owner may have 1 session too.

        4. LOGIC:
           - Put most students within 10 km of the owner, one or two farther away.
           - Schedule sessions back to back on some days so travel time matters.
        """

    def generate_room(self, member_count: int = 5, start_date: date = None, city: str = "Seoul") -> Tuple[Optional[Room], float]:
        """
        Generates a synthetic Room with a STRONG SCHEMA PROMPT.
        """
        if start_date is None:
            start_date = next_monday()

        prompt = self._build_prompt(member_count, start_date, city)
        logger.info(f"Requesting a synthetic room with {member_count} members starting {start_date}...")

        try:
            generation_config = genai.GenerationConfig(
                response_mime_type="application/json",
                max_output_tokens=16000,
                temperature=0.7
            )
            response = self.model.generate_content(prompt, generation_config=generation_config)

            cost = 0.0
            if hasattr(response, 'usage_metadata'):
                p_tok = response.usage_metadata.prompt_token_count
                r_tok = response.usage_metadata.candidates_token_count
                cost = self._estimate_cost(p_tok, r_tok)
            self.total_cost += cost

            room = build_room(robust_parse_json(response.text))

        except Exception as e:
            logger.error(f"Room generation failed: {e}")
            return None, 0.0

        if room is not None:
            logger.info(f"Generated room: {len(room.members)} members, {len(room.time_slots)} slots")
        return room, cost
