"""
Main Execution Script for the Travel Schedule Recalculator.
Loads (or generates) a coordination room, recalculates it for a travel mode
and exports the travel-aware timetable for the frontend.
"""

import os
import sys
import asyncio
import logging
import json

# Add current directory to path so imports work
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from generators.room_factory import RoomGenerator
from models import RecalculationResult, Room, TravelMode
from travel_scheduler.engine import TravelScheduleRecalculator
from travel_scheduler.errors import ScheduleInputError
from travel_scheduler.travel import GoogleDistanceMatrixProvider, TravelTimeService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger("Main")

# --- CONFIGURATION ---
CACHE_FILENAME = "debug_room.json"
USE_CACHE = True  # Set to False to force new AI generation
TRAVEL_MODE = TravelMode.TRANSIT
MEMBER_COUNT = 6
EXPORT_FILENAME = "recalculated_schedule.json"
GEMINI_API_KEY = os.environ.get("GOOGLE_API_KEY")
MAPS_API_KEY = os.environ.get("GOOGLE_MAPS_API_KEY")
# ---------------------


def save_debug_room(room: Room, filename: str):
    """Save the generated room so we don't re-query the LLM every time."""
    with open(filename, 'w') as f:
        json.dump(room.model_dump(mode='json'), f, indent=2)
    logger.info(f"💾 Saved debug room to {filename}")


def load_cached_room(filename: str):
    try:
        with open(filename, 'r') as f:
            data = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        logger.warning(f"⚠️ Cache file {filename} not found or invalid. Falling back to Generator.")
        return None

    room = Room.model_validate(data)
    logger.info(f"✅ Cache Loaded: {len(room.members)} members, {len(room.time_slots)} slots.")
    return room


def export_schedule(result: RecalculationResult, filename: str):
    """
    Serializes the result into a per-date JSON layout for the frontend.
    """
    logger.info(f"💾 Exporting schedule to {filename}...")

    data = {
        "mode": result.mode.value,
        "schedule": {},
        "travel": {},
        "outcomes": [o.model_dump(mode='json') for o in result.outcomes],
    }

    for slot in result.activity_slots:
        data["schedule"].setdefault(slot.date.isoformat(), []).append(slot.model_dump(mode='json'))

    for leg in result.travel_slots:
        entry = leg.model_dump(mode='json')
        entry["duration_text"] = leg.duration_text
        entry["distance_text"] = leg.distance_text
        data["travel"].setdefault(leg.date.isoformat(), []).append(entry)

    with open(filename, 'w') as f:
        json.dump(data, f, indent=2)
    logger.info("✅ Schedule exported.")


async def recalculate(room: Room, mode: TravelMode):
    provider = GoogleDistanceMatrixProvider(MAPS_API_KEY) if MAPS_API_KEY else None
    if provider is None:
        logger.info("No GOOGLE_MAPS_API_KEY set: travel legs will be estimated from distance")

    engine = TravelScheduleRecalculator(room, mode, TravelTimeService(provider))
    result = await engine.run()
    return engine, result


def main():
    logger.info("🚀 Starting Travel Schedule Recalculation...")

    # --- PHASE 1: DATA ACQUISITION (Cache vs. GenAI) ---
    room = load_cached_room(CACHE_FILENAME) if USE_CACHE else None

    if room is None:
        if not GEMINI_API_KEY:
            logger.error("❌ GOOGLE_API_KEY not found. Please set it via 'export GOOGLE_API_KEY=...'")
            return
        generator = RoomGenerator(api_key=GEMINI_API_KEY)
        room, cost = generator.generate_room(member_count=MEMBER_COUNT)
        logger.info(f"💸 Total Estimated LLM Cost: ${cost:.4f}")
        if room is None:
            logger.error("❌ No data available. Exiting.")
            return
        save_debug_room(room, CACHE_FILENAME)

    # --- PHASE 2: RECALCULATION ---
    try:
        engine, result = asyncio.run(recalculate(room, TRAVEL_MODE))
    except ScheduleInputError as e:
        logger.error(f"❌ Recalculation aborted: {e}")
        return

    # --- PHASE 3: REPORTING ---
    stats = engine.context.get_statistics()

    print("\n" + "=" * 50)
    print(f"📊 RECALCULATION REPORT ({result.mode.value})")
    print("=" * 50)
    print(f"Blocks:           {stats['blocks']}")
    print(f"  - Placed:       {stats['placed']}")
    print(f"  - Split:        {stats['partially_placed']}")
    print(f"  - Dropped:      {stats['dropped']}")
    print(f"Travel legs:      {stats['travel_legs']} ({stats['travel_minutes']} min, {stats['estimated_legs']} estimated)")
    print(f"Reconciled legs:  {stats['reconciled_legs']}")

    for leg in result.travel_slots:
        print(f"🚌 {leg.date} {leg.start_minute // 60:02d}:{leg.start_minute % 60:02d} "
              f"{leg.from_location_name} -> {leg.to_location_name} ({leg.duration_text})")

    if stats['dropped']:
        print("\n🔍 FAILURE ANALYSIS")
        for fail in engine.context.get_failure_report():
            print(f"❌ {fail['participant_id']} {fail['date']} {fail['time']}")
            print(f"   Reason: {fail['reason']}")

    # --- PHASE 4: EXPORT FOR FRONTEND ---
    export_schedule(result, EXPORT_FILENAME)

    print("\n✅ Recalculation Complete.")


if __name__ == "__main__":
    main()
