"""
Dwell Board Example

Drives the full pipeline with the dummy engine and a manual clock:
- Registers a 3x3 banded menu
- Fixates the top-left item long enough to activate it
- Shows that a blink (frames without a face) does not reset the dwell
"""

import sys
import os
import asyncio

# Add parent directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from gazedwell.activation.scheduler import ManualClock, ManualTicker
from gazedwell.engine.dummy import DummyEngine
from gazedwell.main import GazeDwellSystem


def main():
    """Dwell selection walkthrough"""

    print("=" * 60)
    print("Gaze Dwell Example")
    print("=" * 60)

    clock = ManualClock()
    ticker = ManualTicker(clock, interval_ms=50)
    engine = DummyEngine()
    system = GazeDwellSystem(engine, clock=clock, ticker=ticker)
    system.add_grid_targets()
    system.on_activation.append(
        lambda target_id: print(f"   -> activated {target_id} at {clock.now_ms():.0f} ms")
    )

    print("\n1. Starting tracking...")
    asyncio.run(system.start())
    print(f"   state: {system.state.value}")

    print("\n2. Looking at the top-left item for 1.2 s...")
    for _ in range(24):
        ticker.advance(50)
        engine.emit(200, 150)
    print(f"   stable zone: {system.stable_zone}, progress: {system.board.progress('up-left'):.0f}%")

    print("\n3. Blinking for 200 ms (no face detected)...")
    for _ in range(4):
        ticker.advance(50)
        engine.emit(None)
    print(f"   stable zone held: {system.stable_zone}, progress: {system.board.progress('up-left'):.0f}%")

    print("\n4. Looking back until activation...")
    for _ in range(30):
        ticker.advance(50)
        engine.emit(200, 150)

    system.stop()
    print(f"\nDone. State: {system.state.value}")


if __name__ == "__main__":
    main()
