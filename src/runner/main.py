"""Main runner for Trading Clocks - tick-driven board refresh loop"""
import os
import sys
import signal
import time
from datetime import datetime

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()

from trading_clocks.board import BoardSnapshot, ClockBoard
from trading_clocks.core.clock import ClockSource, get_clock
from trading_clocks.core.config import load_holidays_config, load_markets_config, load_settings
from trading_clocks.core.logging import get_logger
from trading_clocks.core.state import close_state_store, get_selected_markets, get_time_overrides, init_state_store
from trading_clocks.markets import find_market
from trading_clocks.session import SessionClassifier

_running = True


def signal_handler(signum, frame):
    global _running
    logger = get_logger()
    logger.log("shutdown_signal", {"signal": signum})
    _running = False


def apply_clock_settings(clock: ClockSource, clock_settings: dict) -> None:
    simulated = clock_settings.get("simulated_time")
    if simulated:
        if isinstance(simulated, str):
            simulated = datetime.fromisoformat(simulated.replace("Z", "+00:00"))
        clock.set_instant(simulated)
    if clock_settings.get("frozen"):
        clock.freeze()
    if clock_settings.get("timezone"):
        clock.set_timezone_override(clock_settings["timezone"])


def render(snapshot: BoardSnapshot) -> str:
    header = f"{snapshot.viewer_date}  {snapshot.viewer_time} {snapshot.viewer_tz_abbrev}"
    if snapshot.simulation_active:
        header += "  [TIME TRAVEL]"

    lines = [header, ""]
    for row in snapshot.rows:
        state = row.state
        status = state.phase.value.replace("_", " ").title()
        if state.holiday_name:
            status += f" ({state.holiday_name})"
        alert = f"  !{row.alert}" if row.alert else ""
        lines.append(
            f"{row.market.code:<8} {status:<36} {state.next_event.value:<13} "
            f"in {row.countdown:>13}  at {row.next_event_viewer.time} {row.next_event_viewer.tz_abbrev}"
            f" / {row.next_event_local.time} {row.next_event_local.tz_abbrev}{alert}"
        )
    return "\n".join(lines)


def main():
    global _running

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger = get_logger()
    logger.log("runner_start", {"pid": os.getpid()})

    try:
        settings = load_settings()
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Failed to load settings: {e}")
        sys.exit(1)

    runner_settings = settings.get("runner", {})
    display_settings = settings.get("display", {})
    loop_interval = runner_settings.get("loop_interval_seconds", 1)
    max_ticks = runner_settings.get("max_ticks")
    logger.log("runner_config", {"loop_interval_seconds": loop_interval, "max_ticks": max_ticks})

    init_state_store()

    clock = get_clock()
    apply_clock_settings(clock, settings.get("clock", {}))

    markets = load_markets_config()
    calendar = load_holidays_config()
    default_ids = display_settings.get("default_markets") or [m.id for m in markets]
    selected_ids = get_selected_markets(default_ids)
    unknown_ids = [market_id for market_id in selected_ids if find_market(markets, market_id) is None]
    if unknown_ids:
        logger.warn("Ignoring unknown market ids", market_ids=unknown_ids)
        selected_ids = [market_id for market_id in selected_ids if market_id not in unknown_ids]

    board = ClockBoard(
        markets,
        SessionClassifier(calendar, clock),
        clock=clock,
        selected_ids=selected_ids,
        overrides=get_time_overrides(),
        opening_soon_minutes=display_settings.get("opening_soon_minutes", 30),
        closing_soon_minutes=display_settings.get("closing_soon_minutes", 30),
    )

    tick_count = 0
    logger.log("runner_loop_starting", {"interval": loop_interval, "markets": len(board.selected_markets)})

    while _running:
        tick_count += 1
        tick_start = time.time()

        try:
            snapshot = board.tick()
            print("\033[2J\033[H" + render(snapshot), flush=True)
        except Exception as e:
            logger.error(f"Tick error: {e}", tick_count=tick_count)

        if max_ticks and tick_count >= max_ticks:
            break

        elapsed = time.time() - tick_start
        sleep_time = max(0, loop_interval - elapsed)
        if sleep_time > 0 and _running:
            time.sleep(sleep_time)

    logger.log("runner_shutdown", {"total_ticks": tick_count})
    close_state_store()
    logger.log("runner_stopped", {})


if __name__ == "__main__":
    main()
