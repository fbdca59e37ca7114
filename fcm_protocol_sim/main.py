#!/usr/bin/env python3
"""
FCM Protocol Simulation - Main Entry Point

Runs a Traditional vs Protected comparison from the command line and prints
a summary, optionally saving the run to a results directory.
"""

import argparse
import logging
import sys
import time
from typing import Dict, List, Optional

from pydantic import ValidationError

from .analysis.comparison import get_comparison_summary, market_event_markers
from .analysis.results_manager import ResultsManager, RunMetadata
from .simulation.config import DataMode, Shape, SimulationConfig, VolatilityLevel
from .simulation.engine import FCMSimulationEngine, SimulationResult
from .simulation.state import EventType, Strategy


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fcm-sim",
        description="Traditional vs Protected lending position simulation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  fcm-sim                                          # 30% linear decline over a year
  fcm-sim --pattern crash --price-change -60       # Crash with a shallow bounce
  fcm-sim --mode historic --asset btc --start-year 2021 --end-year 2022
  fcm-sim --mode historic --asset eth --day 130 -v # Seek to a single day
  fcm-sim --mode historic --asset eth --start-year 2022 --end-year 2022 --event-wicks
  fcm-sim --output results                         # Save JSON and CSV tables
        """
    )

    # Position
    parser.add_argument('--deposit', type=float, default=1000.0,
                        help='Initial deposit in currency units (default: 1000)')
    parser.add_argument('--collateral-factor', type=float,
                        help='Collateral factor override (default: asset LTV)')
    parser.add_argument('--target-health', type=float, help='Target health override')
    parser.add_argument('--min-health', type=float,
                        help='Rebalance trigger override (0 disables rebalancing)')
    parser.add_argument('--max-health', type=float, help='Leverage-up trigger override')

    # Rates
    parser.add_argument('--borrow-apy', type=float, help='Borrow APY override, e.g. 0.065')
    parser.add_argument('--supply-apy', type=float, help='Supply APY override')
    parser.add_argument('--vault-apy', type=float, help='Vault APY override')
    parser.add_argument('--rate-change', type=float, default=0.0,
                        help='Shift to the borrow APY in percentage points')
    parser.add_argument('--base-price', type=float, help='Day-0 price override')

    # Market
    parser.add_argument('--mode', choices=[m.value for m in DataMode], default=DataMode.SIMULATED.value,
                        help='Price source (default: simulated)')
    parser.add_argument('--asset', default='eth', help='Collateral asset (btc, eth, sol, avax, flow)')
    parser.add_argument('--debt-asset', default='usdc', help='Debt asset (usdc, usdt, dai)')
    parser.add_argument('--start-year', type=int, default=2020, help='First replay year')
    parser.add_argument('--end-year', type=int, default=2020, help='Last replay year')
    parser.add_argument('--event-wicks', action='store_true',
                        help='Replay black-swan drops as intraday wicks (historic mode)')
    parser.add_argument('--price-change', type=float, default=-30.0,
                        help='Total synthetic price change in percent (default: -30)')
    parser.add_argument('--volatility', choices=[v.value for v in VolatilityLevel],
                        default=VolatilityLevel.MEDIUM.value, help='Synthetic noise level')
    parser.add_argument('--pattern', choices=[s.value for s in Shape], default=Shape.LINEAR.value,
                        help='Synthetic path shape')
    parser.add_argument('--days', type=int, default=365, help='Synthetic horizon in days')

    # Output
    parser.add_argument('--day', type=int, help='Simulate up to this day (default: full horizon)')
    parser.add_argument('--events', type=int, default=10, metavar='N',
                        help='Show the last N Protected events (default: 10)')
    parser.add_argument('--output', type=str, help='Save the run under this results directory')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose output')
    return parser


def create_simulation_config(args) -> SimulationConfig:
    """Create simulation configuration from command-line arguments"""
    return SimulationConfig(
        initial_deposit=args.deposit,
        collateral_factor=args.collateral_factor,
        target_health=args.target_health,
        min_health=args.min_health,
        max_health=args.max_health,
        borrow_apy=args.borrow_apy,
        supply_apy=args.supply_apy,
        vault_apy=args.vault_apy,
        interest_rate_change=args.rate_change,
        base_price=args.base_price,
        data_mode=args.mode,
        collateral_asset=args.asset,
        debt_asset=args.debt_asset,
        start_year=args.start_year,
        end_year=args.end_year,
        event_wicks=args.event_wicks,
        price_change=args.price_change,
        volatility=args.volatility,
        pattern=args.pattern,
        total_days=args.days,
    )


def display_results(result: SimulationResult, summary: Dict, event_limit: int):
    """Print the comparison summary"""
    traditional = result.traditional
    protected = result.protected

    print(f"\nDay {summary['day']}  price ${summary['price']:,.2f}")
    print("=" * 50)
    print(f"{'':22}{'Traditional':>14}{'Protected':>14}")
    print(f"{'Health factor':22}{traditional.health_factor:>14.3f}{protected.health_factor:>14.3f}")
    print(f"{'Status':22}{traditional.status.value:>14}{protected.status.value:>14}")
    print(f"{'Collateral':22}{traditional.collateral_amount:>14.4f}{protected.collateral_amount:>14.4f}")
    print(f"{'Debt':22}{traditional.debt_amount:>14,.2f}{protected.debt_amount:>14,.2f}")
    print(f"{'Total returns':22}{traditional.total_returns:>14,.2f}{protected.total_returns:>14,.2f}")
    print(f"{'Net position value':22}{traditional.net_position_value:>14,.2f}{protected.net_position_value:>14,.2f}")

    print(f"\nRebalances: {summary['rebalance_count']}   Leverage-ups: {summary['leverage_up_count']}")
    print(f"Vault balance: ${protected.vault_balance:,.2f}   Yield reserve: ${protected.yield_reserve:,.2f}")
    if summary['traditional_liquidated']:
        print(f"Traditional position liquidated on day {summary['traditional_liquidation_day']}")
    else:
        print(f"Traditional liquidation price: ${summary['traditional_liquidation_price']:,.2f}")
        if summary['days_until_liquidation'] is not None:
            print(f"Traditional position would be liquidated in {summary['days_until_liquidation']} days")
    print(f"Hold-only value: ${summary['hold_value']:,.2f}")

    markers = market_event_markers(result)
    if markers:
        print("\nMarket events:")
        for marker in markers:
            print(f"  Day {marker['day']:>4}: {marker['name']} (-{marker['price_drop_percent']:.0f}%)")

    events = [e for e in result.events_for(Strategy.PROTECTED)
              if e.event_type not in (EventType.CREATE, EventType.BORROW, EventType.VAULT_DEPLOY)]
    if events and event_limit > 0:
        print("\nRecent Protected events:")
        for event in events[-event_limit:]:
            where = f"cp {event.checkpoint}" if event.checkpoint else "close"
            health = ""
            if event.health_before is not None and event.health_after is not None:
                health = f"  HF {event.health_before:.3f} -> {event.health_after:.3f}"
            print(f"  Day {event.day:>4} ({where}): {event.event_type.value} ${event.amount:,.2f}{health}")


def save_run(result: SimulationResult, output_dir: str, execution_time: float) -> int:
    manager = ResultsManager(output_dir)
    config = result.config
    scenario_name = f"{config.data_mode.value}_{config.collateral_asset}"
    run_dir = manager.create_run_directory(scenario_name)
    metadata = RunMetadata(
        run_id=run_dir.name,
        scenario_name=scenario_name,
        timestamp=time.strftime("%Y-%m-%dT%H:%M:%S"),
        parameters=config.model_dump(mode="json"),
        execution_time=execution_time,
    )
    manager.save_results(run_dir, result, metadata)
    print(f"\nResults saved to {run_dir}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with command-line interface"""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        config = create_simulation_config(args)
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}")
        return 1

    print("FCM Protocol Simulation")
    print("=" * 50)
    if config.is_historic:
        print(f"Replay: {config.collateral_asset.upper()} {config.start_year}-{config.end_year}")
    else:
        print(f"Synthetic: {config.pattern.value} {config.price_change:+.0f}% over {config.total_days} days "
              f"({config.volatility.value} volatility)")

    try:
        start_time = time.time()
        engine = FCMSimulationEngine(config)
        day = engine.total_days if args.day is None else args.day
        result = engine.simulate_to_day(day)
        elapsed = time.time() - start_time

        display_results(result, get_comparison_summary(result), args.events)

        if args.output:
            return save_run(result, args.output, elapsed)
        return 0

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 1
    except OSError as e:
        print(f"Error: {str(e)}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
