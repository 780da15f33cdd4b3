"""Run a rebalancing analysis for one portfolio and write JSON output.

Usage:
    python run_rebalancing.py portfolio.json                        default market snapshot
    python run_rebalancing.py portfolio.json --market pools.json    custom market data
    python run_rebalancing.py portfolio.json --simulate             also simulate the suggestions
    python run_rebalancing.py portfolio.json --as-of 2026-03-01 --risk-tolerance low
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

from dotenv import load_dotenv
load_dotenv()

from pydantic import BaseModel

from yield_rebalancer.agents.rebalance_orchestrator import RebalanceOrchestrator
from yield_rebalancer.config.settings import RebalanceConfig
from yield_rebalancer.exceptions import RebalancerException
from yield_rebalancer.schemas.portfolio import RiskTolerance
from yield_rebalancer.schemas.simulation_output import RebalancePlan
from yield_rebalancer.tools.market_data import StaticMarketDataProvider
from yield_rebalancer.tools.portfolio_store import InMemoryPortfolioStore, load_portfolio
from yield_rebalancer.tools.risk_scorer import HeuristicRiskScorer


# ---------------------------------------------------------------------------
# CLI Argument Parsing
# ---------------------------------------------------------------------------

def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Yield Rebalancer: staking portfolio rebalancing analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
environment:
  REBALANCE_APY_CHANGE_PERCENT, REBALANCE_RISK_SCORE_CHANGE,
  REBALANCE_TIME_INTERVAL_DAYS, REBALANCE_MIN_REBALANCE_AMOUNT,
  REBALANCE_SIGNIFICANT_ALLOCATION_CHANGE  (read from .env as well)
""",
    )
    parser.add_argument("portfolio", help="Portfolio JSON file")
    parser.add_argument(
        "--market", default=None,
        help="Market pools JSON file (default: built-in snapshot)",
    )
    parser.add_argument(
        "--output", default="output",
        help="Output directory (default: output)",
    )
    parser.add_argument(
        "--risk-tolerance", default=None,
        choices=[t.value for t in RiskTolerance],
        help="Override the portfolio's stored risk tolerance",
    )
    parser.add_argument(
        "--as-of", default=None, metavar="YYYY-MM-DD",
        help="Reference date for the time-interval check (default: now, UTC)",
    )
    parser.add_argument(
        "--simulate", action="store_true", default=False,
        help="Simulate the suggested rebalance actions",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", default=False,
        help="Debug logging",
    )
    return parser.parse_args()


def _save(output: BaseModel, filepath: Path) -> Path:
    filepath.write_text(output.model_dump_json(indent=2), encoding="utf-8")
    return filepath


def main(portfolio_file: str, market_file: str = None, output_dir: str = "output",
         risk_tolerance: str = None, as_of: str = None, simulate: bool = False) -> int:
    out_path = Path(output_dir)
    out_path.mkdir(exist_ok=True)

    reference = (
        datetime.fromisoformat(as_of).replace(tzinfo=timezone.utc)
        if as_of else datetime.now(timezone.utc)
    )

    try:
        config = RebalanceConfig.from_env()
        portfolio = load_portfolio(portfolio_file)
        market = (
            StaticMarketDataProvider.from_json(market_file)
            if market_file else StaticMarketDataProvider()
        )
    except RebalancerException as e:
        print(f"\nERROR: {e.message}")
        return 1

    orchestrator = RebalanceOrchestrator(
        store=InMemoryPortfolioStore([portfolio]),
        market_data=market,
        risk_scorer=HeuristicRiskScorer(),
        config=config,
    )

    # ===== Analysis =====
    print(f"[Rebalancer] Analyzing portfolio '{portfolio.portfolio_id}' "
          f"({len(portfolio.positions)} positions) ...")
    try:
        analysis = orchestrator.check_rebalancing(
            portfolio.portfolio_id,
            risk_tolerance=RiskTolerance(risk_tolerance) if risk_tolerance else None,
            as_of=reference,
        )
    except RebalancerException as e:
        print(f"\nERROR [{e.error_code}]: {e.message}")
        return 1

    if analysis.should_rebalance:
        print(f"[Rebalancer] Rebalance advised: severity {analysis.severity.value} "
              f"(score {analysis.severity_score}), {len(analysis.triggers)} trigger(s), "
              f"{len(analysis.suggestions)} suggestion(s)")
        if analysis.estimated_impact is not None:
            impact = analysis.estimated_impact.display
            print(f"[Rebalancer] Annual return {impact['current_annual_return']} -> "
                  f"{impact['projected_annual_return']} ({impact['additional_return']})")
    else:
        print(f"[Rebalancer] {analysis.message}")
    print(f"[Rebalancer] Next check: {analysis.next_check_date.date().isoformat()}")

    analysis_file = _save(
        analysis, out_path / f"rebalance_{portfolio.portfolio_id}_{analysis.analysis_date}.json"
    )
    print(f"[Rebalancer] Saved: {analysis_file}")

    if orchestrator.errors:
        for err in orchestrator.errors:
            print(f"[Warning] {err.source}: {err.message}")
        warnings_file = out_path / f"warnings_{portfolio.portfolio_id}_{analysis.analysis_date}.json"
        warnings_file.write_text(
            json.dumps([err.to_dict() for err in orchestrator.errors], indent=2), encoding="utf-8"
        )
        print(f"[Rebalancer] Saved: {warnings_file}")

    # ===== Simulation =====
    if simulate:
        plan = RebalancePlan.from_suggestions(analysis.suggestions)
        if not plan.actions:
            print("[Simulator] No rebalance actions to simulate")
        else:
            result = orchestrator.simulate_rebalancing(portfolio.portfolio_id, plan, as_of=reference)
            print(f"[Simulator] Weighted yield {result.current.weighted_yield:.2f}% -> "
                  f"{result.projected.weighted_yield:.2f}% ({result.changes.apy_change_display}): "
                  f"{result.recommendation.value}")
            sim_file = _save(
                result, out_path / f"simulation_{portfolio.portfolio_id}_{analysis.analysis_date}.json"
            )
            print(f"[Simulator] Saved: {sim_file}")

    print(f"\nOutput directory: {out_path}/")
    return 0


if __name__ == "__main__":
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(main(
        portfolio_file=args.portfolio,
        market_file=args.market,
        output_dir=args.output,
        risk_tolerance=args.risk_tolerance,
        as_of=args.as_of,
        simulate=args.simulate,
    ))
