#!/usr/bin/env python3
"""
Script to analyze the traces of one or more blocks.

Fetches block traces from the configured JSON-RPC endpoint (trace_block),
runs categorization, gas and token flow analysis, and prints a summary.

Usage:
    # Analyze the latest block
    python scripts/analyze_block.py latest

    # Analyze a block against a specific node
    python scripts/analyze_block.py 18500000 --rpc-url http://localhost:8545

    # Compare several blocks
    python scripts/analyze_block.py 18500000 18500001 18500002 --compare
"""

import argparse
import asyncio
import sys

import structlog

from blocktrace.config import Settings, configure_logging, get_settings
from blocktrace.core.analysis import BlockTraceOrchestrator
from blocktrace.core.formatting import format_duration, format_gas, format_percentage
from blocktrace.models.block import AnalysisProgress, BlockAnalysis

log = structlog.get_logger()


def print_progress(event: AnalysisProgress) -> None:
    print(f"  [{event.percent:3}%] {event.stage.value:<16} {event.message}")


def print_analysis(analysis: BlockAnalysis) -> None:
    """Print a human-readable summary of one analysis."""
    summary = analysis.summary
    gas = analysis.gas_analysis
    flow = analysis.token_flow

    print("\n" + "=" * 60)
    print(f"Block {analysis.metadata.number} ({analysis.network})")
    print("=" * 60)
    print(f"  Hash:              {analysis.metadata.hash}")
    print(f"  Transactions:      {summary.total_transactions} ({summary.total_traces} traces)")
    print(f"  Success rate:      {format_percentage(summary.success_rate)}")
    print(f"  Token activity:    {summary.token_transactions} ({format_percentage(summary.token_percentage)})")
    print(f"  Gas used:          {format_gas(summary.total_gas_used)}")
    print(f"  Efficiency score:  {format_percentage(gas.efficiency.efficiency_score)}")
    print(f"  Token transfers:   {flow.metrics.total_transfers}")
    print(f"  Execution time:    {format_duration(analysis.performance_metrics.execution_time_ms)}")

    if gas.distribution:
        print("\n  Gas distribution:")
        for item in gas.distribution:
            print(f"    {item.display_name:<20} {format_gas(item.gas_used):>8}  {format_percentage(item.percentage)}")

    if gas.opportunities:
        print("\n  Optimization opportunities:")
        for opportunity in gas.opportunities:
            print(f"    [{opportunity.severity.value.upper()}] {opportunity.description}")

    if gas.recommendations:
        print("\n  Recommendations:")
        for recommendation in gas.recommendations:
            print(f"    - {recommendation}")


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="BlockTrace block analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/analyze_block.py latest
  python scripts/analyze_block.py 0x11e1a30 --network mainnet
  python scripts/analyze_block.py 18500000 18500001 --compare
        """,
    )

    parser.add_argument(
        "blocks",
        nargs="+",
        help="Block numbers, hex numbers, hashes or tags",
    )
    parser.add_argument(
        "--rpc-url",
        type=str,
        default=None,
        help="JSON-RPC endpoint supporting trace_block (default: BLOCKTRACE_RPC_URL)",
    )
    parser.add_argument(
        "--network",
        type=str,
        default=None,
        help="Network name used in cache keys (default: BLOCKTRACE_NETWORK)",
    )
    parser.add_argument(
        "--compare",
        action="store_true",
        help="Print a comparison of the analyzed blocks",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Don't print progress events",
    )

    return parser.parse_args()


def build_settings(args: argparse.Namespace) -> Settings:
    overrides = {}
    if args.rpc_url:
        overrides["rpc_url"] = args.rpc_url
    if args.network:
        overrides["network"] = args.network
    settings = get_settings()
    return settings.model_copy(update=overrides) if overrides else settings


async def main() -> int:
    """Main entry point."""
    args = parse_args()
    settings = build_settings(args)
    configure_logging(settings)
    orchestrator = BlockTraceOrchestrator(settings)
    if not args.quiet:
        orchestrator.progress.subscribe(print_progress)

    try:
        analyses = await orchestrator.analyze_blocks(args.blocks)
        for analysis in analyses:
            print_analysis(analysis)

        if args.compare and len(analyses) >= 2:
            comparison = orchestrator.compare_blocks(analyses)
            print("\n" + "=" * 60)
            print(f"Comparison of {comparison.block_count} blocks")
            print("=" * 60)
            print(f"  Avg transactions:  {comparison.averages.transaction_count:.1f}")
            print(f"  Avg gas used:      {format_gas(comparison.averages.gas_used)}")
            print(f"  Avg success rate:  {format_percentage(comparison.averages.success_rate)}")
            for insight in comparison.insights:
                print(f"  - {insight}")
            for recommendation in comparison.recommendations:
                print(f"  > {recommendation}")

        return 0 if len(analyses) == len(args.blocks) else 1

    except KeyboardInterrupt:
        print("\n[WARN] Interrupted by user")
        return 1
    except Exception as e:
        log.error("block_analysis_failed", error=str(e))
        print(f"\n[ERROR] Error: {e}")
        return 1
    finally:
        await orchestrator.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
