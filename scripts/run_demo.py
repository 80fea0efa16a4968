#!/usr/bin/env python
"""
RatesKit Demo Script

This script walks through the main workflow of the library:
1. Calibrate EUR and USD ISDA yield curves from par rates
2. Calibrate a credit curve from CDS par spreads
3. Price a CMS swap, a cap and a CDS
4. Compute measures (PV, PV01, explain) with the calculation runner
5. Aggregate the portfolio

Usage:
    python run_demo.py [--valuation-date 2024-01-15] [--reporting-currency EUR]
"""

import argparse
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from pathlib import Path

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from rateskit import (
    BuySell,
    CalculationRunner,
    CdsConvention,
    Cds,
    Cms,
    CmsLeg,
    FxMatrix,
    IborCapFloor,
    IborCapFloorLeg,
    IsdaCdsPricer,
    IsdaCreditCurveCalibrator,
    IsdaCreditCurveParRates,
    IsdaYieldCurveConvention,
    IsdaYieldCurveParRates,
    MarketState,
    PayReceive,
    PortfolioAggregator,
    SabrParams,
    SabrSwaptionVolatilities,
    StandardMeasures,
    SwapLeg,
    configure_logging,
)
from rateskit.curves import CurveGroupEntry, calibrate_curve_group
from rateskit.dates import DateUtils
from rateskit.indices import EUR_EURIBOR_1100_10Y, EUR_EURIBOR_6M
from rateskit.vol import VolatilityType, flat_capfloor_volatilities

EUR_POINTS = [
    ("MoneyMarket", "1M", 0.0385),
    ("MoneyMarket", "3M", 0.0390),
    ("MoneyMarket", "6M", 0.0392),
    ("Swap", "1Y", 0.0370),
    ("Swap", "2Y", 0.0330),
    ("Swap", "5Y", 0.0285),
    ("Swap", "10Y", 0.0275),
    ("Swap", "15Y", 0.0276),
    ("Swap", "20Y", 0.0272),
    ("Swap", "30Y", 0.0255),
]

USD_POINTS = [
    ("MoneyMarket", "1M", 0.0533),
    ("MoneyMarket", "3M", 0.0535),
    ("MoneyMarket", "6M", 0.0525),
    ("Swap", "1Y", 0.0500),
    ("Swap", "2Y", 0.0455),
    ("Swap", "5Y", 0.0400),
    ("Swap", "10Y", 0.0385),
]

CREDIT_TENORS = ["6M", "1Y", "3Y", "5Y", "7Y", "10Y"]
CREDIT_SPREADS = [0.0045, 0.0055, 0.0080, 0.0105, 0.0120, 0.0135]


def build_market(valuation_date: date):
    """Calibrate the curves and assemble the market state."""
    print("\n" + "=" * 60)
    print("Calibrating Curves")
    print("=" * 60)

    eur = IsdaYieldCurveParRates.of("EUR-DSC", EUR_POINTS, IsdaYieldCurveConvention.eur_isda())
    usd = IsdaYieldCurveParRates.of("USD-DSC", USD_POINTS, IsdaYieldCurveConvention.usd_isda())
    entries = [
        CurveGroupEntry(eur, discount_currencies={"EUR"}, index_names={EUR_EURIBOR_6M.name}),
        CurveGroupEntry(usd, discount_currencies={"USD"}),
    ]
    results = calibrate_curve_group(valuation_date, entries)
    for name, result in results.items():
        print(f"  {name}: {result.curve.node_count} nodes, "
              f"max repricing error {result.max_repricing_error:.2e}")

    credit_rates = IsdaCreditCurveParRates(
        "ACME-USD", CREDIT_TENORS, CREDIT_SPREADS, CdsConvention.usd_standard()
    )
    credit = IsdaCreditCurveCalibrator().calibrate(
        valuation_date, credit_rates.to_instruments(), results["USD-DSC"].curve, 0.40,
        credit_rates.convention, credit_rates.name,
    )
    results[credit_rates.name] = credit
    print(f"  {credit_rates.name}: {credit.curve.node_count} hazard nodes")

    swaption_vols = SabrSwaptionVolatilities.flat(
        "EUR-SWPT-SABR", EUR_EURIBOR_1100_10Y.name, "EUR", valuation_date,
        SabrParams(alpha=0.05, beta=0.5, rho=-0.25, nu=0.40, shift=0.01),
        expiries=(1.0, 5.0, 10.0), tenors=(5.0, 10.0),
    )
    cap_vols = flat_capfloor_volatilities(
        VolatilityType.NORMAL, "EUR-CAP-NORMAL", EUR_EURIBOR_6M.name, "EUR", valuation_date, 0.0095
    )

    market = (
        MarketState.from_curve_group(
            valuation_date, entries, results, fx_matrix=FxMatrix.of("EUR", "USD", 1.09)
        )
        .with_credit_curve("ACME", credit.curve)
        .with_recovery_rate("ACME", 0.40)
        .with_swaption_volatilities(EUR_EURIBOR_1100_10Y.name, swaption_vols)
        .with_capfloor_volatilities(EUR_EURIBOR_6M.name, cap_vols)
    )
    return market, results, credit_rates, usd


def build_portfolio(valuation_date: date):
    start = DateUtils.add_tenor(valuation_date, "1Y")
    end = DateUtils.add_tenor(start, "5Y")
    cms = Cms.of(
        CmsLeg.of(EUR_EURIBOR_1100_10Y, start, end, 10_000_000, PayReceive.RECEIVE, cap=0.04),
        SwapLeg.fixed(start, end, 10_000_000, 0.0050, PayReceive.PAY, "EUR"),
    )
    cap = IborCapFloor.of(IborCapFloorLeg.of(EUR_EURIBOR_6M, start, end, 0.03, 25_000_000))
    cds = Cds.standard(BuySell.BUY, valuation_date, "5Y", 10_000_000, 0.01, reference="ACME")
    return {"CMS swap": cms, "Cap": cap, "CDS": cds}


def run_measures(runner: CalculationRunner, portfolio) -> None:
    print("\n" + "=" * 60)
    print("Measures")
    print("=" * 60)
    measures = [
        StandardMeasures.PRESENT_VALUE,
        StandardMeasures.PV01_CALIBRATED_SUM,
        StandardMeasures.PV01_MARKET_QUOTE_SUM,
        StandardMeasures.CURRENT_CASH,
    ]
    for label, product in portfolio.items():
        result = runner.calculate(product, measures)
        print(f"\n  {label}")
        for name, value in result.values.items():
            print(f"    {name:<22s} {value}")

    explain = runner.calculate_one(portfolio["CMS swap"], StandardMeasures.EXPLAIN_PRESENT_VALUE)
    print("\n  CMS swap explain:")
    print(explain.explain_string(indent=2))


def run_cds_risk(valuation_date: date, cds: Cds, usd_rates, credit_rates) -> None:
    print("\n" + "=" * 60)
    print("CDS Risk (bump and recalibrate)")
    print("=" * 60)
    pricer = IsdaCdsPricer()
    pv = pricer.price(valuation_date, cds, usd_rates, credit_rates, 0.40)
    par = pricer.par_spread(valuation_date, cds, usd_rates, credit_rates, 0.40)
    cs01 = pricer.cs01_parallel(valuation_date, cds, usd_rates, credit_rates, 0.40)
    ir01 = pricer.ir01_parallel(valuation_date, cds, usd_rates, credit_rates, 0.40)
    print(f"  PV:         {pv}")
    print(f"  Par spread: {par * 10000:.2f}bp")
    print(f"  CS01:       {cs01}")
    print(f"  IR01:       {ir01}")
    bucketed = pricer.cs01_bucketed(valuation_date, cds, usd_rates, credit_rates, 0.40)
    for label, value in zip(bucketed.parameter_labels, bucketed.sensitivity):
        print(f"    {label:>4s}: {value:>12,.2f}")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="RatesKit Demo")
    parser.add_argument(
        "--valuation-date",
        type=date.fromisoformat,
        default=date(2024, 1, 15),
        help="Valuation date (YYYY-MM-DD)",
    )
    parser.add_argument(
        "--reporting-currency",
        type=str,
        default=None,
        help="Convert convertible measures into this currency",
    )
    parser.add_argument("--workers", type=int, default=4, help="Threads for portfolio aggregation")
    parser.add_argument("--log-level", type=str, default=None, help="Logging level")
    args = parser.parse_args()

    configure_logging(args.log_level)
    valuation_date = args.valuation_date

    print("=" * 60)
    print("RATESKIT DEMO")
    print(f"Valuation Date: {valuation_date}")
    print("=" * 60)

    market, results, credit_rates, usd_rates = build_market(valuation_date)
    portfolio = build_portfolio(valuation_date)

    runner = CalculationRunner(market, results, args.reporting_currency)
    run_measures(runner, portfolio)
    run_cds_risk(valuation_date, portfolio["CDS"], usd_rates, credit_rates)

    print("\n" + "=" * 60)
    print("Portfolio")
    print("=" * 60)
    with ThreadPoolExecutor(max_workers=args.workers) as executor:
        total = PortfolioAggregator().aggregate(list(portfolio.values()), market, executor)
    print(f"  Total PV:   {total.present_value}")
    print(f"  Total PV01: {total.pv01().multiplied_by(1e-4)}")
    print(f"\n{total.parameter_sensitivities.to_frame().to_string(index=False)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
