"""
Optimization engine for running parameter grid searches.

Orchestrates the optimization process: validates the request, generates
the parameter grid, runs one independent backtest per combination on a
thread pool, ranks the results and analyses parameter sensitivity.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Any, List, Mapping, Optional, Sequence, Type
import logging

from strategylab.backtest.engine import BacktestConfig, BacktestEngine, load_price_bars
from strategylab.backtest.performance import MetricsReport
from strategylab.config import get_settings
from strategylab.core.cancellation import CancellationToken
from strategylab.data.base_provider import PriceDataProvider
from strategylab.exceptions import BacktestConfigError, OptimizationLimitError
from strategylab.models.market_data import PriceBar
from strategylab.models.strategy import StrategyDefinition
from strategylab.observability import metrics as prom
from strategylab.optimization.parameter_space import ParameterSpace
from strategylab.optimization.sensitivity import ParameterSensitivity, calculate_parameter_sensitivity
from strategylab.strategies.base_strategy import BaseStrategy
from strategylab.strategies.ma_crossover import MovingAverageCrossoverStrategy

logger = logging.getLogger(__name__)

MAX_OPTIMIZATION_SYMBOLS = 10
SIGNIFICANT_IMPROVEMENT_PERCENT = 10.0
HIGH_DRAWDOWN_PERCENT = 20.0
MIN_RELIABLE_TRADES = 10


class OptimizationObjective(str, Enum):
    """Metrics the optimizer can rank by (higher is better)."""
    SHARPE_RATIO = "sharpe_ratio"
    TOTAL_RETURN = "total_return"
    PROFIT_FACTOR = "profit_factor"
    CALMAR_RATIO = "calmar_ratio"


@dataclass(frozen=True)
class OptimizationRun:
    """Outcome of one parameter combination."""
    parameters: Dict[str, Any]
    metrics: MetricsReport
    score: float

    def to_dict(self) -> dict:
        return {
            "parameters": dict(self.parameters),
            "metrics": self.metrics.to_dict(),
            "score": self.score,
        }


@dataclass
class OptimizationResult:
    """Ranked runs plus the best combination and sensitivity analysis."""
    objective: OptimizationObjective
    total_combinations: int
    runs: List[OptimizationRun]
    best_parameters: Dict[str, Any]
    best_strategy: StrategyDefinition
    best_metrics: MetricsReport
    sensitivity: Dict[str, ParameterSensitivity]
    improvement: Optional[Dict[str, float]] = None
    recommendations: List[str] = field(default_factory=list)

    @property
    def best_run(self) -> OptimizationRun:
        return self.runs[0]

    def to_dict(self, top_n: Optional[int] = None) -> dict:
        """
        Convert to a plain dictionary.

        Args:
            top_n: Limit the ranked runs included; None keeps all of them
        """
        runs = self.runs if top_n is None else self.runs[:top_n]
        return {
            "objective": self.objective.value,
            "total_combinations": self.total_combinations,
            "best_parameters": dict(self.best_parameters),
            "best_strategy": self.best_strategy.to_dict(),
            "best_metrics": self.best_metrics.to_dict(),
            "runs": [run.to_dict() for run in runs],
            "sensitivity": {name: s.to_dict() for name, s in self.sensitivity.items()},
            "improvement": self.improvement,
            "recommendations": list(self.recommendations),
        }


class OptimizationEngine:
    """
    Grid-search optimizer over the backtest engine.

    The engine:
    1. Validates objective, parameter ranges, combination cap and date range
    2. Builds one strategy variant per grid combination
    3. Runs every combination on a fresh BacktestEngine run in a thread pool
    4. Merges results in grid order and ranks them by the objective
    5. Computes per-parameter sensitivity, improvement and recommendations

    Example:
        engine = OptimizationEngine(config, provider)
        result = engine.optimize(strategy, {"short_period": {"min": 5, "max": 15, "step": 5}})
        print(result.best_parameters)
    """

    def __init__(
        self,
        config: BacktestConfig,
        provider: PriceDataProvider,
        strategy_class: Type[BaseStrategy] = MovingAverageCrossoverStrategy,
        max_workers: Optional[int] = None,
        max_combinations: Optional[int] = None,
        min_days: Optional[int] = None,
        max_days: Optional[int] = None,
    ):
        """
        Initialize optimization engine.

        Args:
            config: Backtest configuration shared by every combination
            provider: Price data shared (read-only) by every combination
            strategy_class: Signal generator implementation
            max_workers: Thread pool size (settings default)
            max_combinations: Combination cap (settings default, 100)
            min_days: Minimum date range in days (settings default, 60)
            max_days: Maximum date range in days (settings default, 730)
        """
        settings = get_settings()
        self.config = config
        self.provider = provider
        self.strategy_class = strategy_class
        self.max_workers = max_workers or settings.optimizer_max_workers
        self.max_combinations = max_combinations or settings.max_optimization_combinations
        self.min_days = min_days if min_days is not None else settings.optimization_min_days
        self.max_days = max_days if max_days is not None else settings.optimization_max_days

    def optimize(
        self,
        base_strategy: StrategyDefinition,
        parameter_ranges: Dict[str, Any],
        objective: str = OptimizationObjective.SHARPE_RATIO.value,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> OptimizationResult:
        """
        Execute a grid search.

        Args:
            base_strategy: Strategy whose parameters are varied
            parameter_ranges: Parameter name -> {min, max, step} or value list
            objective: Ranking metric name
            cancellation_token: Checked before each combination and once
                per simulated day inside each run

        Returns:
            OptimizationResult with ranked runs

        Raises:
            BacktestConfigError: If the request is invalid
            OptimizationLimitError: If the grid exceeds the combination cap
            BacktestCancelledError: If the token is cancelled
        """
        objective_enum = self._parse_objective(objective)
        space = ParameterSpace(parameter_ranges)

        total = space.count_combinations()
        if total > self.max_combinations:
            prom.record_optimization_rejection("too_many_combinations")
            raise OptimizationLimitError(total, self.max_combinations)

        self._validate_request()
        self._validate_parameter_names(base_strategy, space)

        combinations = space.generate_grid()

        # Built up front so invalid parameter values fail before any run
        engines = [
            BacktestEngine(self.config, base_strategy.with_parameters(params), self.strategy_class)
            for params in combinations
        ]

        # Loaded once; every run reads the same bars
        bars_by_symbol = MappingProxyType(load_price_bars(self.provider, self.config))

        logger.info(
            f"Running optimization of {base_strategy.name}: {len(combinations)} combinations, "
            f"objective={objective_enum.value}, workers={self.max_workers}"
        )

        runs = self._run_all(engines, combinations, bars_by_symbol, objective_enum, cancellation_token)

        # Stable sort: ties keep grid order
        ranked = sorted(runs, key=lambda run: run.score, reverse=True)
        best = ranked[0]

        sensitivity = calculate_parameter_sensitivity(
            space.parameters,
            [run.parameters for run in runs],
            [run.score for run in runs],
        )

        improvement = self._calculate_improvement(base_strategy, space.parameters, runs, best)
        recommendations = self._build_recommendations(ranked, best, improvement, objective_enum)

        logger.info(f"Optimization completed. Best {objective_enum.value}: {best.score:.4f} with {best.parameters}")

        return OptimizationResult(
            objective=objective_enum,
            total_combinations=len(combinations),
            runs=ranked,
            best_parameters=dict(best.parameters),
            best_strategy=base_strategy.with_parameters(best.parameters),
            best_metrics=best.metrics,
            sensitivity=sensitivity,
            improvement=improvement,
            recommendations=recommendations,
        )

    @staticmethod
    def _parse_objective(objective: str) -> OptimizationObjective:
        try:
            return OptimizationObjective(objective)
        except ValueError:
            allowed = [o.value for o in OptimizationObjective]
            raise BacktestConfigError(f"Unknown objective '{objective}'. Available: {allowed}") from None

    def _validate_request(self) -> None:
        days = self.config.days_in_range
        if days < self.min_days:
            raise BacktestConfigError(f"Minimum optimization period is {self.min_days} days")
        if days > self.max_days:
            raise BacktestConfigError(f"Maximum optimization period is {self.max_days} days")
        if len(self.config.symbols) > MAX_OPTIMIZATION_SYMBOLS:
            raise BacktestConfigError(
                f"At most {MAX_OPTIMIZATION_SYMBOLS} symbols can be optimized at once"
            )

    def _validate_parameter_names(self, base_strategy: StrategyDefinition, space: ParameterSpace) -> None:
        known = self.strategy_class(base_strategy).config
        unknown = [name for name in space.parameters if name not in known]
        if unknown:
            raise BacktestConfigError(
                f"Unknown strategy parameters {unknown}. Available: {sorted(known)}"
            )

    def _run_all(
        self,
        engines: List[BacktestEngine],
        combinations: List[Dict[str, Any]],
        bars_by_symbol: Mapping[str, Sequence[PriceBar]],
        objective: OptimizationObjective,
        cancellation_token: Optional[CancellationToken],
    ) -> List[OptimizationRun]:
        """Run every combination; results come back in submission order."""
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(
                    self._run_single_backtest, engine, params, bars_by_symbol, objective, cancellation_token
                )
                for engine, params in zip(engines, combinations)
            ]
            try:
                return [future.result() for future in futures]
            except Exception:
                for future in futures:
                    future.cancel()
                raise

    def _run_single_backtest(
        self,
        engine: BacktestEngine,
        params: Dict[str, Any],
        bars_by_symbol: Mapping[str, Sequence[PriceBar]],
        objective: OptimizationObjective,
        cancellation_token: Optional[CancellationToken],
    ) -> OptimizationRun:
        if cancellation_token is not None:
            cancellation_token.raise_if_cancelled()

        logger.debug(f"Testing config: {params}")
        result = engine.run_on_bars(bars_by_symbol, cancellation_token)
        prom.record_optimization_combination(objective.value)

        return OptimizationRun(
            parameters=dict(params),
            metrics=result.metrics,
            score=self._extract_metric(result.metrics, objective),
        )

    @staticmethod
    def _extract_metric(metrics: MetricsReport, objective: OptimizationObjective) -> float:
        """
        Extract the optimization metric from a metrics report.

        Args:
            metrics: Metrics from one backtest
            objective: Ranking metric

        Returns:
            Metric value as float
        """
        return float(metrics.objective(objective.value))

    @staticmethod
    def _calculate_improvement(
        base_strategy: StrategyDefinition,
        parameter_names: List[str],
        runs: List[OptimizationRun],
        best: OptimizationRun,
    ) -> Optional[Dict[str, float]]:
        """
        Compare the best run with the run matching the base parameters.

        Returns:
            None when the base parameters are not part of the grid
        """
        baseline_values = {name: base_strategy.get(name) for name in parameter_names}
        baseline = next(
            (
                run for run in runs
                if all(run.parameters[name] == baseline_values[name] for name in parameter_names)
            ),
            None,
        )
        if baseline is None:
            return None

        absolute = best.score - baseline.score
        percent = absolute / baseline.score * 100.0 if baseline.score > 0 else 0.0

        return {
            "baseline_score": baseline.score,
            "best_score": best.score,
            "absolute": absolute,
            "percent": percent,
        }

    @staticmethod
    def _build_recommendations(
        ranked: List[OptimizationRun],
        best: OptimizationRun,
        improvement: Optional[Dict[str, float]],
        objective: OptimizationObjective,
    ) -> List[str]:
        recommendations = []

        if improvement is not None:
            better = sum(1 for run in ranked if run.score > improvement["baseline_score"])
            if better:
                recommendations.append(
                    f"Found {better} parameter combinations with better {objective.value} than the current parameters"
                )
            else:
                recommendations.append("Current parameters appear to be optimal")
        else:
            recommendations.append(
                f"Current parameters are not in the tested grid; best of {len(ranked)} combinations selected"
            )

        if improvement is not None and improvement["percent"] > SIGNIFICANT_IMPROVEMENT_PERCENT:
            recommendations.append(f"Potential {improvement['percent']:.1f}% improvement in {objective.value}")
        else:
            recommendations.append("Marginal improvement opportunities identified")

        if best.metrics.max_drawdown_percent > HIGH_DRAWDOWN_PERCENT:
            recommendations.append("Consider adding risk management constraints to reduce drawdown")
        else:
            recommendations.append("Drawdown levels are within acceptable range")

        if best.metrics.total_trades < MIN_RELIABLE_TRADES:
            recommendations.append("Low number of trades - consider longer backtest period or different parameters")
        else:
            recommendations.append("Sufficient trade sample size for reliable results")

        return recommendations


def optimize_strategy(
    base_strategy: StrategyDefinition,
    parameter_ranges: Dict[str, Any],
    config: BacktestConfig,
    provider: PriceDataProvider,
    objective: str = OptimizationObjective.SHARPE_RATIO.value,
    strategy_class: Type[BaseStrategy] = MovingAverageCrossoverStrategy,
    cancellation_token: Optional[CancellationToken] = None,
) -> OptimizationResult:
    """
    Convenience function to run a grid search with settings defaults.

    Args:
        base_strategy: Strategy whose parameters are varied
        parameter_ranges: Parameter name -> {min, max, step} or value list
        config: Backtest configuration shared by all combinations
        provider: Source of daily bars
        objective: Ranking metric name
        strategy_class: Signal generator implementation
        cancellation_token: Optional cooperative cancellation

    Returns:
        OptimizationResult with ranked runs
    """
    engine = OptimizationEngine(config, provider, strategy_class)
    return engine.optimize(base_strategy, parameter_ranges, objective, cancellation_token)
