"""Capacity optimizer for on-site solar, wind and battery storage.

Sizes three continuous decisions (solar_kw, wind_kw, battery_kwh) to

    minimize   c_s * S + c_w * W + c_b * B
    subject to c_s * S + c_w * W + c_b * B <= budget
               renewable_fraction(S, W, B) >= target
               0 <= S <= S_max,  0 <= W <= W_max,  0 <= B <= B_max

The renewable fraction comes from an hourly dispatch simulation, so
two strategies are offered:

    'lp'         Linear program over a linearized dispatch model on
                 representative days (HiGHS through scipy), verified
                 against the full series and then repaired/pruned by
                 local search.
    'heuristic'  Greedy allocation from zero, always adding the step with
                 the best renewable-fraction gain per dollar, followed by
                 the same pruning local search.

If no plan within budget reaches the target, the plan with the best
achievable fraction is returned and flagged 'infeasible-relaxed'.

LP formulation (per representative hour t, days treated as cyclic):

    S*cf_s[t] + W*cf_w[t] + dis[t] + g[t] - ch[t] - cur[t] = L[t]
    e[t] = e[t-1] + eta*ch[t] - dis[t]/eta
    soc_min*B <= e[t] <= soc_max*B
    ch[t], dis[t] <= c_rate*B
    sum(g) <= (1 - target) * sum(L)
"""

import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np
from scipy import sparse
from scipy.optimize import linprog

from dc_transition_planner.errors import OptimizationError
from dc_transition_planner.optimization.dispatch import (
    BatteryParameters,
    DispatchResult,
    simulate_dispatch,
)
from dc_transition_planner.resources.series import ResourceSeries
from dc_transition_planner.transition_config import (
    Constraints,
    LoadProfile,
    PlannerSettings,
    PricingConfig,
)

logger = logging.getLogger(__name__)

LP_SOLVER_METHOD = "highs"
FRACTION_TOLERANCE = 1e-6
BUDGET_TOLERANCE = 1e-6

# Battery step in hours of facility load, for greedy search
BATTERY_STEP_HOURS = 4.0
# Upper bound for a free technology with no cap, in multiples of load
FREE_TECHNOLOGY_LOAD_MULTIPLE = 20.0

STATUS_OPTIMAL = "optimal"
STATUS_FEASIBLE = "feasible"
STATUS_INFEASIBLE_RELAXED = "infeasible-relaxed"


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class SolverDiagnostics:
    """How the plan was found.

    Attributes:
        strategy: 'lp' or 'heuristic'
        status: 'optimal', 'feasible' or 'infeasible-relaxed'
        solve_time_s: Wall-clock time of the whole sizing run (s)
        iterations: LP iterations plus local-search moves
        objective_value: Capital cost of the reported plan (USD)
        representative_days: Days sampled into the LP (0 for heuristic)
        message: Solver or fallback note
    """
    strategy: str
    status: str
    solve_time_s: float
    iterations: int
    objective_value: float
    representative_days: int = 0
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'strategy': self.strategy,
            'status': self.status,
            'solve_time_s': self.solve_time_s,
            'iterations': self.iterations,
            'objective_value': self.objective_value,
            'representative_days': self.representative_days,
            'message': self.message,
        }


@dataclass(frozen=True)
class CapacityPlan:
    """Sized generation and storage mix.

    Capacities are whole kW / kWh. renewable_fraction is measured by
    dispatching the plan against the full resource series.
    """
    solar_kw: float
    wind_kw: float
    battery_kwh: float
    total_cost: float
    renewable_fraction: float
    target_renewable_fraction: float
    diagnostics: SolverDiagnostics
    dispatch: DispatchResult = field(repr=False)

    @property
    def status(self) -> str:
        return self.diagnostics.status

    @property
    def is_relaxed(self) -> bool:
        return self.diagnostics.status == STATUS_INFEASIBLE_RELAXED

    @property
    def annual_metrics(self) -> Dict[str, float]:
        return self.dispatch.annual_metrics()

    def to_dict(self, dispatch_hours: int = 168) -> Dict[str, Any]:
        return {
            'solar_kw': self.solar_kw,
            'wind_kw': self.wind_kw,
            'battery_kwh': self.battery_kwh,
            'total_cost': self.total_cost,
            'renewable_fraction': self.renewable_fraction,
            'target_renewable_fraction': self.target_renewable_fraction,
            'status': self.status,
            'solver': self.diagnostics.to_dict(),
            'annual_metrics': self.annual_metrics,
            'hourly_dispatch': self.dispatch.hourly_records(dispatch_hours),
        }


# =============================================================================
# Sizing Problem
# =============================================================================

class _SizingProblem:
    """Shared data and memoized evaluation for one sizing run."""

    def __init__(self, load_kw: np.ndarray, solar_cf: np.ndarray, wind_cf: np.ndarray,
                 costs: np.ndarray, upper: np.ndarray, budget: float, target: float,
                 battery: BatteryParameters):
        self.load_kw = load_kw
        self.solar_cf = solar_cf
        self.wind_cf = wind_cf
        self.costs = costs
        self.upper = upper
        self.budget = budget
        self.target = target
        self.battery = battery
        self._memo: Dict[Tuple[float, float, float], float] = {}

    def cost(self, x: np.ndarray) -> float:
        return float(self.costs @ x)

    def affordable(self, x: np.ndarray) -> bool:
        return self.cost(x) <= self.budget * (1 + BUDGET_TOLERANCE)

    def dispatch(self, x: np.ndarray) -> DispatchResult:
        return simulate_dispatch(self.load_kw, self.solar_cf, self.wind_cf,
                                 x[0], x[1], x[2], self.battery)

    def fraction(self, x: np.ndarray) -> float:
        key = tuple(round(float(v), 6) for v in x)
        if key not in self._memo:
            self._memo[key] = self.dispatch(x).renewable_fraction
        return self._memo[key]

    def meets_target(self, fraction: float) -> bool:
        return fraction >= self.target - FRACTION_TOLERANCE


class CapacityOptimizer:
    """Size solar, wind and battery capacity against a renewable target.

    Args:
        settings: Planner settings (strategy, battery limits, search knobs)
    """

    def __init__(self, settings: Optional[PlannerSettings] = None):
        self.settings = settings or PlannerSettings()
        self.battery = BatteryParameters.from_settings(self.settings)

    def optimize(self, series: ResourceSeries, load: LoadProfile,
                 constraints: Constraints, pricing: PricingConfig,
                 strategy: Optional[str] = None) -> CapacityPlan:
        """Find the cheapest plan meeting the renewable target within budget.

        Args:
            series: Hourly resource series
            load: Facility IT load and baseline PUE
            constraints: Budget, target and capacity caps
            pricing: Capital costs per technology
            strategy: Override for settings.optimizer_strategy

        Returns:
            CapacityPlan with solver diagnostics

        Raises:
            OptimizationError: If the resource series is unusable
        """
        strategy = strategy or self.settings.optimizer_strategy
        if strategy not in ("lp", "heuristic"):
            raise OptimizationError(f"Unknown optimizer strategy: {strategy}")
        started = time.perf_counter()

        problem = self._build_problem(series, load, constraints, pricing)
        iterations = 0
        lp_days = 0
        message = ""
        x = np.zeros(3)

        if problem.target <= 0:
            status = STATUS_OPTIMAL
            message = "no renewable build required"
        else:
            lp_status = None
            if strategy == "lp":
                x, lp_status, lp_iterations, lp_days, message = self._solve_lp(problem)
                iterations += lp_iterations
                if lp_status is None:
                    strategy = "heuristic"
                    x = np.zeros(3)

            verified = problem.fraction(x)
            repaired = False
            if not problem.meets_target(verified):
                x, verified, moves = self._greedy_fill(problem, x)
                iterations += moves
                repaired = moves > 0
            if problem.meets_target(verified):
                x, moves = self._prune(problem, x)
                iterations += moves
                repaired = repaired or moves > 0

            x = self._round(problem, x)
            if not problem.meets_target(problem.fraction(x)):
                status = STATUS_INFEASIBLE_RELAXED
            elif lp_status == STATUS_OPTIMAL and not repaired:
                status = STATUS_OPTIMAL
            else:
                status = STATUS_FEASIBLE

        dispatch = problem.dispatch(x)
        total_cost = problem.cost(x)
        diagnostics = SolverDiagnostics(
            strategy=strategy,
            status=status,
            solve_time_s=time.perf_counter() - started,
            iterations=iterations,
            objective_value=total_cost,
            representative_days=lp_days,
            message=message,
        )
        plan = CapacityPlan(
            solar_kw=float(x[0]),
            wind_kw=float(x[1]),
            battery_kwh=float(x[2]),
            total_cost=total_cost,
            renewable_fraction=dispatch.renewable_fraction,
            target_renewable_fraction=problem.target,
            diagnostics=diagnostics,
            dispatch=dispatch,
        )

        log = logger.warning if plan.is_relaxed else logger.info
        log(f"Capacity plan [{strategy}/{status}]: solar={plan.solar_kw:.0f} kW, "
            f"wind={plan.wind_kw:.0f} kW, battery={plan.battery_kwh:.0f} kWh, "
            f"cost=${plan.total_cost:,.0f}, renewable={plan.renewable_fraction:.3f} "
            f"(target {problem.target:.3f}) in {diagnostics.solve_time_s * 1000:.1f} ms")
        return plan

    def _build_problem(self, series: ResourceSeries, load: LoadProfile,
                       constraints: Constraints, pricing: PricingConfig) -> _SizingProblem:
        solar_cf = series.solar_cf
        wind_cf = series.wind_cf
        if not (np.all(np.isfinite(solar_cf)) and np.all(np.isfinite(wind_cf))):
            raise OptimizationError("Resource capacity factors contain non-finite values")

        facility_kw = load.average_kw * load.current_pue
        load_kw = np.full(series.hours, facility_kw)
        costs = np.array([
            pricing.solar_capex_usd_per_kw,
            pricing.wind_capex_usd_per_kw,
            pricing.battery_capex_usd_per_kwh,
        ], dtype=float)

        caps = (constraints.max_solar_kw, constraints.max_wind_kw, constraints.max_battery_kwh)
        free_bounds = (
            FREE_TECHNOLOGY_LOAD_MULTIPLE * facility_kw,
            FREE_TECHNOLOGY_LOAD_MULTIPLE * facility_kw,
            FREE_TECHNOLOGY_LOAD_MULTIPLE * facility_kw * BATTERY_STEP_HOURS,
        )
        upper = np.empty(3)
        for i, (cap, cost, free) in enumerate(zip(caps, costs, free_bounds)):
            bound = constraints.budget / cost if cost > 0 else free
            upper[i] = bound if cap is None else min(cap, bound)

        return _SizingProblem(load_kw, solar_cf, wind_cf, costs, upper,
                              constraints.budget, constraints.target_renewable_fraction,
                              self.battery)

    # =========================================================================
    # Linear Program
    # =========================================================================

    def _representative_hours(self, hours: int) -> Tuple[np.ndarray, int]:
        """Hour indices of evenly spaced whole days, and the block length."""
        if hours < 24:
            return np.arange(hours), hours
        n_days = hours // 24
        n_sample = min(self.settings.lp_max_days, n_days)
        days = np.unique(np.linspace(0, n_days - 1, n_sample).round().astype(int))
        idx = (days[:, None] * 24 + np.arange(24)[None, :]).ravel()
        return idx, 24

    def _solve_lp(self, problem: _SizingProblem):
        """Solve the representative-day LP.

        Returns:
            (x, status, iterations, days, message) where status is
            'optimal', 'infeasible-relaxed', or None if the solver failed
        """
        idx, block = self._representative_hours(len(problem.load_kw))
        days = len(idx) // block
        cf_s = problem.solar_cf[idx]
        cf_w = problem.wind_cf[idx]
        load = problem.load_kw[idx]

        res = self._linprog(problem, cf_s, cf_w, load, block, include_target=True)
        if res.status == 0:
            logger.debug(f"LP optimal on {days} representative days ({res.nit} iterations)")
            return np.clip(res.x[:3], 0.0, problem.upper), STATUS_OPTIMAL, int(res.nit), days, ""

        if res.status != 2:
            logger.warning(f"LP solver failed ({res.message}); falling back to heuristic")
            return np.zeros(3), None, int(res.nit or 0), days, f"lp failed: {res.message}"

        # Target unreachable within budget: maximize renewable share, then minimize cost
        logger.warning("Renewable target infeasible within budget; solving relaxed LP")
        relaxed = self._linprog(problem, cf_s, cf_w, load, block, include_target=False,
                                minimize_grid=True)
        if relaxed.status != 0:
            return np.zeros(3), None, int(res.nit or 0), days, f"relaxed lp failed: {relaxed.message}"
        best_grid = float(relaxed.fun)
        cheapest = self._linprog(problem, cf_s, cf_w, load, block, include_target=False,
                                 grid_limit=best_grid * (1 + 1e-6) + 1e-6)
        final = cheapest if cheapest.status == 0 else relaxed
        iterations = int(res.nit or 0) + int(relaxed.nit or 0) + int(cheapest.nit or 0)
        return (np.clip(final.x[:3], 0.0, problem.upper), STATUS_INFEASIBLE_RELAXED,
                iterations, days, "target unreachable within budget")

    def _linprog(self, problem: _SizingProblem, cf_s: np.ndarray, cf_w: np.ndarray,
                 load: np.ndarray, block: int, include_target: bool,
                 minimize_grid: bool = False, grid_limit: Optional[float] = None):
        T = len(load)
        G0, C0, D0, U0, E0 = 3, 3 + T, 3 + 2 * T, 3 + 3 * T, 3 + 4 * T
        n_vars = 3 + 5 * T
        eta = self.battery.one_way_efficiency
        t = np.arange(T)
        ones = np.ones(T)

        # Equalities: energy balance, then state of charge
        prev = np.where(t % block == 0, t + block - 1, t - 1)
        eq_rows = np.concatenate([t, t, t, t, t, t, T + t, T + t, T + t, T + t])
        eq_cols = np.concatenate([
            np.zeros(T, dtype=int), np.ones(T, dtype=int), G0 + t, C0 + t, D0 + t, U0 + t,
            E0 + t, E0 + prev, C0 + t, D0 + t,
        ])
        eq_vals = np.concatenate([
            cf_s, cf_w, ones, -ones, ones, -ones,
            ones, -ones, -eta * ones, ones / eta,
        ])
        A_eq = sparse.csr_matrix((eq_vals, (eq_rows, eq_cols)), shape=(2 * T, n_vars))
        b_eq = np.concatenate([load, np.zeros(T)])

        # Inequalities: SOC window, power limits, budget, grid share
        b_col = np.full(T, 2)
        ub_rows = [t, t, T + t, T + t, 2 * T + t, 2 * T + t, 3 * T + t, 3 * T + t]
        ub_cols = [E0 + t, b_col, E0 + t, b_col, C0 + t, b_col, D0 + t, b_col]
        ub_vals = [ones, -self.battery.max_soc * ones, -ones, self.battery.min_soc * ones,
                   ones, -self.battery.c_rate * ones, ones, -self.battery.c_rate * ones]
        b_ub = [np.zeros(4 * T)]
        row = 4 * T

        ub_rows.append(np.full(3, row))
        ub_cols.append(np.arange(3))
        ub_vals.append(problem.costs)
        b_ub.append([problem.budget])
        row += 1

        grid_cap = None
        if include_target:
            grid_cap = (1.0 - problem.target) * float(load.sum())
        elif grid_limit is not None:
            grid_cap = grid_limit
        if grid_cap is not None:
            ub_rows.append(np.full(T, row))
            ub_cols.append(G0 + t)
            ub_vals.append(ones)
            b_ub.append([grid_cap])
            row += 1

        A_ub = sparse.csr_matrix(
            (np.concatenate(ub_vals), (np.concatenate(ub_rows), np.concatenate(ub_cols))),
            shape=(row, n_vars))
        b_ub = np.concatenate([np.asarray(b, dtype=float) for b in b_ub])

        c = np.zeros(n_vars)
        if minimize_grid:
            c[G0:G0 + T] = 1.0
        else:
            c[:3] = problem.costs

        bounds = [(0.0, float(u)) for u in problem.upper] + [(0.0, None)] * (5 * T)
        return linprog(c, A_ub=A_ub, b_ub=b_ub, A_eq=A_eq, b_eq=b_eq,
                       bounds=bounds, method=LP_SOLVER_METHOD)

    # =========================================================================
    # Local Search
    # =========================================================================

    def _steps(self, problem: _SizingProblem) -> np.ndarray:
        step_kw = self.settings.heuristic_step_fraction * float(problem.load_kw.mean())
        return np.array([step_kw, step_kw, step_kw * BATTERY_STEP_HOURS])

    def _greedy_fill(self, problem: _SizingProblem, x: np.ndarray):
        """Add capacity step by step, best fraction gain per dollar first."""
        steps = self._steps(problem)
        x = x.copy()
        current = problem.fraction(x)
        moves = 0
        while (not problem.meets_target(current)
               and moves < self.settings.max_local_search_iterations):
            best = None
            remaining = problem.budget - problem.cost(x)
            for i in range(3):
                cand = x.copy()
                cand[i] = min(x[i] + steps[i], problem.upper[i])
                if problem.costs[i] > 0:
                    cand[i] = min(cand[i], x[i] + max(remaining, 0.0) / problem.costs[i])
                added = cand[i] - x[i]
                if added <= 1e-9:
                    continue
                gain = problem.fraction(cand) - current
                if gain <= FRACTION_TOLERANCE:
                    continue
                score = gain / max(problem.costs[i] * added, 1e-9)
                if best is None or score > best[0]:
                    best = (score, cand)
            if best is None:
                break
            x = best[1]
            current = problem.fraction(x)
            moves += 1
        return x, current, moves

    def _prune(self, problem: _SizingProblem, x: np.ndarray):
        """Remove capacity while the target still holds, biggest saving first."""
        steps = self._steps(problem)
        x = x.copy()
        moves = 0
        while moves < self.settings.max_local_search_iterations:
            best = None
            for i in range(3):
                for scale in (1.0, 0.5, 0.1):
                    cand = x.copy()
                    cand[i] = max(0.0, x[i] - steps[i] * scale)
                    if cand[i] >= x[i]:
                        continue
                    if not problem.meets_target(problem.fraction(cand)):
                        continue
                    saving = problem.costs[i] * (x[i] - cand[i])
                    if best is None or saving > best[0]:
                        best = (saving, cand)
                    break
            if best is None or best[0] <= 0:
                break
            x = best[1]
            moves += 1
        return x, moves

    @staticmethod
    def _round(problem: _SizingProblem, x: np.ndarray) -> np.ndarray:
        """Whole kW/kWh: pick the floor/ceil combination that stays in budget
        and under the caps, preferring target-meeting plans, then cost.

        All-floor is always a candidate, so the result is never worse on
        budget than x; a plan that met the target keeps meeting it whenever
        any affordable rounding does.
        """
        low = np.maximum(np.floor(x + 1e-6), 0.0)
        high = np.maximum(np.minimum(np.ceil(x - 1e-6), np.floor(problem.upper + 1e-6)), low)

        best = None
        for mask in itertools.product((False, True), repeat=3):
            cand = np.where(mask, high, low)
            if not problem.affordable(cand):
                continue
            fraction = problem.fraction(cand)
            rank = (problem.meets_target(fraction),
                    fraction if not problem.meets_target(fraction) else 0.0,
                    -problem.cost(cand))
            if best is None or rank > best[0]:
                best = (rank, cand)
        return best[1] if best is not None else low
