"""Transition pipeline orchestrator.

Runs planner -> optimizer -> pue -> financial -> (sensitivity) in order.
Each stage either succeeds, fails recoverably (the run continues on a
degraded output) or fails fatally (the run aborts and every remaining
stage is marked skipped).
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import numpy as np

from dc_transition_planner.economics.financial_engine import FinancialEngine, FinancialResult
from dc_transition_planner.errors import StageError
from dc_transition_planner.optimization.capacity_optimizer import CapacityOptimizer, CapacityPlan
from dc_transition_planner.orchestration.stages import (
    Failed,
    Serializer,
    Skipped,
    StageOutcome,
    StageStatus,
    Succeeded,
)
from dc_transition_planner.orchestration.state_machine import (
    PipelineState,
    PipelineStateMachine,
)
from dc_transition_planner.resources.planner import ResourcePlanner
from dc_transition_planner.resources.series import ResourceSeries
from dc_transition_planner.sensitivity.monte_carlo import SensitivityEngine, SensitivityResult
from dc_transition_planner.thermal.pue_predictor import PUEPredictor, PUEProfile
from dc_transition_planner.transition_config import PipelineInput, PlannerSettings

logger = logging.getLogger(__name__)

STAGE_ORDER = ('planner', 'optimizer', 'pue', 'financial', 'sensitivity')
RECOVERABLE_STAGES = frozenset({'pue', 'sensitivity'})

STAGE_SERIALIZERS: Dict[str, Serializer] = {
    'planner': lambda series: series.summary(),
    'optimizer': lambda plan: plan.to_dict(),
    'pue': lambda profile: profile.to_dict(),
    'financial': lambda financial: financial.to_dict(),
    'sensitivity': lambda sensitivity: sensitivity.to_dict(),
}


class _RunAborted(Exception):
    """Internal signal: a fatal stage failure ends the run."""


@dataclass(frozen=True)
class ErrorRecord:
    stage: str
    message: str
    recoverable: bool

    def to_dict(self) -> Dict[str, Any]:
        return {'stage': self.stage, 'message': self.message, 'recoverable': self.recoverable}


@dataclass
class PipelineResult:
    """Outcome of one pipeline run.

    Attributes:
        success: False only when a stage failed fatally
        execution_time_ms: Wall-clock time of the whole run
        stages: One outcome per stage, in execution order
        summary: optimal_plan, financial_best_case, environmental and,
            when sensitivity ran, risk_profile
        errors: Recoverable and fatal error records
        final_state: Terminal state of the state machine
    """
    success: bool
    execution_time_ms: float
    stages: Dict[str, StageOutcome]
    summary: Dict[str, Any]
    errors: List[ErrorRecord] = field(default_factory=list)
    final_state: PipelineState = PipelineState.COMPLETED

    def output(self, stage: str) -> Optional[Any]:
        """Value a stage handed downstream, or None."""
        outcome = self.stages.get(stage)
        return outcome.output if outcome is not None else None

    def status(self, stage: str) -> Optional[StageStatus]:
        outcome = self.stages.get(stage)
        return outcome.status if outcome is not None else None

    @property
    def fatal_errors(self) -> List[ErrorRecord]:
        return [e for e in self.errors if not e.recoverable]

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'success': self.success,
            'executionTimeMs': self.execution_time_ms,
            'stages': {name: outcome.to_dict(STAGE_SERIALIZERS.get(name))
                       for name, outcome in self.stages.items()},
            'summary': self.summary,
        }
        if self.errors:
            data['errors'] = [e.to_dict() for e in self.errors]
        return data


class _Run:
    """Mutable bookkeeping for a single invocation."""

    def __init__(self):
        self.machine = PipelineStateMachine()
        self.stages: Dict[str, StageOutcome] = {}
        self.errors: List[ErrorRecord] = []

    def record(self, stage: str, message: str, recoverable: bool) -> None:
        self.errors.append(ErrorRecord(stage=stage, message=message, recoverable=recoverable))

    def skip_remaining(self, reason: str) -> None:
        for name in STAGE_ORDER:
            if name not in self.stages:
                self.stages[name] = Skipped(stage=name, duration_ms=0.0, reason=reason)


class TransitionPipeline:
    """End-to-end renewable transition planner.

    Every component can be injected; defaults are built from settings.

    Args:
        settings: Shared planner settings
        planner: Resource planner (inject a fake client here for tests)
        optimizer: Capacity optimizer
        pue_predictor: PUE predictor
        financial_engine: Financial engine
        sensitivity_engine: Monte Carlo engine
    """

    def __init__(self, settings: Optional[PlannerSettings] = None,
                 planner: Optional[ResourcePlanner] = None,
                 optimizer: Optional[CapacityOptimizer] = None,
                 pue_predictor: Optional[PUEPredictor] = None,
                 financial_engine: Optional[FinancialEngine] = None,
                 sensitivity_engine: Optional[SensitivityEngine] = None):
        self.settings = settings or PlannerSettings()
        self.planner = planner or ResourcePlanner(settings=self.settings)
        self.optimizer = optimizer or CapacityOptimizer(self.settings)
        self.pue_predictor = pue_predictor or PUEPredictor(self.settings)
        self.financial_engine = financial_engine or FinancialEngine(self.settings)
        self.sensitivity_engine = sensitivity_engine or SensitivityEngine(self.settings)

    def run(self, request: Union[PipelineInput, Mapping[str, Any]]) -> PipelineResult:
        """Execute the pipeline.

        Args:
            request: Validated PipelineInput or a raw camelCase JSON object

        Returns:
            PipelineResult

        Raises:
            InputValidationError: If a raw request fails validation; no
                stage runs in that case
        """
        if not isinstance(request, PipelineInput):
            request = PipelineInput.from_payload(request)

        started = time.perf_counter()
        run = _Run()
        try:
            self._execute(run, request)
            run.machine.advance(PipelineState.COMPLETED)
        except _RunAborted:
            run.skip_remaining("aborted after fatal error")

        success = run.machine.state is PipelineState.COMPLETED
        result = PipelineResult(
            success=success,
            execution_time_ms=(time.perf_counter() - started) * 1000.0,
            stages=run.stages,
            summary=self._summarize(run),
            errors=run.errors,
            final_state=run.machine.state,
        )
        logger.info(f"Pipeline {'completed' if success else 'failed'} in "
                    f"{result.execution_time_ms:.1f} ms with {len(run.errors)} error(s)")
        return result

    # =========================================================================
    # Stages
    # =========================================================================

    def _execute(self, run: _Run, request: PipelineInput) -> None:
        load = request.current_load

        series: ResourceSeries = self._stage(
            run, 'planner', lambda: self.planner.plan(request.coordinates))
        synthetic = sorted(c for c in series.provenance if series.is_synthetic(c))
        if synthetic:
            run.record('planner', f"Synthetic resource data used for: {', '.join(synthetic)}",
                       recoverable=True)

        plan: CapacityPlan = self._stage(
            run, 'optimizer',
            lambda: self.optimizer.optimize(series, load, request.constraints, request.pricing))
        if plan.is_relaxed:
            run.record('optimizer',
                       f"Target renewable fraction {plan.target_renewable_fraction:.1%} not "
                       f"reachable within constraints; best achievable "
                       f"{plan.renewable_fraction:.1%} (infeasible-relaxed)",
                       recoverable=True)

        it_load = np.full(series.hours, load.average_kw)
        pue: PUEProfile = self._stage(
            run, 'pue',
            lambda: self.pue_predictor.predict(
                series.outdoor_temp, it_load, load.current_pue,
                solar_kw=plan.solar_kw, wind_kw=plan.wind_kw,
                electricity_usd_per_kwh=request.pricing.electricity_usd_per_kwh),
            fallback=lambda: self.pue_predictor.baseline_profile(
                series.outdoor_temp, it_load, load.current_pue))

        financial: FinancialResult = self._stage(
            run, 'financial',
            lambda: self.financial_engine.evaluate(
                plan, pue, request.pricing, request.coordinates, request.vppa))

        if request.wants_sensitivity:
            self._stage(
                run, 'sensitivity',
                lambda: self.sensitivity_engine.run(financial, request.pricing,
                                                    request.sensitivity))
        else:
            run.machine.advance(PipelineState.SKIPPED)
            run.stages['sensitivity'] = Skipped(stage='sensitivity', duration_ms=0.0,
                                                reason="not requested")

    def _stage(self, run: _Run, name: str, action: Callable[[], Any],
               fallback: Optional[Callable[[], Any]] = None) -> Any:
        """Run one stage under failure isolation and return its output."""
        run.machine.enter_stage(name)
        started = time.perf_counter()
        try:
            payload = action()
        except Exception as exc:
            duration_ms = (time.perf_counter() - started) * 1000.0
            return self._handle_failure(run, name, exc, duration_ms, fallback)

        duration_ms = (time.perf_counter() - started) * 1000.0
        run.stages[name] = Succeeded(stage=name, duration_ms=duration_ms, payload=payload)
        logger.info(f"Stage {name} complete in {duration_ms:.1f} ms")
        return payload

    def _handle_failure(self, run: _Run, name: str, exc: Exception, duration_ms: float,
                        fallback: Optional[Callable[[], Any]]) -> Any:
        message = f"{type(exc).__name__}: {exc}"
        recoverable = name in RECOVERABLE_STAGES

        degraded = None
        if recoverable and fallback is not None:
            try:
                degraded = fallback()
            except Exception as fallback_exc:
                logger.exception(f"Fallback for stage {name} failed")
                message = f"{message}; fallback failed: {fallback_exc}"
                recoverable = False

        error = StageError(name, message, recoverable=recoverable)
        run.stages[name] = Failed(stage=name, duration_ms=duration_ms, error=error,
                                  fallback=degraded)
        run.record(name, message, recoverable)

        if not recoverable:
            logger.exception(f"Stage {name} failed fatally: {message}")
            run.machine.fail()
            raise _RunAborted(name) from exc

        logger.warning(f"Stage {name} failed, continuing: {message}")
        return degraded

    # =========================================================================
    # Summary
    # =========================================================================

    def _summarize(self, run: _Run) -> Dict[str, Any]:
        summary: Dict[str, Any] = {}

        def usable(name: str) -> Optional[Any]:
            outcome = run.stages.get(name)
            if outcome is None or outcome.status is StageStatus.SKIPPED:
                return None
            return outcome.output

        plan: Optional[CapacityPlan] = usable('optimizer')
        financial: Optional[FinancialResult] = usable('financial')
        sensitivity: Optional[SensitivityResult] = usable('sensitivity')

        if plan is not None:
            summary['optimal_plan'] = {
                'solar_kw': plan.solar_kw,
                'wind_kw': plan.wind_kw,
                'battery_kwh': plan.battery_kwh,
                'total_cost': plan.total_cost,
                'renewable_fraction': plan.renewable_fraction,
                'status': plan.status,
                'strategy': plan.diagnostics.strategy,
            }

        if financial is not None:
            summary['financial_best_case'] = financial.best_case()

        if plan is not None:
            environmental: Dict[str, Any] = {'renewable_fraction': plan.renewable_fraction}
            if financial is not None:
                tons = financial.ownership.co2_reduction_tons_per_year
                environmental.update({
                    'co2_reduction_tons_per_year': tons,
                    'lifetime_co2_reduction_tons': financial.ownership.lifetime_co2_reduction_tons,
                    'equivalent_cars_removed': tons * 1000.0 / self.settings.kg_co2_per_car_year,
                })
            summary['environmental'] = environmental

        if sensitivity is not None:
            summary['risk_profile'] = {
                'payback_confidence_95': sensitivity.to_dict()['payback_months']['confidence_95'],
                'risk_metrics': sensitivity.risk_metrics,
                'tornado': [entry.to_dict() for entry in sensitivity.tornado],
                'recommendations': list(sensitivity.recommendations),
            }
        return summary
