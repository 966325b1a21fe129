"""Data-Center Renewable Transition Planner.

Plans a data center's move to on-site renewables: resource assessment,
capacity sizing, weather-driven PUE forecasting, ownership and VPPA
economics, and Monte Carlo risk analysis in one pipeline.
"""

__version__ = "0.1.0"

from dc_transition_planner.transition_config import PipelineInput, PlannerSettings
from dc_transition_planner.resources import ResourcePlanner, ResourceSeries
from dc_transition_planner.optimization import CapacityOptimizer, CapacityPlan
from dc_transition_planner.thermal import PUEPredictor, PUEProfile
from dc_transition_planner.economics import FinancialEngine, FinancialResult
from dc_transition_planner.sensitivity import SensitivityEngine, SensitivityResult
from dc_transition_planner.orchestration import PipelineResult, TransitionPipeline

__all__ = [
    "PipelineInput",
    "PlannerSettings",
    "ResourcePlanner",
    "ResourceSeries",
    "CapacityOptimizer",
    "CapacityPlan",
    "PUEPredictor",
    "PUEProfile",
    "FinancialEngine",
    "FinancialResult",
    "SensitivityEngine",
    "SensitivityResult",
    "PipelineResult",
    "TransitionPipeline",
]
