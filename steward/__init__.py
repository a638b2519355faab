"""The Steward - autonomous routing and predictive workflows

Philosophy:
    Routine decisions should not cost the user any attention.
    If a project/model choice has been right again and again, just make it.
    Anything new, uncertain, or noisy goes back to the user with a reason.

Components:
    autonomous/: Learned routing patterns and the autopilot decision gate
        - patterns.py: Per (project, model) statistics with clamped updates
        - gate.py: Ordered eligibility checks, execution log, feedback

    workflows/: Predictive workflow suggestions and supervision
        - aggregator.py: Merge step proposals from predictor and memory
        - optimizer.py: Annotate steps with timing, advisories, breaks
        - ranker.py: Deterministic weighted ranking of proposals
        - monitoring.py: Periodic capacity and break checks
        - supervisor.py: Workflow lifecycle and completion hand-off
        - engine.py: Facade wiring everything to the collaborators

    collaborators/: Interfaces for the external services the core consumes

Configuration: args/workflows.yaml
"""

from pathlib import Path

# Path constants
PROJECT_ROOT = Path(__file__).parent.parent
ARGS_DIR = PROJECT_ROOT / "args"
CONFIG_PATH = ARGS_DIR / "workflows.yaml"

__version__ = "0.1.0"

__all__ = [
    "PROJECT_ROOT",
    "ARGS_DIR",
    "CONFIG_PATH",
    "__version__",
]
